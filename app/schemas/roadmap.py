from pydantic import BaseModel
from typing import Optional


class CategoryCreate(BaseModel):
    label: str


class CategoryUpdate(BaseModel):
    label: Optional[str] = None


class RoadmapCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category_id: int
    is_active: bool = True


class RoadmapUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
