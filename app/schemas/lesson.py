from pydantic import BaseModel
from typing import Optional


class LessonBase(BaseModel):
    title: str
    order_index: int = 0
    estimated_minutes: int = 0
    is_active: bool = True


class LessonCreate(LessonBase):
    roadmap_id: int


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    order_index: Optional[int] = None
    estimated_minutes: Optional[int] = None
    is_active: Optional[bool] = None
