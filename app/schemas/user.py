from pydantic import BaseModel, EmailStr
from typing import Optional

from app.core.constants import RoleEnum

class UserBase(BaseModel):
    """Base user schema with common fields."""
    full_name: str
    email: EmailStr
    role: RoleEnum = RoleEnum.LEARNER

class UserCreate(UserBase):
    is_active: bool = True

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    is_active: Optional[bool] = None
