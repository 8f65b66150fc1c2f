from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime


class LessonProgressUpdate(BaseModel):
    is_completed: Optional[bool] = None
    score: Optional[float] = None


class LessonCompletion(BaseModel):
    score: Optional[float] = None


class LessonProgress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    lesson_id: int
    score: Optional[float] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BulkLessonProgressItem(BaseModel):
    user_id: int
    lesson_id: int
    progress: LessonProgressUpdate


class BulkLessonProgressRequest(BaseModel):
    updates: List[BulkLessonProgressItem]


class BulkLessonProgressFailure(BaseModel):
    user_id: int
    lesson_id: int
    code: str
    error: str


class BulkLessonProgressResult(BaseModel):
    successful: int = 0
    failed: List[BulkLessonProgressFailure] = []
