from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime
from app.core.constants import ProgressSourceEnum


class RoadmapEnrollmentBase(BaseModel):
    user_id: int
    roadmap_id: int


class RoadmapEnrollmentCreate(RoadmapEnrollmentBase):
    enrolled_at: Optional[datetime] = None


class RoadmapEnrollmentProgressUpdate(BaseModel):
    progress: float
    average_score: Optional[float] = None


class RoadmapEnrollment(RoadmapEnrollmentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    progress: float
    average_score: float
    is_completed: bool
    completed_at: Optional[datetime] = None
    enrolled_at: datetime
    last_accessed_at: Optional[datetime] = None
    progress_source: ProgressSourceEnum


class RoadmapSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category_id: int
    enrolled_users: int


class RoadmapEnrollmentWithRoadmap(RoadmapEnrollment):
    roadmap: RoadmapSummary


class EnrollmentStatus(BaseModel):
    roadmap_id: int
    is_enrolled: bool


class BulkEnrollRequest(BaseModel):
    user_ids: List[int]


class BulkEnrollFailure(BaseModel):
    user_id: int
    code: str
    error: str


class BulkEnrollResult(BaseModel):
    successful: List[int] = []
    failed: List[BulkEnrollFailure] = []
