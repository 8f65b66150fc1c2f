from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.constants import EnrollmentStatusFilterEnum
from app.models.user import User
from app.schemas.response import APIResponse
from app.schemas.enrollment import (
    BulkEnrollRequest,
    BulkEnrollResult,
    EnrollmentStatus,
    RoadmapEnrollment,
    RoadmapEnrollmentProgressUpdate,
    RoadmapEnrollmentWithRoadmap,
)
from app.schemas.stats import CompletionRate, RoadmapStatistics, Streak, UserStats
from app.services.enrollment import enrollment_service
from app.utils import deps

router = APIRouter()


@router.post("/roadmaps/{roadmap_id}", response_model=APIResponse[RoadmapEnrollment], status_code=201)
def enroll(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    enrollment = enrollment_service.enroll_user(db, user_id=current_user.id, roadmap_id=roadmap_id)
    return APIResponse(message="Enrolled in roadmap successfully", data=RoadmapEnrollment.model_validate(enrollment))


@router.delete("/roadmaps/{roadmap_id}", response_model=APIResponse[bool])
def unenroll(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    removed = enrollment_service.unenroll_user(db, user_id=current_user.id, roadmap_id=roadmap_id)
    message = "Unenrolled from roadmap successfully" if removed else "User was not enrolled in this roadmap"
    return APIResponse(message=message, data=removed)


@router.get("/roadmaps/{roadmap_id}/status", response_model=APIResponse[EnrollmentStatus])
def get_enrollment_status(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    is_enrolled = enrollment_service.is_user_enrolled(db, user_id=current_user.id, roadmap_id=roadmap_id)
    return APIResponse(
        message="Enrollment status retrieved successfully",
        data=EnrollmentStatus(roadmap_id=roadmap_id, is_enrolled=is_enrolled)
    )


@router.get("/roadmaps/{roadmap_id}", response_model=APIResponse[RoadmapEnrollment])
def get_enrollment_details(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    enrollment = enrollment_service.get_enrollment_details(db, user_id=current_user.id, roadmap_id=roadmap_id)
    return APIResponse(message="Enrollment retrieved successfully", data=RoadmapEnrollment.model_validate(enrollment))


@router.put("/roadmaps/{roadmap_id}/progress", response_model=APIResponse[RoadmapEnrollment])
def update_enrollment_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    progress_in: RoadmapEnrollmentProgressUpdate,
    current_user: User = Depends(deps.get_current_user)
):
    enrollment = enrollment_service.update_enrollment_progress(
        db,
        user_id=current_user.id,
        roadmap_id=roadmap_id,
        progress=progress_in.progress,
        average_score=progress_in.average_score,
    )
    return APIResponse(message="Enrollment progress updated", data=RoadmapEnrollment.model_validate(enrollment))


@router.post("/roadmaps/{roadmap_id}/recalculate", response_model=APIResponse[RoadmapEnrollment])
def recalculate_enrollment_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    enrollment = enrollment_service.recalculate_enrollment_progress(
        db, user_id=current_user.id, roadmap_id=roadmap_id
    )
    return APIResponse(message="Enrollment progress recalculated", data=RoadmapEnrollment.model_validate(enrollment))


@router.get("/roadmaps/{roadmap_id}/completion-rate", response_model=APIResponse[CompletionRate])
def get_roadmap_completion_rate(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    rate = enrollment_service.get_roadmap_completion_rate(db, roadmap_id=roadmap_id)
    return APIResponse(
        message="Completion rate retrieved successfully",
        data=CompletionRate(roadmap_id=roadmap_id, completion_rate=rate)
    )


@router.get("/roadmaps/{roadmap_id}/statistics", response_model=APIResponse[RoadmapStatistics])
def get_roadmap_statistics(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    stats = enrollment_service.get_roadmap_statistics(db, roadmap_id=roadmap_id)
    return APIResponse(message="Roadmap statistics retrieved successfully", data=stats)


@router.post("/roadmaps/{roadmap_id}/bulk", response_model=APIResponse[BulkEnrollResult])
def bulk_enroll_users(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    bulk_in: BulkEnrollRequest,
    admin: User = Depends(deps.require_admin)
):
    result = enrollment_service.bulk_enroll_users(db, user_ids=bulk_in.user_ids, roadmap_id=roadmap_id)
    return APIResponse(message="Bulk enrollment processed", data=result)


@router.get("/me", response_model=APIResponse[List[RoadmapEnrollmentWithRoadmap]])
def get_my_enrollments(
    *,
    db: Session = Depends(deps.get_db),
    status: EnrollmentStatusFilterEnum = Query(EnrollmentStatusFilterEnum.ALL),
    current_user: User = Depends(deps.get_current_user)
):
    enrollments = enrollment_service.get_user_enrollments(db, user_id=current_user.id, status=status)
    return APIResponse(
        message="Enrollments retrieved successfully",
        data=[RoadmapEnrollmentWithRoadmap.model_validate(e) for e in enrollments]
    )


@router.get("/me/stats", response_model=APIResponse[UserStats])
def get_my_stats(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    stats = enrollment_service.get_user_stats(db, user_id=current_user.id)
    return APIResponse(message="User statistics retrieved successfully", data=stats)


@router.get("/me/streak", response_model=APIResponse[Streak])
def get_my_streak(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    streak = enrollment_service.get_user_learning_streak(db, user_id=current_user.id)
    return APIResponse(message="Learning streak retrieved successfully", data=Streak(streak_days=streak))


@router.get("/recent", response_model=APIResponse[List[RoadmapEnrollment]])
def get_recent_enrollments(
    *,
    db: Session = Depends(deps.get_db),
    limit: int = Query(10),
    admin: User = Depends(deps.require_admin)
):
    enrollments = enrollment_service.get_recent_enrollments(db, limit=limit)
    return APIResponse(
        message="Recent enrollments retrieved successfully",
        data=[RoadmapEnrollment.model_validate(e) for e in enrollments]
    )
