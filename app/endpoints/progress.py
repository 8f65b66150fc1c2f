from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.response import APIResponse
from app.schemas.lesson_progress import (
    BulkLessonProgressRequest,
    BulkLessonProgressResult,
    LessonCompletion,
    LessonProgress,
    LessonProgressUpdate,
)
from app.schemas.stats import LearnerLessonStats, LessonCompletionRate, Streak
from app.services.learning_stats import learning_stats_service
from app.services.lesson_progress import lesson_progress_service
from app.utils import deps

router = APIRouter()


@router.put("/lessons/{lesson_id}", response_model=APIResponse[LessonProgress])
def update_lesson_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    progress_in: LessonProgressUpdate,
    current_user: User = Depends(deps.get_current_user)
):
    progress = lesson_progress_service.update_lesson_progress(
        db, user_id=current_user.id, lesson_id=lesson_id, progress_in=progress_in
    )
    return APIResponse(message="Lesson progress updated", data=LessonProgress.model_validate(progress))


@router.post("/lessons/{lesson_id}/complete", response_model=APIResponse[LessonProgress])
def complete_lesson(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    completion_in: Optional[LessonCompletion] = None,
    current_user: User = Depends(deps.get_current_user)
):
    progress = lesson_progress_service.mark_lesson_completed(
        db, user_id=current_user.id, lesson_id=lesson_id, score=completion_in.score if completion_in else None
    )
    return APIResponse(message="Lesson completed successfully", data=LessonProgress.model_validate(progress))


@router.post("/lessons/{lesson_id}/incomplete", response_model=APIResponse[LessonProgress])
def mark_lesson_incomplete(
    *,
    db: Session = Depends(deps.get_transactional_db),
    lesson_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    progress = lesson_progress_service.mark_lesson_incomplete(db, user_id=current_user.id, lesson_id=lesson_id)
    return APIResponse(message="Lesson marked as incomplete", data=LessonProgress.model_validate(progress))


@router.get("/lessons/{lesson_id}", response_model=APIResponse[LessonProgress])
def get_lesson_progress(
    *,
    db: Session = Depends(deps.get_db),
    lesson_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    progress = lesson_progress_service.get_lesson_progress(db, user_id=current_user.id, lesson_id=lesson_id)
    return APIResponse(message="Lesson progress retrieved successfully", data=LessonProgress.model_validate(progress))


@router.get("/roadmaps/{roadmap_id}", response_model=APIResponse[List[LessonProgress]])
def get_roadmap_progress(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    records = lesson_progress_service.get_user_progress_in_roadmap(db, user_id=current_user.id, roadmap_id=roadmap_id)
    return APIResponse(
        message="Roadmap progress retrieved successfully",
        data=[LessonProgress.model_validate(lp) for lp in records]
    )


@router.delete("/roadmaps/{roadmap_id}", response_model=APIResponse[int])
def reset_roadmap_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    removed = lesson_progress_service.reset_user_progress_in_roadmap(db, user_id=current_user.id, roadmap_id=roadmap_id)
    return APIResponse(message="Roadmap progress reset", data=removed)


@router.get("/roadmaps/{roadmap_id}/lesson-completion-rates", response_model=APIResponse[List[LessonCompletionRate]])
def get_lesson_completion_rates(
    *,
    db: Session = Depends(deps.get_db),
    roadmap_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    rates = learning_stats_service.get_roadmap_lesson_completion_rates(db, roadmap_id=roadmap_id)
    return APIResponse(message="Lesson completion rates retrieved successfully", data=rates)


@router.get("/me/stats", response_model=APIResponse[LearnerLessonStats])
def get_my_lesson_stats(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    stats = learning_stats_service.get_learner_lesson_stats(db, user_id=current_user.id)
    return APIResponse(message="Lesson statistics retrieved successfully", data=stats)


@router.get("/me/streak", response_model=APIResponse[Streak])
def get_my_streak(
    *,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    streak = lesson_progress_service.get_user_learning_streak(db, user_id=current_user.id)
    return APIResponse(message="Learning streak retrieved successfully", data=Streak(streak_days=streak))


@router.get("/me/recent", response_model=APIResponse[List[LessonProgress]])
def get_recent_activity(
    *,
    db: Session = Depends(deps.get_db),
    limit: int = Query(10),
    current_user: User = Depends(deps.get_current_user)
):
    records = lesson_progress_service.get_recent_activity(db, user_id=current_user.id, limit=limit)
    return APIResponse(
        message="Recent activity retrieved successfully",
        data=[LessonProgress.model_validate(lp) for lp in records]
    )


@router.post("/bulk-update", response_model=APIResponse[BulkLessonProgressResult])
def bulk_update_lesson_progress(
    *,
    db: Session = Depends(deps.get_transactional_db),
    bulk_in: BulkLessonProgressRequest,
    admin: User = Depends(deps.require_admin)
):
    result = lesson_progress_service.bulk_update_lesson_progress(db, updates=bulk_in.updates)
    return APIResponse(message="Bulk progress update processed", data=result)
