import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import MAX_PROGRESS, MIN_PROGRESS, RECENT_ACTIVITY_LIMIT, ProgressSourceEnum, StreakSourceEnum
from app.core.database import unit_of_work
from app.core.exceptions import BadRequestError, NotFoundError, ServiceError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.user import user as crud_user
from app.models.lesson_progress import LessonProgress
from app.schemas.lesson_progress import (
    BulkLessonProgressFailure,
    BulkLessonProgressItem,
    BulkLessonProgressResult,
    LessonProgressUpdate,
)
from app.services.learning_stats import learning_stats_service
from app.services.progress_calculator import progress_calculator

logger = logging.getLogger(__name__)


class LessonProgressService:

    def _get_user_or_raise(self, db: Session, user_id: int):
        if not crud_user.exists(db, user_id):
            raise NotFoundError(f"User with ID '{user_id}' not found")

    def _require_enrollment(self, db: Session, user_id: int, roadmap_id: int, message: str):
        if not crud_enrollment.exists(db, user_id, roadmap_id):
            raise BadRequestError(message)

    def update_lesson_progress(
        self, db: Session, user_id: int, lesson_id: int, progress_in: LessonProgressUpdate
    ) -> LessonProgress:
        """Write the learner's progress on a lesson and refresh the roadmap enrollment.

        The progress row and the recalculated enrollment are committed together.
        """
        logger.info(f"Updating progress of user {user_id} on lesson {lesson_id}: {progress_in.model_dump(exclude_unset=True)}")
        changes = progress_in.model_dump(exclude_unset=True)

        if changes.get("score") is not None and not MIN_PROGRESS <= changes["score"] <= MAX_PROGRESS:
            raise BadRequestError("Score must be between 0 and 100")

        now = datetime.utcnow()
        with unit_of_work(db):
            self._get_user_or_raise(db, user_id)

            lesson = crud_lesson.get(db, id=lesson_id)
            if not lesson:
                raise NotFoundError(f"Lesson with ID '{lesson_id}' not found")

            self._require_enrollment(
                db, user_id, lesson.roadmap_id,
                "User must be enrolled in the roadmap to update lesson progress",
            )

            progress = crud_lesson_progress.upsert(
                db, user_id=user_id, lesson_id=lesson_id, changes=changes, now=now
            )
            progress_calculator.recalculate(db, user_id, lesson.roadmap_id, now=now)

        return progress

    def mark_lesson_completed(
        self, db: Session, user_id: int, lesson_id: int, score: Optional[float] = None
    ) -> LessonProgress:
        progress_in = LessonProgressUpdate(is_completed=True)
        if score is not None:
            progress_in = LessonProgressUpdate(is_completed=True, score=score)
        return self.update_lesson_progress(db, user_id, lesson_id, progress_in)

    def mark_lesson_incomplete(self, db: Session, user_id: int, lesson_id: int) -> LessonProgress:
        return self.update_lesson_progress(
            db, user_id, lesson_id, LessonProgressUpdate(is_completed=False, score=None)
        )

    def bulk_update_lesson_progress(
        self, db: Session, updates: List[BulkLessonProgressItem]
    ) -> BulkLessonProgressResult:
        """Apply each update in its own transaction; a failed item is reported, not raised."""
        logger.info(f"Bulk updating {len(updates)} lesson progress records")

        if len(updates) > settings.BULK_PROGRESS_LIMIT:
            raise BadRequestError(
                f"Cannot update more than {settings.BULK_PROGRESS_LIMIT} progress records at once"
            )

        result = BulkLessonProgressResult()
        for item in updates:
            try:
                self.update_lesson_progress(db, item.user_id, item.lesson_id, item.progress)
                result.successful += 1
            except ServiceError as e:
                result.failed.append(BulkLessonProgressFailure(
                    user_id=item.user_id, lesson_id=item.lesson_id, code=e.code, error=e.message
                ))
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to update progress of user {item.user_id} on lesson {item.lesson_id}: {e}",
                    exc_info=True,
                )
                result.failed.append(BulkLessonProgressFailure(
                    user_id=item.user_id, lesson_id=item.lesson_id, code="DATABASE_ERROR", error=str(e)
                ))

        logger.info(f"Bulk progress update: {result.successful} succeeded, {len(result.failed)} failed")
        return result

    def get_lesson_progress(self, db: Session, user_id: int, lesson_id: int) -> LessonProgress:
        progress = crud_lesson_progress.get_by_user_and_lesson(db, user_id, lesson_id)
        if not progress:
            raise NotFoundError("No progress found for this lesson")
        return progress

    def get_user_progress_in_roadmap(self, db: Session, user_id: int, roadmap_id: int) -> List[LessonProgress]:
        self._require_enrollment(db, user_id, roadmap_id, "User is not enrolled in this roadmap")
        return crud_lesson_progress.get_by_user_in_roadmap(db, user_id, roadmap_id)

    def reset_user_progress_in_roadmap(self, db: Session, user_id: int, roadmap_id: int) -> int:
        """Delete the learner's lesson progress in a roadmap and zero the enrollment.

        A completed enrollment stays completed.
        """
        logger.info(f"Resetting progress of user {user_id} in roadmap {roadmap_id}")
        with unit_of_work(db):
            self._get_user_or_raise(db, user_id)
            enrollment = crud_enrollment.get_by_user_and_roadmap(db, user_id, roadmap_id, for_update=True)
            if not enrollment:
                raise BadRequestError("User is not enrolled in this roadmap")

            removed = crud_lesson_progress.delete_by_user_in_roadmap(db, user_id, roadmap_id)
            crud_enrollment.write_progress(
                db,
                enrollment=enrollment,
                progress=0,
                average_score=0,
                source=ProgressSourceEnum.MANUAL,
                now=datetime.utcnow(),
            )
        return removed

    def get_recent_activity(self, db: Session, user_id: int, limit: int = 10) -> List[LessonProgress]:
        if limit < 1 or limit > RECENT_ACTIVITY_LIMIT:
            raise BadRequestError(f"Limit must be between 1 and {RECENT_ACTIVITY_LIMIT}")
        self._get_user_or_raise(db, user_id)
        return crud_lesson_progress.get_recent_by_user(db, user_id, limit=limit)

    def get_user_learning_streak(self, db: Session, user_id: int) -> int:
        self._get_user_or_raise(db, user_id)
        return learning_stats_service.get_learner_streak(db, user_id, source=StreakSourceEnum.LESSONS)


lesson_progress_service = LessonProgressService()
