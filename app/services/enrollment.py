import logging
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import (
    MAX_PROGRESS,
    MIN_PROGRESS,
    RECENT_ENROLLMENTS_LIMIT,
    EnrollmentStatusFilterEnum,
    ProgressSourceEnum,
    StreakSourceEnum,
)
from app.core.database import unit_of_work
from app.core.exceptions import BadRequestError, ConflictError, NotFoundError, ServiceError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.roadmap import roadmap as crud_roadmap
from app.crud.user import user as crud_user
from app.models.enrollment import RoadmapEnrollment
from app.schemas.enrollment import BulkEnrollFailure, BulkEnrollResult
from app.schemas.stats import RoadmapStatistics, UserStats
from app.services.learning_stats import learning_stats_service
from app.services.progress_calculator import progress_calculator

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Enrollment lifecycle: joining and leaving roadmaps and the enrollment aggregate."""

    def _get_user_or_raise(self, db: Session, user_id: int):
        user = crud_user.get(db, id=user_id)
        if not user:
            raise NotFoundError(f"User with ID '{user_id}' not found")
        return user

    def _get_active_roadmap_or_raise(self, db: Session, roadmap_id: int):
        roadmap = crud_roadmap.get_active(db, id=roadmap_id)
        if not roadmap:
            raise NotFoundError(f"Roadmap with ID '{roadmap_id}' not found")
        return roadmap

    def _get_enrollment_or_raise(self, db: Session, user_id: int, roadmap_id: int, for_update: bool = False):
        enrollment = crud_enrollment.get_by_user_and_roadmap(db, user_id, roadmap_id, for_update=for_update)
        if not enrollment:
            raise NotFoundError("User is not enrolled in this roadmap")
        return enrollment

    def enroll_user(self, db: Session, user_id: int, roadmap_id: int) -> RoadmapEnrollment:
        logger.info(f"Enrolling user {user_id} in roadmap {roadmap_id}")
        try:
            with unit_of_work(db):
                self._get_user_or_raise(db, user_id)
                self._get_active_roadmap_or_raise(db, roadmap_id)

                if crud_enrollment.exists(db, user_id, roadmap_id):
                    raise ConflictError("User is already enrolled in this roadmap")

                try:
                    enrollment = crud_enrollment.create_for_user(
                        db, user_id=user_id, roadmap_id=roadmap_id, now=datetime.utcnow()
                    )
                except IntegrityError as e:
                    # Lost a race with a concurrent enroll for the same pair.
                    raise ConflictError("User is already enrolled in this roadmap") from e

                crud_roadmap.increment_enrolled_users(db, roadmap_id)
        except ServiceError as e:
            logger.warning(f"Failed to enroll user {user_id} in roadmap {roadmap_id}: {e.detail}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to enroll user {user_id} in roadmap {roadmap_id}: {e}", exc_info=True)
            raise

        return enrollment

    def unenroll_user(self, db: Session, user_id: int, roadmap_id: int) -> bool:
        """Remove the enrollment together with the learner's progress in the roadmap.

        Returns False when there was nothing to remove.
        """
        logger.info(f"Unenrolling user {user_id} from roadmap {roadmap_id}")
        try:
            with unit_of_work(db):
                self._get_user_or_raise(db, user_id)

                enrollment = crud_enrollment.get_by_user_and_roadmap(db, user_id, roadmap_id, for_update=True)
                if not enrollment:
                    return False

                crud_enrollment.delete(db, id=enrollment.id)
                crud_roadmap.decrement_enrolled_users(db, roadmap_id)
                removed = crud_lesson_progress.delete_by_user_in_roadmap(db, user_id, roadmap_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to unenroll user {user_id} from roadmap {roadmap_id}: {e}", exc_info=True)
            raise

        logger.info(f"Unenrolled user {user_id} from roadmap {roadmap_id}, removed {removed} progress records")
        return True

    def is_user_enrolled(self, db: Session, user_id: int, roadmap_id: int) -> bool:
        logger.debug(f"Checking enrollment of user {user_id} in roadmap {roadmap_id}")
        return crud_enrollment.exists(db, user_id, roadmap_id)

    def get_enrollment_details(self, db: Session, user_id: int, roadmap_id: int) -> RoadmapEnrollment:
        return self._get_enrollment_or_raise(db, user_id, roadmap_id)

    def get_user_enrollments(
        self,
        db: Session,
        user_id: int,
        status: Union[EnrollmentStatusFilterEnum, str] = EnrollmentStatusFilterEnum.ALL,
    ) -> List[RoadmapEnrollment]:
        try:
            status = EnrollmentStatusFilterEnum(status)
        except ValueError:
            raise BadRequestError(f"Unknown enrollment status '{status}'")
        return crud_enrollment.get_by_user(db, user_id, status=status)

    def update_enrollment_progress(
        self,
        db: Session,
        user_id: int,
        roadmap_id: int,
        progress: float,
        average_score: Optional[float] = None,
    ) -> RoadmapEnrollment:
        """Manually override an enrollment's progress.

        The value is tagged as manual and stands until the next lesson progress
        change triggers a recalculation, which overwrites it. Against a
        concurrent recalculation the last committed write wins.
        """
        logger.info(
            f"Manually updating progress of user {user_id} in roadmap {roadmap_id}: "
            f"progress={progress}, average_score={average_score}"
        )
        if progress is None or not MIN_PROGRESS <= progress <= MAX_PROGRESS:
            raise BadRequestError("Progress must be between 0 and 100")
        if average_score is not None and not MIN_PROGRESS <= average_score <= MAX_PROGRESS:
            raise BadRequestError("Average score must be between 0 and 100")

        with unit_of_work(db):
            enrollment = self._get_enrollment_or_raise(db, user_id, roadmap_id, for_update=True)
            crud_enrollment.write_progress(
                db,
                enrollment=enrollment,
                progress=progress,
                average_score=average_score,
                source=ProgressSourceEnum.MANUAL,
                now=datetime.utcnow(),
            )
        return enrollment

    def recalculate_enrollment_progress(self, db: Session, user_id: int, roadmap_id: int) -> RoadmapEnrollment:
        logger.info(f"Recalculating progress of user {user_id} in roadmap {roadmap_id}")
        return progress_calculator.recalculate(db, user_id, roadmap_id)

    def get_user_stats(self, db: Session, user_id: int) -> UserStats:
        self._get_user_or_raise(db, user_id)

        stats = learning_stats_service.get_learner_enrollment_stats(db, user_id)
        streak = learning_stats_service.get_learner_streak(db, user_id, source=StreakSourceEnum.ROADMAPS)

        return UserStats(
            total_enrollments=stats.total_enrollments,
            total_completions=stats.total_completions,
            average_score=stats.average_score,
            completion_rate=stats.completion_rate,
            streak_days=streak,
            favorite_categories=stats.favorite_categories,
        )

    def get_user_learning_streak(self, db: Session, user_id: int) -> int:
        self._get_user_or_raise(db, user_id)
        return learning_stats_service.get_learner_streak(db, user_id, source=StreakSourceEnum.ROADMAPS)

    def get_roadmap_completion_rate(self, db: Session, roadmap_id: int) -> float:
        return learning_stats_service.get_roadmap_completion_rate(db, roadmap_id)

    def get_roadmap_statistics(self, db: Session, roadmap_id: int) -> RoadmapStatistics:
        return learning_stats_service.get_roadmap_statistics(db, roadmap_id)

    def get_recent_enrollments(self, db: Session, limit: int = 10) -> List[RoadmapEnrollment]:
        if limit < 1 or limit > RECENT_ENROLLMENTS_LIMIT:
            raise BadRequestError(f"Limit must be between 1 and {RECENT_ENROLLMENTS_LIMIT}")
        return crud_enrollment.get_recent(db, limit=limit)

    def bulk_enroll_users(self, db: Session, user_ids: List[int], roadmap_id: int) -> BulkEnrollResult:
        """Enroll each user independently; one failure never undoes another success."""
        logger.info(f"Bulk enrolling {len(user_ids or [])} users in roadmap {roadmap_id}")

        if not user_ids:
            raise BadRequestError("At least one user ID is required")
        if len(user_ids) > settings.BULK_ENROLL_LIMIT:
            raise BadRequestError(f"Cannot enroll more than {settings.BULK_ENROLL_LIMIT} users at once")

        self._get_active_roadmap_or_raise(db, roadmap_id)

        result = BulkEnrollResult()
        for user_id in user_ids:
            try:
                self.enroll_user(db, user_id, roadmap_id)
                result.successful.append(user_id)
            except ServiceError as e:
                result.failed.append(BulkEnrollFailure(user_id=user_id, code=e.code, error=e.message))
            except SQLAlchemyError as e:
                result.failed.append(BulkEnrollFailure(user_id=user_id, code="DATABASE_ERROR", error=str(e)))

        logger.info(
            f"Bulk enrollment in roadmap {roadmap_id}: "
            f"{len(result.successful)} succeeded, {len(result.failed)} failed"
        )
        return result


enrollment_service = EnrollmentService()
