import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.constants import ProgressSourceEnum
from app.core.database import unit_of_work
from app.core.exceptions import NotFoundError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.models.enrollment import RoadmapEnrollment

logger = logging.getLogger(__name__)


def calculate_progress(total_lessons: int, completed_lessons: int) -> float:
    """Percentage of completed lessons; a roadmap without lessons is 0% done."""
    if total_lessons <= 0:
        return 0.0
    return (completed_lessons / total_lessons) * 100


def calculate_average_score(scores: Iterable[Optional[float]]) -> float:
    scored = [score for score in scores if score is not None]
    if not scored:
        return 0.0
    return sum(scored) / len(scored)


class ProgressCalculator:
    """Derives an enrollment's aggregate fields from its lesson progress rows."""

    def recalculate(self, db: Session, user_id: int, roadmap_id: int, now: datetime = None) -> RoadmapEnrollment:
        now = now or datetime.utcnow()
        with unit_of_work(db):
            enrollment = crud_enrollment.get_by_user_and_roadmap(db, user_id, roadmap_id, for_update=True)
            if not enrollment:
                raise NotFoundError("User is not enrolled in this roadmap")

            lessons = crud_lesson.get_active_by_roadmap(db, roadmap_id=roadmap_id)
            records = crud_lesson_progress.get_for_lessons(db, user_id, [lesson.id for lesson in lessons])

            completed = [
                records[lesson.id] for lesson in lessons
                if lesson.id in records and records[lesson.id].is_completed
            ]
            progress = calculate_progress(len(lessons), len(completed))
            average_score = calculate_average_score(record.score for record in completed)

            crud_enrollment.write_progress(
                db,
                enrollment=enrollment,
                progress=progress,
                average_score=average_score,
                source=ProgressSourceEnum.CALCULATED,
                now=now,
            )

        logger.info(
            f"Recalculated enrollment {enrollment.id} for user {user_id} in roadmap {roadmap_id}: "
            f"{len(completed)}/{len(lessons)} lessons, progress={progress:.2f}, average_score={average_score:.2f}"
        )
        return enrollment


progress_calculator = ProgressCalculator()
