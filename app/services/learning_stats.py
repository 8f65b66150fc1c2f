"""Read-only statistics derived from enrollment and lesson progress rows.

Nothing here is stored; every figure is recomputed from the current rows
on each call.
"""
import logging
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.constants import FAVORITE_CATEGORIES_LIMIT, StreakSourceEnum
from app.core.exceptions import NotFoundError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.roadmap import roadmap as crud_roadmap
from app.schemas.stats import (
    CategoryCount,
    CategoryLessonBreakdown,
    LearnerEnrollmentStats,
    LearnerLessonStats,
    LessonCompletionRate,
    RoadmapStatistics,
)

logger = logging.getLogger(__name__)


def calculate_streak(completion_times: Iterable[datetime], today: Optional[date] = None) -> int:
    """Count consecutive completion days walking back from ``today``.

    Each completion day may be at most one day before the last counted day
    (or ``today`` for the first one). Several completions on one day count
    once. Days after ``today`` are ignored.
    """
    today = today or datetime.utcnow().date()
    days = sorted(
        {moment.date() for moment in completion_times if moment is not None and moment.date() <= today},
        reverse=True,
    )

    streak = 0
    current = today
    for day in days:
        if (current - day).days <= 1:
            streak += 1
            current = day
        else:
            break
    return streak


def _rate(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


class LearningStatsService:

    def get_learner_streak(
        self,
        db: Session,
        user_id: int,
        source: StreakSourceEnum = StreakSourceEnum.LESSONS,
        today: Optional[date] = None,
    ) -> int:
        if source == StreakSourceEnum.ROADMAPS:
            completion_times = crud_enrollment.get_completion_times(db, user_id)
        else:
            completion_times = crud_lesson_progress.get_completion_times(db, user_id)
        return calculate_streak(completion_times, today=today)

    def _get_roadmap_or_raise(self, db: Session, roadmap_id: int):
        roadmap = crud_roadmap.get(db, id=roadmap_id)
        if not roadmap:
            raise NotFoundError(f"Roadmap with ID '{roadmap_id}' not found")
        return roadmap

    def get_roadmap_completion_rate(self, db: Session, roadmap_id: int) -> float:
        self._get_roadmap_or_raise(db, roadmap_id)
        total, completed = crud_enrollment.count_by_roadmap(db, roadmap_id)
        return round(_rate(completed, total), 2)

    def get_roadmap_statistics(self, db: Session, roadmap_id: int) -> RoadmapStatistics:
        self._get_roadmap_or_raise(db, roadmap_id)
        enrollments = crud_enrollment.get_by_roadmap(db, roadmap_id)

        total = len(enrollments)
        completed = [e for e in enrollments if e.is_completed]
        average_progress = sum(e.progress for e in enrollments) / total if total else 0.0

        completion_days = [
            (e.completed_at - e.enrolled_at).total_seconds() / 86400
            for e in completed if e.completed_at and e.enrolled_at
        ]
        average_completion_days = sum(completion_days) / len(completion_days) if completion_days else 0.0

        return RoadmapStatistics(
            roadmap_id=roadmap_id,
            total_enrollments=total,
            completed_enrollments=len(completed),
            completion_rate=round(_rate(len(completed), total), 2),
            average_progress=round(average_progress, 2),
            average_completion_days=round(average_completion_days, 2),
        )

    def get_learner_enrollment_stats(self, db: Session, user_id: int) -> LearnerEnrollmentStats:
        rows = crud_enrollment.get_with_category_by_user(db, user_id)

        total = len(rows)
        completions = sum(1 for enrollment, _ in rows if enrollment.is_completed)
        average_score = sum(enrollment.average_score for enrollment, _ in rows) / total if total else 0.0

        category_counts = Counter(label for _, label in rows)
        favorites = sorted(category_counts.items(), key=lambda item: (-item[1], item[0]))[:FAVORITE_CATEGORIES_LIMIT]

        return LearnerEnrollmentStats(
            total_enrollments=total,
            total_completions=completions,
            average_score=round(average_score, 2),
            completion_rate=_rate(completions, total),
            favorite_categories=[CategoryCount(category=label, count=count) for label, count in favorites],
        )

    def get_learner_lesson_stats(self, db: Session, user_id: int) -> LearnerLessonStats:
        rows = crud_lesson_progress.get_with_lesson_details_by_user(db, user_id)

        total = len(rows)
        completed = [(progress, minutes) for progress, minutes, _ in rows if progress.is_completed]
        scores = [progress.score for progress, _, _ in rows if progress.score is not None]
        average_score = sum(scores) / len(scores) if scores else 0.0

        per_category = defaultdict(lambda: [0, 0])
        for progress, _, label in rows:
            per_category[label][0] += 1
            if progress.is_completed:
                per_category[label][1] += 1

        return LearnerLessonStats(
            total_lessons=total,
            completed_lessons=len(completed),
            completion_rate=_rate(len(completed), total),
            average_score=round(average_score, 2),
            total_learning_minutes=sum(minutes or 0 for _, minutes in completed),
            category_breakdown=[
                CategoryLessonBreakdown(
                    category=label,
                    total_lessons=counts[0],
                    completed_lessons=counts[1],
                    completion_rate=_rate(counts[1], counts[0]),
                )
                for label, counts in sorted(per_category.items())
            ],
        )

    def get_roadmap_lesson_completion_rates(self, db: Session, roadmap_id: int):
        self._get_roadmap_or_raise(db, roadmap_id)
        lessons = crud_lesson.get_active_by_roadmap(db, roadmap_id=roadmap_id)
        counts = crud_lesson_progress.count_by_lessons(db, [lesson.id for lesson in lessons])
        total_enrollments, _ = crud_enrollment.count_by_roadmap(db, roadmap_id)

        rates = []
        for lesson in lessons:
            attempts, completions = counts.get(lesson.id, (0, 0))
            rates.append(LessonCompletionRate(
                lesson_id=lesson.id,
                title=lesson.title,
                order_index=lesson.order_index,
                total_attempts=attempts,
                completions=completions,
                completion_rate=_rate(completions, total_enrollments),
            ))
        return rates


learning_stats_service = LearningStatsService()
