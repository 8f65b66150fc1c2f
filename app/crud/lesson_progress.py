from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, selectinload
from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime

from app.crud.base import CRUDBase
from app.models.lesson_progress import LessonProgress
from app.models.lesson import Lesson
from app.models.roadmap import Roadmap
from app.models.category import Category
from app.schemas.lesson_progress import LessonProgressUpdate

class CRUDLessonProgress(CRUDBase[LessonProgress, LessonProgressUpdate, LessonProgressUpdate]):

    def get_by_user_and_lesson(
        self, db: Session, user_id: int, lesson_id: int, *, for_update: bool = False
    ) -> Optional[LessonProgress]:
        query = (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def upsert(
        self, db: Session, *, user_id: int, lesson_id: int, changes: Dict[str, Any], now: datetime
    ) -> LessonProgress:
        """Create or update the single progress row for (user, lesson).

        ``changes`` holds only the fields the caller wants to set; a missing
        key leaves the stored value alone. A second concurrent insert for the
        same pair fails on the unique constraint rather than duplicating.
        """
        progress = self.get_by_user_and_lesson(db, user_id, lesson_id, for_update=True)
        if progress is None:
            progress = LessonProgress(user_id=user_id, lesson_id=lesson_id, is_completed=False)
            db.add(progress)

        if "score" in changes:
            progress.score = changes["score"]
        if "is_completed" in changes and changes["is_completed"] is not None:
            progress.set_completed(changes["is_completed"], now)
        progress.updated_at = now

        db.flush()
        return progress

    def get_for_lessons(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> Dict[int, LessonProgress]:
        lesson_ids = list(lesson_ids)
        if not lesson_ids:
            return {}
        records = (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id.in_(lesson_ids))
            .all()
        )
        return {record.lesson_id: record for record in records}

    def get_by_user_in_roadmap(self, db: Session, user_id: int, roadmap_id: int) -> List[LessonProgress]:
        return (
            db.query(LessonProgress)
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .filter(LessonProgress.user_id == user_id)
            .filter(Lesson.roadmap_id == roadmap_id)
            .order_by(Lesson.order_index, Lesson.id)
            .all()
        )

    def delete_by_user_in_roadmap(self, db: Session, user_id: int, roadmap_id: int) -> int:
        roadmap_lessons = select(Lesson.id).where(Lesson.roadmap_id == roadmap_id)
        deleted = (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id.in_(roadmap_lessons))
            .delete(synchronize_session=False)
        )
        db.expire_all()
        return deleted

    def get_completion_times(self, db: Session, user_id: int) -> List[datetime]:
        rows = (
            db.query(LessonProgress.completed_at)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.is_completed.is_(True))
            .filter(LessonProgress.completed_at.isnot(None))
            .order_by(LessonProgress.completed_at.desc())
            .all()
        )
        return [row.completed_at for row in rows]

    def get_with_lesson_details_by_user(self, db: Session, user_id: int) -> List[Tuple[LessonProgress, int, str]]:
        """Rows of (progress, lesson estimated minutes, category label)."""
        return (
            db.query(LessonProgress, Lesson.estimated_minutes, Category.label)
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .join(Roadmap, Roadmap.id == Lesson.roadmap_id)
            .join(Category, Category.id == Roadmap.category_id)
            .filter(LessonProgress.user_id == user_id)
            .all()
        )

    def get_recent_by_user(self, db: Session, user_id: int, limit: int = 10) -> List[LessonProgress]:
        return (
            db.query(LessonProgress)
            .options(selectinload(LessonProgress.lesson))
            .filter(LessonProgress.user_id == user_id)
            .order_by(LessonProgress.updated_at.desc(), LessonProgress.id.desc())
            .limit(limit)
            .all()
        )

    def count_by_lessons(self, db: Session, lesson_ids: Iterable[int]) -> Dict[int, Tuple[int, int]]:
        """Map lesson id to (attempts, completions)."""
        lesson_ids = list(lesson_ids)
        if not lesson_ids:
            return {}
        rows = (
            db.query(
                LessonProgress.lesson_id,
                func.count(LessonProgress.id),
                func.coalesce(func.sum(case((LessonProgress.is_completed.is_(True), 1), else_=0)), 0),
            )
            .filter(LessonProgress.lesson_id.in_(lesson_ids))
            .group_by(LessonProgress.lesson_id)
            .all()
        )
        return {lesson_id: (int(attempts), int(completions)) for lesson_id, attempts, completions in rows}


lesson_progress = CRUDLessonProgress(LessonProgress)
