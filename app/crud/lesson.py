from sqlalchemy.orm import Session
from typing import List

from app.crud.base import CRUDBase
from app.models.lesson import Lesson
from app.schemas.lesson import LessonCreate, LessonUpdate

class CRUDLesson(CRUDBase[Lesson, LessonCreate, LessonUpdate]):
    def get_active_by_roadmap(self, db: Session, *, roadmap_id: int) -> List[Lesson]:
        return (
            db.query(Lesson)
            .filter(Lesson.roadmap_id == roadmap_id, Lesson.is_active.is_(True))
            .order_by(Lesson.order_index, Lesson.id)
            .all()
        )

lesson = CRUDLesson(Lesson)
