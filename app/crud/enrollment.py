from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional, Tuple
from datetime import datetime

from app.crud.base import CRUDBase
from app.core.constants import EnrollmentStatusFilterEnum, ProgressSourceEnum
from app.models.enrollment import RoadmapEnrollment
from app.models.roadmap import Roadmap
from app.models.category import Category
from app.schemas.enrollment import RoadmapEnrollmentCreate, RoadmapEnrollmentProgressUpdate

class CRUDRoadmapEnrollment(CRUDBase[RoadmapEnrollment, RoadmapEnrollmentCreate, RoadmapEnrollmentProgressUpdate]):

    def get_by_user_and_roadmap(
        self, db: Session, user_id: int, roadmap_id: int, *, for_update: bool = False
    ) -> Optional[RoadmapEnrollment]:
        query = (
            db.query(RoadmapEnrollment)
            .filter(RoadmapEnrollment.user_id == user_id)
            .filter(RoadmapEnrollment.roadmap_id == roadmap_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def exists(self, db: Session, user_id: int, roadmap_id: int) -> bool:
        return (
            db.query(RoadmapEnrollment.id)
            .filter(RoadmapEnrollment.user_id == user_id)
            .filter(RoadmapEnrollment.roadmap_id == roadmap_id)
            .first()
        ) is not None

    def create_for_user(self, db: Session, *, user_id: int, roadmap_id: int, now: datetime) -> RoadmapEnrollment:
        enrollment = RoadmapEnrollment(
            user_id=user_id,
            roadmap_id=roadmap_id,
            progress=0,
            average_score=0,
            is_completed=False,
            enrolled_at=now,
            last_accessed_at=now,
            progress_source=ProgressSourceEnum.CALCULATED,
        )
        db.add(enrollment)
        db.flush()
        return enrollment

    def write_progress(
        self,
        db: Session,
        *,
        enrollment: RoadmapEnrollment,
        progress: float,
        average_score: Optional[float],
        source: ProgressSourceEnum,
        now: datetime,
    ) -> RoadmapEnrollment:
        enrollment.progress = progress
        if average_score is not None:
            enrollment.average_score = average_score
        enrollment.last_accessed_at = now
        enrollment.progress_source = source
        if progress >= 100:
            enrollment.mark_completed(now)
        db.add(enrollment)
        db.flush()
        return enrollment

    def get_by_user(
        self,
        db: Session,
        user_id: int,
        status: EnrollmentStatusFilterEnum = EnrollmentStatusFilterEnum.ALL,
    ) -> List[RoadmapEnrollment]:
        query = (
            db.query(RoadmapEnrollment)
            .join(Roadmap, Roadmap.id == RoadmapEnrollment.roadmap_id)
            .options(selectinload(RoadmapEnrollment.roadmap).selectinload(Roadmap.category))
            .filter(RoadmapEnrollment.user_id == user_id)
            .filter(Roadmap.is_active.is_(True))
        )
        if status == EnrollmentStatusFilterEnum.COMPLETED:
            query = query.filter(RoadmapEnrollment.is_completed.is_(True))
        elif status == EnrollmentStatusFilterEnum.ENROLLED:
            query = query.filter(RoadmapEnrollment.is_completed.is_(False))
        return query.order_by(RoadmapEnrollment.enrolled_at.desc(), RoadmapEnrollment.id.desc()).all()

    def get_by_roadmap(self, db: Session, roadmap_id: int) -> List[RoadmapEnrollment]:
        return db.query(RoadmapEnrollment).filter(RoadmapEnrollment.roadmap_id == roadmap_id).all()

    def get_with_category_by_user(self, db: Session, user_id: int) -> List[Tuple[RoadmapEnrollment, str]]:
        return (
            db.query(RoadmapEnrollment, Category.label)
            .join(Roadmap, Roadmap.id == RoadmapEnrollment.roadmap_id)
            .join(Category, Category.id == Roadmap.category_id)
            .filter(RoadmapEnrollment.user_id == user_id)
            .all()
        )

    def count_by_roadmap(self, db: Session, roadmap_id: int) -> Tuple[int, int]:
        """Return (total, completed) enrollment counts for a roadmap."""
        total, completed = (
            db.query(
                func.count(RoadmapEnrollment.id),
                func.coalesce(func.sum(case((RoadmapEnrollment.is_completed.is_(True), 1), else_=0)), 0),
            )
            .filter(RoadmapEnrollment.roadmap_id == roadmap_id)
            .one()
        )
        return int(total or 0), int(completed or 0)

    def get_completion_times(self, db: Session, user_id: int) -> List[datetime]:
        rows = (
            db.query(RoadmapEnrollment.completed_at)
            .filter(RoadmapEnrollment.user_id == user_id)
            .filter(RoadmapEnrollment.is_completed.is_(True))
            .filter(RoadmapEnrollment.completed_at.isnot(None))
            .order_by(RoadmapEnrollment.completed_at.desc())
            .all()
        )
        return [row.completed_at for row in rows]

    def get_recent(self, db: Session, limit: int = 10) -> List[RoadmapEnrollment]:
        return (
            db.query(RoadmapEnrollment)
            .options(selectinload(RoadmapEnrollment.roadmap), selectinload(RoadmapEnrollment.user))
            .order_by(RoadmapEnrollment.enrolled_at.desc(), RoadmapEnrollment.id.desc())
            .limit(limit)
            .all()
        )

enrollment = CRUDRoadmapEnrollment(RoadmapEnrollment)
