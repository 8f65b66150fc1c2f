from sqlalchemy.orm import Session
from typing import Optional

from app.crud.base import CRUDBase
from app.models.roadmap import Roadmap
from app.schemas.roadmap import RoadmapCreate, RoadmapUpdate

class CRUDRoadmap(CRUDBase[Roadmap, RoadmapCreate, RoadmapUpdate]):

    def get_active(self, db: Session, id: int) -> Optional[Roadmap]:
        return (
            db.query(Roadmap)
            .filter(Roadmap.id == id)
            .filter(Roadmap.is_active.is_(True))
            .first()
        )

    def increment_enrolled_users(self, db: Session, roadmap_id: int) -> int:
        """Atomically bump the cached enrolled-learner count; returns rows matched."""
        return (
            db.query(Roadmap)
            .filter(Roadmap.id == roadmap_id)
            .update({Roadmap.enrolled_users: Roadmap.enrolled_users + 1}, synchronize_session=False)
        )

    def decrement_enrolled_users(self, db: Session, roadmap_id: int) -> int:
        return (
            db.query(Roadmap)
            .filter(Roadmap.id == roadmap_id)
            .filter(Roadmap.enrolled_users > 0)
            .update({Roadmap.enrolled_users: Roadmap.enrolled_users - 1}, synchronize_session=False)
        )

roadmap = CRUDRoadmap(Roadmap)
