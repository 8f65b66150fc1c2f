from sqlalchemy import Column, Integer, Float, Boolean, ForeignKey, DateTime, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import ProgressSourceEnum

class RoadmapEnrollment(Base):
    __tablename__ = "roadmap_enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "roadmap_id", name="uq_roadmap_enrollments_user_roadmap"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    roadmap_id = Column(Integer, ForeignKey("roadmaps.id"), nullable=False, index=True)
    progress = Column(Float, nullable=False, default=0)
    average_score = Column(Float, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    enrolled_at = Column(DateTime, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    progress_source = Column(SQLEnum(ProgressSourceEnum), nullable=False, default=ProgressSourceEnum.CALCULATED)

    user = relationship("User", back_populates="enrollments")
    roadmap = relationship("Roadmap", back_populates="enrollments")

    def mark_completed(self, when):
        # One-directional: once completed, a later drop in progress keeps the flag and timestamp.
        if not self.is_completed:
            self.is_completed = True
            self.completed_at = when
