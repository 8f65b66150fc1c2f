from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

class Roadmap(Base):
    __tablename__ = "roadmaps"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # Cached count, only ever changed with a single UPDATE ... SET x = x +/- 1
    enrolled_users = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("Category", back_populates="roadmaps")
    lessons = relationship("Lesson", back_populates="roadmap", order_by="Lesson.order_index", cascade="all, delete-orphan")
    enrollments = relationship("RoadmapEnrollment", back_populates="roadmap", cascade="all, delete-orphan")
