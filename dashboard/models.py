# dashboard/models.py
from sqlalchemy import Column, String, ForeignKey, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class Favorite(Base):
    """A course the user pinned to their dashboard."""
    __tablename__ = "favorites"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: str = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="favorites")
    course = relationship("Course")

    __table_args__ = (UniqueConstraint('user_id', 'course_id', name='unique_user_course_favorite'),)


class LessonPlan(Base):
    """A user's own class plan: a checklist with an optional due date."""
    __tablename__ = "lesson_plans"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title: str = Column(String, nullable=False)
    course_id: Optional[str] = Column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    items: list = Column(JSON, nullable=False, default=list)  # [{"text": ..., "completed": ...}]
    due_date: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="lesson_plans")
    course = relationship("Course")
