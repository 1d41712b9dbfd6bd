# progress/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class UserProgress(Base):
    """Watch progress of one user on one lesson."""
    __tablename__ = "user_progress"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id: str = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    time_watched: int = Column(Integer, nullable=False, default=0)  # seconds
    is_completed: bool = Column(Boolean, nullable=False, default=False)
    last_watched_at: datetime = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="progress")
    lesson = relationship("Lesson")

    __table_args__ = (UniqueConstraint('user_id', 'lesson_id', name='unique_user_lesson_progress'),)


class Certificate(Base):
    __tablename__ = "certificates"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id: str = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    certificate_url: Optional[str] = Column(String, nullable=True)
    issued_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="certificates")
    course = relationship("Course")

    __table_args__ = (UniqueConstraint('user_id', 'course_id', name='unique_user_course_certificate'),)
