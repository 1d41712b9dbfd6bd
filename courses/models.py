# courses/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class Course(Base):
    """A published course; every lesson inherits its minimum tier."""
    __tablename__ = "courses"

    id: str = Column(String(36), primary_key=True, default=new_id)
    title: str = Column(String, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    thumbnail_url: Optional[str] = Column(String, nullable=True)
    minimum_tier_id: int = Column(Integer, ForeignKey("tiers.id"), nullable=False)
    is_published: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    minimum_tier = relationship("Tier")
    modules = relationship(
        "Module", back_populates="course", cascade="all, delete-orphan", order_by="Module.order"
    )


class Module(Base):
    __tablename__ = "modules"

    id: str = Column(String(36), primary_key=True, default=new_id)
    course_id: str = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title: str = Column(String, nullable=False)
    order: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    course = relationship("Course", back_populates="modules")
    lessons = relationship(
        "Lesson", back_populates="module", cascade="all, delete-orphan", order_by="Lesson.order"
    )


class Lesson(Base):
    __tablename__ = "lessons"

    id: str = Column(String(36), primary_key=True, default=new_id)
    module_id: str = Column(String(36), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    title: str = Column(String, nullable=False)
    duration: Optional[int] = Column(Integer, nullable=True)  # seconds
    video_url: Optional[str] = Column(String, nullable=True)
    storage_key: Optional[str] = Column(String, nullable=True)
    order: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    module = relationship("Module", back_populates="lessons")
    attachments = relationship("Attachment", back_populates="lesson", cascade="all, delete-orphan")

    @property
    def has_video(self) -> bool:
        return bool(self.storage_key or self.video_url)


class Attachment(Base):
    """A downloadable file, either attached to a lesson or standalone."""
    __tablename__ = "attachments"

    id: str = Column(String(36), primary_key=True, default=new_id)
    lesson_id: Optional[str] = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True)
    file_name: str = Column(String, nullable=False)
    file_type: Optional[str] = Column(String, nullable=True)
    file_url: Optional[str] = Column(String, nullable=True)
    minimum_tier_id: int = Column(Integer, ForeignKey("tiers.id"), nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    lesson = relationship("Lesson", back_populates="attachments")
    minimum_tier = relationship("Tier")
    downloads = relationship("UserDownload", back_populates="attachment", cascade="all, delete-orphan")
    file_products = relationship("FileProduct", back_populates="attachment", cascade="all, delete")
    bundle_items = relationship("ProductAttachment", back_populates="attachment", cascade="all, delete")


class UserDownload(Base):
    """Last download of an attachment by a user; one row per pair."""
    __tablename__ = "user_downloads"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    attachment_id: str = Column(String(36), ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False)
    downloaded_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="downloads")
    attachment = relationship("Attachment", back_populates="downloads")

    __table_args__ = (UniqueConstraint('user_id', 'attachment_id', name='unique_user_attachment_download'),)
