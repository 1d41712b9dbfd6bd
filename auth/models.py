# auth/models.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime
from typing import Optional
from uuid import uuid4


def new_id() -> str:
    return str(uuid4())


class User(Base):
    """Represents a user account."""
    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=new_id)
    email: str = Column(String, unique=True, index=True, nullable=False)
    name: Optional[str] = Column(String, nullable=True)
    password_hash: str = Column(String, nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")
    file_purchases = relationship("FilePurchase", back_populates="user", cascade="all, delete-orphan")
    product_purchases = relationship("ProductPurchase", back_populates="user", cascade="all, delete-orphan")
    progress = relationship("UserProgress", back_populates="user", cascade="all, delete-orphan")
    downloads = relationship("UserDownload", back_populates="user", cascade="all, delete-orphan")
    certificates = relationship("Certificate", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    admin_actions = relationship("AdminActionLog", back_populates="admin", cascade="all, delete-orphan")
    favorites = relationship("Favorite", back_populates="user", cascade="all, delete-orphan")
    lesson_plans = relationship("LessonPlan", back_populates="user", cascade="all, delete-orphan")


class Profile(Base):
    """Per-user access state: current tier and admin flag."""
    __tablename__ = "profiles"

    id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    tier_id: int = Column(Integer, ForeignKey("tiers.id"), nullable=False)
    is_admin: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="profile")
    tier = relationship("Tier")


class AdminActionLog(Base):
    """Represents a log of admin actions."""
    __tablename__ = "admin_action_logs"

    id: int = Column(Integer, primary_key=True, index=True)
    admin_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action: str = Column(String, nullable=False)
    timestamp: datetime = Column(DateTime, nullable=False, default=datetime.utcnow)

    admin = relationship("User", back_populates="admin_actions")
