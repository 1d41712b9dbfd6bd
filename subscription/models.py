# subscription/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class Tier(Base):
    """A named access level; higher permission_level unlocks everything below it."""
    __tablename__ = "tiers"

    id: int = Column(Integer, primary_key=True, index=True)
    name: str = Column(String, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    price_monthly: float = Column(Numeric(10, 2), nullable=False, default=0)
    download_limit: Optional[int] = Column(Integer, nullable=True)  # None = unlimited, per calendar month
    permission_level: int = Column(Integer, nullable=False, unique=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Subscription(Base):
    """Represents a user subscription mirrored from the payment provider."""
    __tablename__ = "subscriptions"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_id: int = Column(Integer, ForeignKey("tiers.id"), nullable=False)
    status: str = Column(String, nullable=False, default="active")  # active, past_due, canceled
    payment_provider_id: Optional[str] = Column(String, unique=True, nullable=True)
    next_billing_date: Optional[datetime] = Column(DateTime, nullable=True)
    expired_at: Optional[datetime] = Column(DateTime, nullable=True)  # set once the lapse sweep has handled it
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="subscriptions")
    tier = relationship("Tier")
