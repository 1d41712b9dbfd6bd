# notifications/models.py
from sqlalchemy import Column, String, ForeignKey, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class Notification(Base):
    __tablename__ = "notifications"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: str = Column(String, nullable=False)  # purchase, subscription, certificate, support
    title: str = Column(String, nullable=False)
    message: str = Column(Text, nullable=False)
    is_read: bool = Column(Boolean, nullable=False, default=False)
    read_at: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="notifications")
