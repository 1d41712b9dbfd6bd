# support/models.py
from sqlalchemy import Column, String, ForeignKey, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: Optional[str] = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email: Optional[str] = Column(String, nullable=True)  # required when user_id is null
    subject: str = Column(String, nullable=False)
    priority: str = Column(String, nullable=False, default="medium")  # low, medium, high
    status: str = Column(String, nullable=False, default="open")  # open, in_progress, resolved, closed
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
    messages = relationship(
        "SupportMessage", back_populates="ticket", cascade="all, delete-orphan", order_by="SupportMessage.created_at"
    )


class SupportMessage(Base):
    __tablename__ = "support_messages"

    id: str = Column(String(36), primary_key=True, default=new_id)
    ticket_id: str = Column(String(36), ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Optional[str] = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message: str = Column(Text, nullable=False)
    is_from_support: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    ticket = relationship("SupportTicket", back_populates="messages")
