# support/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class TicketCreate(BaseModel):
    subject: Optional[str] = None
    message: Optional[str] = None
    email: Optional[str] = None
    priority: Optional[str] = None


class MessageCreate(BaseModel):
    message: Optional[str] = None


class TicketStatusUpdate(BaseModel):
    status: str


class SupportMessageResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    message: str
    is_from_support: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TicketSummary(BaseModel):
    id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    subject: str
    priority: str
    status: str
    message_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class TicketDetail(TicketSummary):
    messages: List[SupportMessageResponse] = []
