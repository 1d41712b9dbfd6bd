# support/services.py
import logging
import re

from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
from auth.models import User
from notifications.services import NotificationService
from support.models import SupportMessage, SupportTicket
from support.schemas import MessageCreate, SupportMessageResponse, TicketCreate, TicketDetail, TicketSummary
from errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")
STATUSES = ("open", "in_progress", "resolved", "closed")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _summary(ticket: SupportTicket, message_count: int) -> TicketSummary:
    return TicketSummary(
        id=ticket.id,
        user_id=ticket.user_id,
        email=ticket.email,
        subject=ticket.subject,
        priority=ticket.priority,
        status=ticket.status,
        message_count=message_count,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


def _detail(ticket: SupportTicket) -> TicketDetail:
    return TicketDetail(
        **_summary(ticket, len(ticket.messages)).model_dump(),
        messages=[SupportMessageResponse.model_validate(m) for m in ticket.messages],
    )


class SupportService:
    @staticmethod
    def create_ticket(data: TicketCreate, user: Optional[User], db: Session) -> TicketDetail:
        """Open a ticket with its first message. Anonymous callers must leave an email."""
        subject = (data.subject or "").strip()
        message = (data.message or "").strip()
        email = (data.email or "").strip() or None
        if not subject:
            raise ValidationError("Subject is required")
        if not message:
            raise ValidationError("Message is required")
        if user is None and not email:
            raise ValidationError("Email is required for anonymous requests")
        if email and not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email")
        priority = data.priority or "medium"
        if priority not in PRIORITIES:
            raise ValidationError(f"priority must be one of: {', '.join(PRIORITIES)}")

        ticket = SupportTicket(
            user_id=user.id if user else None,
            email=email,
            subject=subject,
            priority=priority,
            status="open",
        )
        ticket.messages.append(SupportMessage(user_id=ticket.user_id, message=message, is_from_support=False))
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        logger.info(f"New support ticket {ticket.id}: {subject} ({email or 'authenticated user'})")
        return _detail(ticket)

    @staticmethod
    def _list(query, db: Session) -> List[TicketSummary]:
        counts = dict(
            db.query(SupportMessage.ticket_id, func.count(SupportMessage.id)).group_by(SupportMessage.ticket_id).all()
        )
        return [_summary(ticket, counts.get(ticket.id, 0)) for ticket in query.order_by(SupportTicket.created_at.desc()).all()]

    @staticmethod
    def list_user_tickets(user: User, db: Session) -> List[TicketSummary]:
        return SupportService._list(db.query(SupportTicket).filter(SupportTicket.user_id == user.id), db)

    @staticmethod
    def list_all_tickets(db: Session, status: Optional[str] = None) -> List[TicketSummary]:
        query = db.query(SupportTicket)
        if status:
            query = query.filter(SupportTicket.status == status)
        return SupportService._list(query, db)

    @staticmethod
    def _get_visible(ticket_id: str, user: User, db: Session) -> SupportTicket:
        ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
        if not ticket:
            raise NotFound("Ticket not found")
        is_admin = bool(user.profile and user.profile.is_admin)
        if ticket.user_id != user.id and not is_admin:
            raise Forbidden("You do not have access to this ticket")
        return ticket

    @staticmethod
    def get_ticket(ticket_id: str, user: User, db: Session) -> TicketDetail:
        return _detail(SupportService._get_visible(ticket_id, user, db))

    @staticmethod
    def add_message(ticket_id: str, data: MessageCreate, user: User, db: Session, from_support: bool = False) -> TicketDetail:
        ticket = SupportService._get_visible(ticket_id, user, db)
        message = (data.message or "").strip()
        if not message:
            raise ValidationError("Message is required")
        if ticket.status == "closed" and not from_support:
            raise ValidationError("Ticket is closed")

        ticket.messages.append(SupportMessage(user_id=user.id, message=message, is_from_support=from_support))
        if from_support and ticket.status == "open":
            ticket.status = "in_progress"
        db.commit()
        db.refresh(ticket)

        if from_support and ticket.user_id:
            NotificationService.notify(
                ticket.user_id, "support", "New reply on your ticket", f"Support replied to '{ticket.subject}'.", db
            )
        return _detail(ticket)

    @staticmethod
    def set_status(ticket_id: str, status: str, db: Session) -> TicketDetail:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
        ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
        if not ticket:
            raise NotFound("Ticket not found")
        ticket.status = status
        db.commit()
        db.refresh(ticket)
        return _detail(ticket)
