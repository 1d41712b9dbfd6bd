# support/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from support.schemas import MessageCreate, TicketCreate, TicketDetail, TicketStatusUpdate, TicketSummary
from support.services import SupportService
from auth.routes import check_admin_role, get_current_user, get_optional_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/support", tags=["support"])


@router.post("/tickets", response_model=TicketDetail)
def create_ticket(
    body: TicketCreate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Open a ticket. Works for anonymous visitors who leave an email."""
    return SupportService.create_ticket(body, current_user, db)


@router.get("/tickets", response_model=List[TicketSummary])
def list_my_tickets(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return SupportService.list_user_tickets(current_user, db)


@router.get("/tickets/{ticket_id}", response_model=TicketDetail)
def get_ticket(ticket_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return SupportService.get_ticket(ticket_id, current_user, db)


@router.post("/tickets/{ticket_id}/messages", response_model=TicketDetail)
def add_message(
    ticket_id: str,
    body: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return SupportService.add_message(ticket_id, body, current_user, db)


@router.get("/admin/tickets", response_model=List[TicketSummary])
def list_all_tickets(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role),
):
    """Every ticket, optionally filtered by status."""
    return SupportService.list_all_tickets(db, status)


@router.post("/admin/tickets/{ticket_id}/reply", response_model=TicketDetail)
def reply_to_ticket(
    ticket_id: str,
    body: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role),
):
    return SupportService.add_message(ticket_id, body, current_user, db, from_support=True)


@router.patch("/admin/tickets/{ticket_id}/status", response_model=TicketDetail)
def update_ticket_status(
    ticket_id: str,
    body: TicketStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role),
):
    return SupportService.set_status(ticket_id, body.status, db)
