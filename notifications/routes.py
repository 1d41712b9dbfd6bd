# notifications/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from notifications.schemas import NotificationResponse
from notifications.services import NotificationService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Caller's notifications, newest first."""
    return NotificationService.list_for_user(current_user.id, db, unread_only)


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> dict:
    return {"count": NotificationService.unread_count(current_user.id, db)}


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> dict:
    return {"success": True, "updated": NotificationService.mark_all_read(current_user.id, db)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return NotificationService.mark_read(notification_id, current_user.id, db)
