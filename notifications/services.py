# notifications/services.py
import logging

from sqlalchemy.orm import Session
from datetime import datetime
from typing import List
from notifications.models import Notification
from errors import NotFound

logger = logging.getLogger(__name__)


class NotificationService:
    @staticmethod
    def notify(user_id: str, type: str, title: str, message: str, db: Session) -> Notification:
        notification = Notification(user_id=user_id, type=type, title=title, message=message)
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(f"Notified user {user_id}: {type}")
        return notification

    @staticmethod
    def list_for_user(user_id: str, db: Session, unread_only: bool = False) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).all()

    @staticmethod
    def unread_count(user_id: str, db: Session) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        ).count()

    @staticmethod
    def mark_read(notification_id: str, user_id: str, db: Session) -> Notification:
        notification = db.query(Notification).filter(
            Notification.id == notification_id, Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotFound("Notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(user_id: str, db: Session) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        ).update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
        db.commit()
        return updated
