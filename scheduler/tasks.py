# scheduler/tasks.py
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from auth.models import Profile
from database import SessionLocal
from subscription.models import Subscription
from subscription.services import SubscriptionService, TierService
from subscription.states import SubscriptionStatus
from config import settings

logger = logging.getLogger(__name__)


def expire_lapsed_subscriptions(db: Optional[Session] = None, now: Optional[datetime] = None) -> int:
    """Move users whose canceled subscription ran out back to the lowest tier.

    A canceled subscription keeps its tier until ``next_billing_date``. Each
    lapsed subscription is handled once and stamped with ``expired_at``, so a
    tier an admin grants afterwards is never taken back by a later run. Users
    holding another active subscription are left alone. Returns the number of
    profiles downgraded.
    """
    logger.info("Starting expire_lapsed_subscriptions task")
    owns_session = db is None
    db = db or SessionLocal()
    now = now or datetime.utcnow()
    downgraded = 0
    try:
        lowest = TierService.get_lowest_tier(db)
        if lowest is None:
            logger.warning("No tiers configured; skipping lapse sweep")
            return 0
        lapsed = db.query(Subscription).filter(
            Subscription.status == SubscriptionStatus.CANCELED.value,
            Subscription.expired_at.is_(None),
            Subscription.next_billing_date.isnot(None),
            Subscription.next_billing_date < now,
        ).all()
        for user_id in {subscription.user_id for subscription in lapsed}:
            if SubscriptionService.get_active_subscription(user_id, db):
                continue
            profile = db.query(Profile).filter(Profile.id == user_id).first()
            if profile is None or profile.is_admin or profile.tier_id == lowest.id:
                continue
            # Only downgrade profiles still sitting on a tier they paid for
            if not any(s.user_id == user_id and s.tier_id == profile.tier_id for s in lapsed):
                continue
            profile.tier_id = lowest.id
            downgraded += 1
            logger.info(f"User {user_id} subscription lapsed; moved to tier {lowest.name}")
        for subscription in lapsed:
            subscription.expired_at = now
        db.commit()
    except Exception as e:
        logger.error(f"Error in expire_lapsed_subscriptions: {str(e)}", exc_info=True)
        db.rollback()
        downgraded = 0
    finally:
        if owns_session:
            db.close()
    logger.info(f"Finished expire_lapsed_subscriptions task ({downgraded} downgraded)")
    return downgraded


def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(expire_lapsed_subscriptions, 'interval', minutes=settings.LAPSE_SWEEP_INTERVAL_MINUTES)
    scheduler.start()
    return scheduler
