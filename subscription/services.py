# subscription/services.py
import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Optional
from auth.models import Profile, User
from subscription.models import Subscription, Tier
from subscription.states import CANCEL_REQUESTED, ProviderEvent, SubscriptionStatus, transition
from subscription.schemas import TierCreate, TierUpdate
from courses.models import Attachment, Course
from errors import CheckoutError, NotFound, ValidationError
from config import settings

logger = logging.getLogger(__name__)


class TierService:
    @staticmethod
    def get_all_tiers(db: Session) -> List[Tier]:
        return db.query(Tier).order_by(Tier.permission_level.asc()).all()

    @staticmethod
    def get_tier(tier_id: int, db: Session) -> Optional[Tier]:
        return db.query(Tier).filter(Tier.id == tier_id).first()

    @staticmethod
    def get_lowest_tier(db: Session) -> Optional[Tier]:
        return db.query(Tier).order_by(Tier.permission_level.asc()).first()

    @staticmethod
    def update_user_tier(user_id: str, tier_id: int, db: Session) -> None:
        """Point the user's profile at ``tier_id``. Setting the same tier twice is a no-op."""
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        if profile is None:
            logger.warning(f"No profile for user {user_id}; tier {tier_id} not applied")
            return
        if profile.tier_id != tier_id:
            logger.info(f"User {user_id} tier {profile.tier_id} -> {tier_id}")
            profile.tier_id = tier_id
        db.commit()

    @staticmethod
    def create_tier(data: TierCreate, db: Session) -> Tier:
        tier = Tier(**data.model_dump())
        db.add(tier)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("A tier with this permission level already exists")
        db.refresh(tier)
        return tier

    @staticmethod
    def update_tier(tier_id: int, data: TierUpdate, db: Session) -> Tier:
        tier = TierService.get_tier(tier_id, db)
        if not tier:
            raise NotFound("Tier not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(tier, field, value)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("A tier with this permission level already exists")
        db.refresh(tier)
        return tier

    @staticmethod
    def delete_tier(tier_id: int, db: Session) -> None:
        """Delete a tier nothing points at."""
        tier = TierService.get_tier(tier_id, db)
        if not tier:
            raise NotFound("Tier not found")
        in_use = (
            db.query(Profile).filter(Profile.tier_id == tier_id).first()
            or db.query(Subscription).filter(Subscription.tier_id == tier_id).first()
            or db.query(Course).filter(Course.minimum_tier_id == tier_id).first()
            or db.query(Attachment).filter(Attachment.minimum_tier_id == tier_id).first()
        )
        if in_use:
            raise ValidationError("Tier is in use and cannot be deleted")
        db.delete(tier)
        db.commit()


class SubscriptionService:
    @staticmethod
    def get_active_subscription(user_id: str, db: Session) -> Optional[Subscription]:
        return db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        ).order_by(Subscription.created_at.desc()).first()

    @staticmethod
    def get_by_provider_id(provider_id: str, db: Session) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.payment_provider_id == provider_id).first()

    @staticmethod
    def get_user_subscriptions(user_id: str, db: Session) -> List[Subscription]:
        return db.query(Subscription).filter(
            Subscription.user_id == user_id
        ).order_by(Subscription.created_at.desc()).all()

    @staticmethod
    def create_once(
        user_id: str,
        tier_id: int,
        provider_id: str,
        status: SubscriptionStatus,
        next_billing_date: Optional[datetime],
        db: Session,
    ) -> Optional[Subscription]:
        """Insert a subscription keyed by its provider id.

        Returns None when a row for ``provider_id`` already exists, including
        when a concurrent delivery wins the race to the unique constraint.
        """
        if SubscriptionService.get_by_provider_id(provider_id, db):
            return None
        subscription = Subscription(
            user_id=user_id,
            tier_id=tier_id,
            status=status.value,
            payment_provider_id=provider_id,
            next_billing_date=next_billing_date,
        )
        db.add(subscription)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Subscription {provider_id} already recorded by a concurrent delivery")
            return None
        db.refresh(subscription)
        return subscription

    @staticmethod
    def start_checkout(user: User, tier_id: Optional[int], gateway, db: Session) -> dict:
        """Begin a subscription to ``tier_id``.

        Free tiers are applied directly. Paid tiers return the hosted checkout
        session as ``{"session_id", "url"}``.
        """
        if tier_id is None:
            raise CheckoutError(400, "missing_tier", "Tier ID is required")
        tier = TierService.get_tier(tier_id, db)
        if not tier:
            raise CheckoutError(404, "tier_not_found", "Tier not found")

        if tier.price_monthly == 0:
            TierService.update_user_tier(user.id, tier.id, db)
            return {"free": True}

        existing = SubscriptionService.get_active_subscription(user.id, db)
        if existing and existing.tier_id == tier.id:
            raise CheckoutError(400, "already_subscribed", "You already have an active subscription for this tier")

        metadata = {"userId": user.id, "tierId": str(tier.id)}
        session = gateway.create_subscription_checkout(
            tier_name=tier.name,
            tier_description=tier.description,
            price_monthly=tier.price_monthly,
            customer_email=user.email,
            metadata=metadata,
            success_url=f"{settings.BASE_URL}/plans?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.BASE_URL}/plans?canceled=true",
        )
        return {"free": False, "session_id": session.id, "url": session.url}

    @staticmethod
    def cancel_active(user: User, gateway, db: Session) -> Subscription:
        """Cancel at period end with the provider and mark the local row canceled now."""
        subscription = SubscriptionService.get_active_subscription(user.id, db)
        if not subscription:
            raise NotFound("No active subscription found")
        if not subscription.payment_provider_id:
            raise ValidationError("Subscription does not have a payment provider ID")

        try:
            gateway.cancel_at_period_end(subscription.payment_provider_id)
        except HTTPException:
            # The customer.subscription.updated webhook will reconcile later
            logger.warning(f"Provider cancel failed for {subscription.payment_provider_id}; canceling locally")

        new_status = transition(SubscriptionStatus(subscription.status), ProviderEvent(type=CANCEL_REQUESTED))
        subscription.status = new_status.value
        db.commit()
        db.refresh(subscription)
        logger.info(f"User {user.id} canceled subscription {subscription.id}")
        return subscription
