# payment/webhooks.py
"""Applies Stripe webhook events to local state.

Stripe redelivers events, sometimes out of order. Every side effect here is
keyed by a Stripe id that carries a unique constraint locally, so applying
the same event twice leaves the database as it was after the first time.
"""
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from auth.models import User
from notifications.services import NotificationService
from shop.models import FileProduct, Product
from shop.services import FILE_PRODUCT, PRODUCT, ShopService
from subscription.models import Tier
from subscription.services import SubscriptionService, TierService
from subscription.states import (
    CHECKOUT_COMPLETED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
    ProviderEvent,
    SubscriptionStatus,
    transition,
)
from errors import ValidationError

logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
SIGNATURE_TOLERANCE = 300


def _period_end(subscription: dict) -> Optional[datetime]:
    # Newer API versions moved the billing period onto the subscription items
    timestamp = subscription.get("current_period_end")
    if not timestamp:
        items = (subscription.get("items") or {}).get("data") or []
        timestamp = items[0].get("current_period_end") if items else None
    return datetime.utcfromtimestamp(timestamp) if timestamp else None


def _from_minor_units(amount) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))


class WebhookReconciler:
    def __init__(self, db: Session, gateway, webhook_secret: str):
        self.db = db
        self.gateway = gateway
        self.webhook_secret = webhook_secret
        self._handlers = {
            CHECKOUT_COMPLETED: self._on_checkout_completed,
            SUBSCRIPTION_CREATED: self._on_subscription_created,
            SUBSCRIPTION_UPDATED: self._on_subscription_updated,
            SUBSCRIPTION_DELETED: self._on_subscription_deleted,
            PAYMENT_INTENT_SUCCEEDED: self._on_payment_intent_succeeded,
        }

    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> dict:
        """Verify the Stripe-Signature header, then parse the body."""
        if not sig_header:
            raise ValidationError("No signature")
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not set")
            raise HTTPException(status_code=500, detail="Webhook secret not configured")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), sig_header, self.webhook_secret, SIGNATURE_TOLERANCE
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValidationError("Invalid signature")
        try:
            return json.loads(payload)
        except ValueError:
            raise ValidationError("Invalid payload")

    def handle_event(self, payload: bytes, sig_header: Optional[str]) -> dict:
        event = self.construct_event(payload, sig_header)
        event_type = event.get("type")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event_type}")
            return {"received": True}
        logger.info(f"Processing {event_type} event {event.get('id')}")
        handler(event["data"]["object"])
        return {"received": True}

    def _on_checkout_completed(self, session: dict) -> None:
        mode = session.get("mode")
        if mode == "subscription" and session.get("subscription"):
            subscription = self.gateway.retrieve_subscription(session["subscription"])
            self._create_subscription(subscription, CHECKOUT_COMPLETED, session.get("metadata") or {})
        elif mode == "payment":
            if session.get("payment_status") not in (None, "paid", "no_payment_required"):
                # Delayed payment methods settle later through payment_intent.succeeded
                logger.info(f"Checkout {session.get('id')} completed with payment_status={session.get('payment_status')}")
                return
            self._record_purchase(session.get("metadata") or {}, session.get("payment_intent"), session.get("amount_total"))

    def _on_subscription_created(self, subscription: dict) -> None:
        self._create_subscription(subscription, SUBSCRIPTION_CREATED, {})

    def _on_subscription_updated(self, subscription: dict) -> None:
        metadata = subscription.get("metadata") or {}
        user_id, tier_id = metadata.get("userId"), metadata.get("tierId")
        if not user_id or not tier_id:
            logger.error(f"Missing userId or tierId in metadata of subscription {subscription.get('id')}")
            return

        existing = SubscriptionService.get_by_provider_id(subscription["id"], self.db)
        if existing is None:
            # Update delivered before the create; record it now
            self._create_subscription(subscription, SUBSCRIPTION_CREATED, metadata)
            existing = SubscriptionService.get_by_provider_id(subscription["id"], self.db)
            if existing is None:
                return

        status = transition(
            SubscriptionStatus(existing.status),
            ProviderEvent(
                type=SUBSCRIPTION_UPDATED,
                provider_status=subscription.get("status"),
                cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
            ),
        )
        existing.status = status.value
        next_billing_date = _period_end(subscription)
        if next_billing_date:
            existing.next_billing_date = next_billing_date
        if status != SubscriptionStatus.CANCELED:
            # A reactivated subscription can lapse again later
            existing.expired_at = None
        self.db.commit()
        logger.info(f"Subscription {subscription['id']} is now {status.value}")

        if status == SubscriptionStatus.ACTIVE:
            TierService.update_user_tier(user_id, int(tier_id), self.db)

    def _on_subscription_deleted(self, subscription: dict) -> None:
        existing = SubscriptionService.get_by_provider_id(subscription["id"], self.db)
        if existing is None:
            logger.info(f"Deleted subscription {subscription['id']} has no local row")
            return
        existing.status = transition(
            SubscriptionStatus(existing.status), ProviderEvent(type=SUBSCRIPTION_DELETED)
        ).value
        self.db.commit()
        logger.info(f"Subscription {subscription['id']} canceled by provider")

    def _on_payment_intent_succeeded(self, intent: dict) -> None:
        metadata = intent.get("metadata") or {}
        if metadata.get("type") not in (FILE_PRODUCT, PRODUCT):
            # Subscription invoices also succeed payment intents
            return
        self._record_purchase(metadata, intent.get("id"), intent.get("amount_received") or intent.get("amount"))

    def _create_subscription(self, subscription: dict, event_type: str, fallback_metadata: dict) -> None:
        metadata = subscription.get("metadata") or {}
        user_id = metadata.get("userId") or fallback_metadata.get("userId")
        tier_id = metadata.get("tierId") or fallback_metadata.get("tierId")
        if not user_id or not tier_id:
            logger.error(f"Missing userId or tierId in metadata of subscription {subscription.get('id')}")
            return
        tier_id = int(tier_id)
        if not self.db.query(User).filter(User.id == user_id).first():
            logger.error(f"Subscription {subscription['id']} references unknown user {user_id}")
            return
        if not self.db.query(Tier).filter(Tier.id == tier_id).first():
            logger.error(f"Subscription {subscription['id']} references unknown tier {tier_id}")
            return

        status = transition(None, ProviderEvent(type=event_type, provider_status=subscription.get("status")))
        created = SubscriptionService.create_once(
            user_id=user_id,
            tier_id=tier_id,
            provider_id=subscription["id"],
            status=status,
            next_billing_date=_period_end(subscription),
            db=self.db,
        )
        if created is None:
            return
        logger.info(f"Recorded {status.value} subscription {subscription['id']} for user {user_id} on tier {tier_id}")
        if status != SubscriptionStatus.ACTIVE:
            return
        TierService.update_user_tier(user_id, tier_id, self.db)
        NotificationService.notify(
            user_id, "subscription", "Subscription confirmed", "Your plan is active. Enjoy the courses!", self.db
        )

    def _record_purchase(self, metadata: dict, payment_intent_id: Optional[str], amount) -> None:
        user_id = metadata.get("userId")
        purchase_type = metadata.get("type")
        if not user_id or not payment_intent_id:
            logger.error(f"Purchase event missing userId or payment intent: {metadata}")
            return
        if not self.db.query(User).filter(User.id == user_id).first():
            logger.error(f"Purchase {payment_intent_id} references unknown user {user_id}")
            return

        if purchase_type == FILE_PRODUCT:
            product = self.db.query(FileProduct).filter(FileProduct.id == metadata.get("fileProductId")).first()
            if not product:
                logger.error(f"Purchase {payment_intent_id} references unknown file product {metadata}")
                return
            purchase = ShopService.record_file_purchase(
                user_id, product.id, payment_intent_id, _from_minor_units(amount) if amount is not None else product.price, self.db
            )
        elif purchase_type == PRODUCT:
            product = self.db.query(Product).filter(Product.id == metadata.get("productId")).first()
            if not product:
                logger.error(f"Purchase {payment_intent_id} references unknown product {metadata}")
                return
            purchase = ShopService.record_product_purchase(
                user_id, product.id, payment_intent_id, _from_minor_units(amount) if amount is not None else product.price, self.db
            )
        else:
            logger.info(f"Ignoring payment {payment_intent_id} with type {purchase_type}")
            return

        if purchase is None:
            return
        logger.info(f"Recorded {purchase_type} purchase {payment_intent_id} for user {user_id}")
        NotificationService.notify(
            user_id, "purchase", "Purchase confirmed", f"'{product.title}' is now available in your library.", self.db
        )
