# payment/gateway.py
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import stripe

from config import Settings
from errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


def to_minor_units(amount) -> int:
    """Convert a price in currency units to the integer cents Stripe expects."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))


def _as_dict(obj) -> dict:
    # StripeObject serialises itself as JSON across SDK versions
    return json.loads(str(obj))


class PaymentGateway:
    """Thin wrapper over the Stripe SDK. Built once per process and injected."""

    def __init__(self, api_key: str, currency: str):
        self._api_key = api_key
        self.currency = currency

    def create_subscription_checkout(
        self,
        tier_name: str,
        tier_description: Optional[str],
        price_monthly,
        customer_email: Optional[str],
        metadata: dict,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        product_data = {"name": tier_name}
        if tier_description:
            product_data["description"] = tier_description
        try:
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                mode="subscription",
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": product_data,
                        "unit_amount": to_minor_units(price_monthly),
                        "recurring": {"interval": "month"},
                    },
                    "quantity": 1,
                }],
                customer_email=customer_email,
                metadata=metadata,
                subscription_data={"metadata": metadata},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            raise UpstreamError("stripe", e)
        logger.info(f"Created subscription checkout session {session.id} for {metadata}")
        return CheckoutSession(id=session.id, url=session.url)

    def create_payment_checkout(
        self,
        title: str,
        description: Optional[str],
        price,
        customer_email: Optional[str],
        metadata: dict,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """One-time payment; metadata is copied onto the payment intent too."""
        product_data = {"name": title}
        if description:
            product_data["description"] = description
        try:
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": product_data,
                        "unit_amount": to_minor_units(price),
                    },
                    "quantity": 1,
                }],
                customer_email=customer_email,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            raise UpstreamError("stripe", e)
        logger.info(f"Created payment checkout session {session.id} for {metadata}")
        return CheckoutSession(id=session.id, url=session.url)

    def retrieve_subscription(self, subscription_id: str) -> dict:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, api_key=self._api_key)
        except stripe.StripeError as e:
            raise UpstreamError("stripe", e)
        return _as_dict(subscription)

    def cancel_at_period_end(self, subscription_id: str) -> None:
        try:
            stripe.Subscription.modify(subscription_id, api_key=self._api_key, cancel_at_period_end=True)
        except stripe.StripeError as e:
            raise UpstreamError("stripe", e)


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout calls will fail")
    return PaymentGateway(api_key=settings.STRIPE_SECRET_KEY, currency=settings.STRIPE_CURRENCY)
