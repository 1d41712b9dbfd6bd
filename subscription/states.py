# subscription/states.py
"""Subscription status as an explicit state machine.

Every webhook handler and the local cancel endpoint funnel through
``transition`` so the rules live in one place and can be tested without a
database.

    none -> active | past_due | canceled   (checkout completed / subscription created)
    active <-> past_due                    (subscription updated)
    any -> canceled                        (cancel requested, cancel_at_period_end, deleted)
    canceled -> active                     (provider reactivates before period end)

Only ``active`` and ``trialing`` on the provider side map to ACTIVE. Any
other live status (incomplete, past_due, unpaid, paused) is PAST_DUE, which
never grants a paid tier.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
CANCEL_REQUESTED = "local.cancel_requested"

_ACTIVE_PROVIDER_STATUSES = {"active", "trialing"}
# incomplete_expired: the first invoice was never paid and the subscription is dead
_CANCELED_PROVIDER_STATUSES = {"canceled", "incomplete_expired"}


@dataclass(frozen=True)
class ProviderEvent:
    type: str
    provider_status: Optional[str] = None
    cancel_at_period_end: bool = False


def _from_provider(provider_status: Optional[str]) -> SubscriptionStatus:
    if provider_status in _ACTIVE_PROVIDER_STATUSES:
        return SubscriptionStatus.ACTIVE
    if provider_status in _CANCELED_PROVIDER_STATUSES:
        return SubscriptionStatus.CANCELED
    return SubscriptionStatus.PAST_DUE


def transition(current: Optional[SubscriptionStatus], event: ProviderEvent) -> Optional[SubscriptionStatus]:
    """Return the status a subscription moves to when ``event`` is applied.

    ``current`` is None when no local row exists yet. Events that do not
    affect subscriptions return ``current`` unchanged.
    """
    if event.type in (CHECKOUT_COMPLETED, SUBSCRIPTION_CREATED):
        if current is not None:
            return current
        return _from_provider(event.provider_status)

    if event.type == SUBSCRIPTION_UPDATED:
        if event.cancel_at_period_end:
            return SubscriptionStatus.CANCELED
        return _from_provider(event.provider_status)

    if event.type in (SUBSCRIPTION_DELETED, CANCEL_REQUESTED):
        return SubscriptionStatus.CANCELED

    return current
