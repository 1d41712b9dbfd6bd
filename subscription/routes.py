# subscription/routes.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import List, Optional, Union
from subscription.services import SubscriptionService, TierService
from subscription.schemas import (
    CheckoutSessionResponse,
    MessageResponse,
    SubscriptionCheckoutRequest,
    SubscriptionResponse,
    TierResponse,
)
from auth.routes import get_current_user, get_optional_user
from auth.models import User
from database import get_db
from dependencies import get_payment_gateway
from errors import CheckoutError
from config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


def _plans_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.BASE_URL}/plans?{query}")


@router.get("/tiers", response_model=List[TierResponse])
def get_tiers(db: Session = Depends(get_db)):
    """List tiers from lowest to highest permission level."""
    return TierService.get_all_tiers(db)


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
def get_user_subscriptions(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Retrieve the caller's subscription history."""
    return SubscriptionService.get_user_subscriptions(current_user.id, db)


@router.post("/stripe/checkout", response_model=Union[CheckoutSessionResponse, MessageResponse])
def create_checkout(
    body: SubscriptionCheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    """Create a hosted checkout session for a subscription tier."""
    result = SubscriptionService.start_checkout(current_user, body.tier_id, gateway, db)
    if result["free"]:
        return MessageResponse(message="Tier updated successfully")
    return CheckoutSessionResponse(session_id=result["session_id"], url=result["url"])


@router.get("/stripe/checkout")
def redirect_to_checkout(
    tierId: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    gateway=Depends(get_payment_gateway),
):
    """Redirect straight to the hosted checkout page."""
    if current_user is None:
        return RedirectResponse(f"{settings.BASE_URL}/login?redirect=/plans")
    if not tierId:
        return _plans_redirect("error=missing_tier")
    try:
        tier_id = int(tierId)
    except ValueError:
        return _plans_redirect("error=invalid_tier")

    try:
        result = SubscriptionService.start_checkout(current_user, tier_id, gateway, db)
    except CheckoutError as e:
        return _plans_redirect(f"error={e.code}")
    except HTTPException as e:
        logger.error(f"Checkout failed for user {current_user.id}: {e.detail}")
        return _plans_redirect("error=checkout_failed")

    if result["free"]:
        return _plans_redirect("success=free_tier_activated")
    if not result["url"]:
        return _plans_redirect("error=checkout_failed")
    return RedirectResponse(result["url"])


@router.post("/stripe/cancel", response_model=MessageResponse)
def cancel_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    """Cancel the caller's active subscription at the end of the billing period."""
    SubscriptionService.cancel_active(current_user, gateway, db)
    return MessageResponse(message="Subscription canceled successfully")
