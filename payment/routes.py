# payment/routes.py
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
from payment.webhooks import WebhookReconciler
from database import get_db
from dependencies import get_payment_gateway
from config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


async def get_raw_body(request: Request) -> bytes:
    """Unparsed request body; signature verification needs the exact bytes."""
    return await request.body()


@router.post("/stripe/webhook")
@router.post("/webhook", include_in_schema=False)
def stripe_webhook(
    payload: bytes = Depends(get_raw_body),
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    """Receive Stripe events. 400 on a bad signature, 500 asks Stripe to retry."""
    reconciler = WebhookReconciler(db, gateway, settings.STRIPE_WEBHOOK_SECRET)
    try:
        return reconciler.handle_event(payload, stripe_signature)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Webhook processing failed"})
