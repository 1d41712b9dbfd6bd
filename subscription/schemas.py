# subscription/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional


class TierResponse(BaseModel):
    """Schema for tier response."""
    id: int
    name: str
    description: Optional[str] = None
    price_monthly: Decimal
    download_limit: Optional[int] = None
    permission_level: int

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""
    id: str
    user_id: str
    tier_id: int
    status: str
    payment_provider_id: Optional[str] = None
    next_billing_date: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SubscriptionCheckoutRequest(BaseModel):
    tier_id: Optional[int] = Field(default=None, alias="tierId")

    class Config:
        populate_by_name = True


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    url: Optional[str] = None

    class Config:
        populate_by_name = True


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class TierCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price_monthly: Decimal = Field(ge=0)
    download_limit: Optional[int] = Field(default=None, ge=0)
    permission_level: int


class TierUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price_monthly: Optional[Decimal] = Field(default=None, ge=0)
    download_limit: Optional[int] = Field(default=None, ge=0)
    permission_level: Optional[int] = None
