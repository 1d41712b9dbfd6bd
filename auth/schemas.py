# auth/schemas.py
from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    """Schema for user registration."""
    email: EmailStr
    password: str
    name: Optional[str] = None


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    email: str
    name: Optional[str] = None
    tier_id: Optional[int] = None
    tier_name: Optional[str] = None
    permission_level: int = 0
    is_admin: bool = False
    created_at: datetime

    @classmethod
    def from_user(cls, user):
        profile = user.profile
        tier = profile.tier if profile else None
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            tier_id=tier.id if tier else None,
            tier_name=tier.name if tier else None,
            permission_level=tier.permission_level if tier else 0,
            is_admin=bool(profile and profile.is_admin),
            created_at=user.created_at,
        )


class Token(BaseModel):
    """Schema for token response."""
    access_token: str
    token_type: str


class AdminActionLogResponse(BaseModel):
    """Schema for admin action log response."""
    id: int
    admin_id: str
    action: str
    timestamp: datetime

    class Config:
        from_attributes = True


class AdminUserUpdate(BaseModel):
    name: Optional[str] = None
    tier_id: Optional[int] = Field(default=None, alias="tierId")
    is_admin: Optional[bool] = Field(default=None, alias="isAdmin")

    class Config:
        populate_by_name = True


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""
    name: Optional[str] = Field(default=None, max_length=100)
