# auth/services.py
import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session
from jose import jwt
from passlib.context import CryptContext
from datetime import datetime, timedelta
from typing import Optional
from auth.models import User, Profile
from auth.schemas import ProfileUpdate, UserCreate
from errors import ValidationError
from subscription.services import TierService
from config import settings

logger = logging.getLogger(__name__)


class AuthService:
    pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        return AuthService.pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        return AuthService.pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token."""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def get_user_by_email(email: str, db: Session) -> Optional[User]:
        """Retrieve a user by email."""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user(user_id: str, db: Session) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
        user = AuthService.get_user_by_email(email, db)
        if not user or not AuthService.verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    def create_user(user_data: UserCreate, db: Session, is_admin: bool = False) -> User:
        """Create a user and its profile on the lowest tier."""
        if AuthService.get_user_by_email(user_data.email, db):
            raise ValidationError("Email already registered")
        if len(user_data.password) < 6:
            raise ValidationError("Password must be at least 6 characters")

        tier = TierService.get_lowest_tier(db)
        if tier is None:
            logger.error("Signup attempted with no tiers configured")
            raise HTTPException(status_code=503, detail="Service temporarily unavailable, try again later")

        new_user = User(
            email=user_data.email,
            name=user_data.name or user_data.email.split("@")[0],
            password_hash=AuthService.hash_password(user_data.password),
        )
        new_user.profile = Profile(tier_id=tier.id, is_admin=is_admin)
        db.add(new_user)
        db.commit()
        db.refresh(new_user)
        logger.info(f"Created user {new_user.id} on tier {tier.name}")
        return new_user

    @staticmethod
    def update_profile(user: User, data: ProfileUpdate, db: Session) -> User:
        if data.name is not None:
            name = data.name.strip()
            if not name:
                raise ValidationError("Name cannot be empty")
            user.name = name
        db.commit()
        db.refresh(user)
        return user
