# auth/routes.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import jwt, JWTError
from datetime import timedelta
from typing import Optional
from auth.services import AuthService
from auth.schemas import ProfileUpdate, UserCreate, UserResponse, UserLogin, Token
from auth.models import User
from config import settings
from database import get_db
from errors import Forbidden, Unauthenticated

router = APIRouter(prefix="/auth", tags=["auth"])
bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Resolve the bearer token to a user, or None for anonymous callers."""
    if credentials is None:
        return None
    credentials_exception = Unauthenticated("Could not validate credentials")
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise credentials_exception
    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception
    user = AuthService.get_user(user_id, db)
    if user is None:
        raise credentials_exception
    return user


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Retrieve the current authenticated user."""
    if user is None:
        raise Unauthenticated()
    return user


def check_admin_role(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the user has the admin flag."""
    if not (current_user.profile and current_user.profile.is_admin):
        raise Forbidden("Admin access required")
    return current_user


@router.post("/register", response_model=UserResponse)
def register(user: UserCreate, db: Session = Depends(get_db)):
    """Register a new user."""
    return UserResponse.from_user(AuthService.create_user(user, db))


@router.post("/login", response_model=Token)
def login(user: UserLogin, db: Session = Depends(get_db)):
    """Login and return a JWT token."""
    authenticated_user = AuthService.authenticate_user(user.email, user.password, db)
    if not authenticated_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = AuthService.create_access_token(
        data={"sub": authenticated_user.id},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def read_users_me(current_user: User = Depends(get_current_user)):
    """Get current user details with the current tier."""
    return UserResponse.from_user(current_user)


@router.patch("/me", response_model=UserResponse)
def update_users_me(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update the caller's display name."""
    return UserResponse.from_user(AuthService.update_profile(current_user, body, db))
