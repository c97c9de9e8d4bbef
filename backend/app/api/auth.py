"""Authentication API endpoints."""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.security import (
    RefreshTokenError,
    create_access_token,
    create_refresh_token,
    revoke_refresh_token,
    validate_refresh_token,
)
from app.database import get_db
from app.models import User
from app.schemas import ApiResponse, AuthSession, LoginRequest, RefreshRequest, SignupRequest, Token, UserRead
from app.services import users as user_service

router = APIRouter()
settings = get_settings()


def _issue_tokens(user: User) -> Token:
    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token(user.id, expires_delta=access_token_expires)
    refresh_token, _ = create_refresh_token(user.id)
    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=int(access_token_expires.total_seconds()),
    )


@router.post("/signup", response_model=ApiResponse[AuthSession], status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)) -> ApiResponse[AuthSession]:
    """Register a new account and sign it in."""

    user = user_service.create_user(
        db,
        name=payload.name,
        email=str(payload.email),
        phone=payload.phone,
        password=payload.password,
    )
    session = AuthSession(user=UserRead.model_validate(user), tokens=_issue_tokens(user))
    return ApiResponse(message="User registered successfully", data=session)


@router.post("/login", response_model=ApiResponse[AuthSession])
def login(credentials: LoginRequest, db: Session = Depends(get_db)) -> ApiResponse[AuthSession]:
    """Authenticate with e-mail and password."""

    user = user_service.authenticate_user(db, email=str(credentials.email), password=credentials.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    session = AuthSession(user=UserRead.model_validate(user), tokens=_issue_tokens(user))
    return ApiResponse(message="Login successful", data=session)


@router.post("/refresh", response_model=ApiResponse[Token])
def refresh_tokens(payload: RefreshRequest, db: Session = Depends(get_db)) -> ApiResponse[Token]:
    """Exchange a refresh token for a new token pair; the old one is revoked."""

    try:
        token_data = validate_refresh_token(payload.refresh_token, revoke=True)
    except RefreshTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        ) from exc

    user = user_service.get_active_user(db, token_data.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    return ApiResponse(message="Token refreshed successfully", data=_issue_tokens(user))


@router.post("/logout", response_model=ApiResponse[None])
def logout(payload: RefreshRequest) -> ApiResponse[None]:
    """Revoke the given refresh token."""

    revoke_refresh_token(payload.refresh_token)
    return ApiResponse(message="Logout successful")
