"""FastAPI dependencies for the API layer."""

from contextlib import nullcontext

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.database import get_db
from app.models import User
from app.services.call_events import CallEventCoordinator
from app.services.delivery import MessageDeliveryCoordinator
from app.services.signaling import SignalingRelay
from app.services.wallet_provider import WalletProvider, get_wallet_provider
from parley.realtime import PresenceRegistry, get_presence_registry

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve an active user from a JWT token or raise an HTTP 401 error."""

    claims = decode_access_token(token)
    user = db.get(User, claims.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def get_registry() -> PresenceRegistry:
    return get_presence_registry()


def get_delivery_coordinator(
    registry: PresenceRegistry = Depends(get_registry),
    db: Session = Depends(get_db),
) -> MessageDeliveryCoordinator:
    return MessageDeliveryCoordinator(registry, lambda: nullcontext(db))


def get_call_coordinator(
    registry: PresenceRegistry = Depends(get_registry),
    db: Session = Depends(get_db),
) -> CallEventCoordinator:
    return CallEventCoordinator(registry, lambda: nullcontext(db))


def get_provider() -> WalletProvider:
    return get_wallet_provider()


def get_signaling_relay(
    registry: PresenceRegistry = Depends(get_registry),
    db: Session = Depends(get_db),
) -> SignalingRelay:
    return SignalingRelay(registry, lambda: nullcontext(db))
