"""Security helpers for password hashing and token management."""

from __future__ import annotations

import hashlib
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from app.config import get_settings
from app.services.cache import get_cache

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(slots=True)
class TokenClaims:
    """Claims carried by a verified access token."""

    user_id: int
    expires_at: datetime


@dataclass(slots=True)
class RefreshTokenData:
    """Structured data extracted from a stored refresh token."""

    token_id: str
    user_id: int
    expires_at: datetime


class InvalidCredentialsError(Exception):
    """Raised when an access token is missing, expired or malformed."""


class RefreshTokenError(Exception):
    """Raised when a refresh token cannot be validated."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hashed counterpart."""

    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database."""

    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token for ``user_id``."""

    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> TokenClaims:
    """Validate ``token`` and return its claims.

    Raises :class:`InvalidCredentialsError` for every failure so callers outside
    the HTTP stack (the websocket handshake) can map it themselves.
    """

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise InvalidCredentialsError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidCredentialsError("Could not validate credentials") from exc

    if payload.get("type", "access") != "access":
        raise InvalidCredentialsError("Could not validate credentials")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidCredentialsError("Could not validate credentials") from None

    expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    return TokenClaims(user_id=user_id, expires_at=expires_at)


def decode_access_token(token: str) -> TokenClaims:
    """HTTP flavour of :func:`verify_access_token` raising 401 responses."""

    try:
        return verify_access_token(token)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def _refresh_cache_key(token_id: str) -> str:
    return f"auth:refresh_token:{token_id}"


def _refresh_token_lifetime() -> timedelta:
    return timedelta(minutes=max(int(settings.refresh_token_expire_minutes), 1))


def _hash_refresh_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def create_refresh_token(user_id: int) -> tuple[str, int]:
    """Generate and persist an opaque refresh token bound to ``user_id``."""

    token_id = secrets.token_urlsafe(16)
    token_secret = secrets.token_urlsafe(32)
    lifetime = _refresh_token_lifetime()
    expires_at = datetime.now(timezone.utc) + lifetime

    payload = {
        "sub": user_id,
        "hash": _hash_refresh_secret(token_secret),
        "exp": int(expires_at.timestamp()),
    }

    cache = get_cache()
    cache.set(_refresh_cache_key(token_id), json.dumps(payload), int(lifetime.total_seconds()))

    return f"{token_id}.{token_secret}", int(lifetime.total_seconds())


def validate_refresh_token(token: str, *, revoke: bool = False) -> RefreshTokenData:
    """Validate a refresh token and optionally revoke it."""

    parts = token.split(".", 1)
    if len(parts) != 2:
        raise RefreshTokenError("Malformed refresh token")
    token_id, token_secret = parts
    cache_key = _refresh_cache_key(token_id)
    cache = get_cache()
    cached = cache.get(cache_key)
    if cached is None:
        raise RefreshTokenError("Refresh token not found")

    try:
        payload: Dict[str, Any] = json.loads(cached)
    except json.JSONDecodeError as exc:
        cache.delete(cache_key)
        raise RefreshTokenError("Corrupted refresh token payload") from exc

    expected_hash = payload.get("hash")
    if not expected_hash or not secrets.compare_digest(expected_hash, _hash_refresh_secret(token_secret)):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token signature mismatch")

    exp_timestamp = payload.get("exp")
    if not isinstance(exp_timestamp, (int, float)):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token is missing expiration")

    expires_at = datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token expired")

    if revoke:
        cache.delete(cache_key)

    return RefreshTokenData(token_id=token_id, user_id=int(payload["sub"]), expires_at=expires_at)


def revoke_refresh_token(token: str) -> bool:
    """Forget a refresh token; returns False when it was already unusable."""

    try:
        validate_refresh_token(token, revoke=True)
    except RefreshTokenError:
        return False
    return True
