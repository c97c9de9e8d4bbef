"""Account lookups and profile maintenance."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import get_password_hash, verify_password
from app.errors import ConflictError, InvalidArgumentError, NotFoundError
from app.models import Call, Message, User

logger = logging.getLogger(__name__)


def get_active_user(db: Session, user_id: int) -> User | None:
    """Return the account when it exists and has not been deactivated."""

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def require_active_user(db: Session, user_id: int, *, label: str = "User") -> User:
    user = get_active_user(db, user_id)
    if user is None:
        raise NotFoundError(f"{label} not found")
    return user


def _ensure_unique(db: Session, *, email: str | None, phone: str | None, exclude_id: int | None = None) -> None:
    clauses = []
    if email:
        clauses.append(User.email == email)
    if phone:
        clauses.append(User.phone == phone)
    if not clauses:
        return

    stmt = select(User).where(or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    existing = db.execute(stmt.limit(1)).scalar_one_or_none()
    if existing is None:
        return
    if email and existing.email == email:
        raise ConflictError("Email already registered")
    raise ConflictError("Phone number already registered")


def create_user(db: Session, *, name: str, email: str, phone: str, password: str) -> User:
    """Persist a new account; duplicate email or phone raise ``ConflictError``."""

    _ensure_unique(db, email=email, phone=phone)
    user = User(
        name=name,
        email=email,
        phone=phone,
        hashed_password=get_password_hash(password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email or phone number already registered") from exc
    db.refresh(user)
    logger.info("New user created: %s", user.id)
    return user


def authenticate_user(db: Session, *, email: str, password: str) -> User | None:
    """Return the active account matching the credentials and stamp the login."""

    user = db.execute(
        select(User).where(User.email == email, User.is_active.is_(True))
    ).scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None

    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    logger.info("User logged in: %s", user.id)
    return user


def update_user(db: Session, user_id: int, changes: Dict[str, Any]) -> User:
    if not changes:
        raise InvalidArgumentError("At least one profile field is required")
    user = require_active_user(db, user_id)
    _ensure_unique(db, email=changes.get("email"), phone=changes.get("phone"), exclude_id=user_id)

    for field, value in changes.items():
        setattr(user, field, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email or phone number already in use") from exc
    db.refresh(user)
    logger.info("User updated: %s", user_id)
    return user


def get_user_stats(db: Session, user_id: int) -> Dict[str, Any]:
    user = require_active_user(db, user_id)
    total_messages = db.execute(
        select(func.count(Message.id)).where(
            or_(Message.sender_id == user_id, Message.recipient_id == user_id)
        )
    ).scalar_one()
    total_calls = db.execute(
        select(func.count(Call.id)).where(or_(Call.caller_id == user_id, Call.callee_id == user_id))
    ).scalar_one()
    return {
        "totalMessages": int(total_messages or 0),
        "totalCalls": int(total_calls or 0),
        "lastActivity": user.last_login_at,
    }


def public_profile(user: User) -> Dict[str, Any]:
    """Minimal identity attached to pushed events."""

    return {"id": user.id, "name": user.name, "avatar": user.avatar}
