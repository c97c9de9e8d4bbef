"""Local wallet records kept in step with the remote provider."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError
from app.models import Wallet, WalletStatus
from app.services.users import require_active_user
from app.services.wallet_provider import WalletProvider

logger = logging.getLogger(__name__)


def get_wallet(db: Session, user_id: int) -> Wallet | None:
    """Return the user's wallet unless it has been closed."""

    return db.execute(
        select(Wallet).where(Wallet.user_id == user_id, Wallet.status != WalletStatus.CLOSED)
    ).scalar_one_or_none()


def require_wallet(db: Session, user_id: int, *, label: str = "Wallet") -> Wallet:
    wallet = get_wallet(db, user_id)
    if wallet is None:
        raise NotFoundError(f"{label} not found")
    return wallet


async def create_wallet(
    db: Session, provider: WalletProvider, user_id: int, currency: str
) -> Wallet:
    existing = db.execute(select(Wallet).where(Wallet.user_id == user_id)).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Wallet already exists for this user")

    remote = await provider.create_wallet(user_id, currency)
    wallet = Wallet(
        user_id=user_id,
        wallet_id=remote.wallet_id,
        account_number=remote.account_number,
        bank_code=remote.bank_code,
        balance=remote.balance,
        currency=remote.currency,
        status=WalletStatus.ACTIVE,
        meta={"created_via": "api", "provider_data": remote.raw},
    )
    db.add(wallet)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Wallet already exists for this user") from exc
    db.refresh(wallet)
    logger.info("Wallet created for user: %s, wallet ID: %s", user_id, wallet.wallet_id)
    return wallet


async def refresh_balance(db: Session, provider: WalletProvider, user_id: int) -> Dict[str, Any]:
    wallet = require_wallet(db, user_id)
    remote = await provider.get_balance(wallet.wallet_id)
    wallet.balance = remote.balance
    db.commit()
    return {
        "balance": remote.balance,
        "currency": remote.currency,
        "last_updated": datetime.now(timezone.utc),
    }


async def list_transactions(
    db: Session, provider: WalletProvider, user_id: int, limit: int = 50
) -> list[dict[str, Any]]:
    wallet = require_wallet(db, user_id)
    return await provider.list_transactions(wallet.wallet_id, limit)


async def transfer_funds(
    db: Session,
    provider: WalletProvider,
    from_user_id: int,
    to_user_id: int,
    amount: Decimal,
    description: str | None = None,
) -> Dict[str, Any]:
    if from_user_id == to_user_id:
        raise InvalidArgumentError("Cannot transfer to yourself")
    require_active_user(db, to_user_id, label="Recipient")
    source = require_wallet(db, from_user_id, label="Sender wallet")
    target = require_wallet(db, to_user_id, label="Recipient wallet")
    if source.status is not WalletStatus.ACTIVE or target.status is not WalletStatus.ACTIVE:
        raise InvalidStateError("One or both wallets are not active")

    available = (await provider.get_balance(source.wallet_id)).balance
    if available < amount:
        raise InvalidArgumentError("Insufficient funds")

    result = await provider.transfer(source.wallet_id, target.wallet_id, amount, description)

    # Provider webhooks would normally reconcile these; mirror the transfer locally.
    source.balance = available - amount
    target.balance = Decimal(target.balance or 0) + amount
    db.commit()
    logger.info("Transfer completed: %s -> %s, amount: %s", from_user_id, to_user_id, amount)
    return {
        "reference": result.get("reference"),
        "status": result.get("status", "completed"),
        "amount": amount,
        "balance": source.balance,
    }


def suspend_wallet(db: Session, user_id: int, reason: str | None = None) -> Wallet:
    wallet = require_wallet(db, user_id)
    wallet.status = WalletStatus.SUSPENDED
    meta = dict(wallet.meta or {})
    meta["suspension_reason"] = reason or "Administrative action"
    wallet.meta = meta
    db.commit()
    db.refresh(wallet)
    logger.info("Wallet suspended for user: %s, reason: %s", user_id, meta["suspension_reason"])
    return wallet


def activate_wallet(db: Session, user_id: int) -> Wallet:
    wallet = require_wallet(db, user_id)
    wallet.status = WalletStatus.ACTIVE
    meta = dict(wallet.meta or {})
    meta.pop("suspension_reason", None)
    wallet.meta = meta
    db.commit()
    db.refresh(wallet)
    logger.info("Wallet activated for user: %s", user_id)
    return wallet


async def get_wallet_stats(db: Session, provider: WalletProvider, user_id: int) -> Dict[str, Any]:
    wallet = require_wallet(db, user_id)
    transactions = await provider.list_transactions(wallet.wallet_id, 1000)
    created_at = wallet.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return {
        "totalBalance": wallet.balance,
        "currency": wallet.currency,
        "totalTransactions": len(transactions),
        "walletAge": (datetime.now(timezone.utc) - created_at).days,
    }
