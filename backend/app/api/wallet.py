"""Wallet endpoints backed by the remote provider."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_provider
from app.config import get_settings
from app.database import get_db
from app.errors import NotFoundError
from app.models import User
from app.schemas import (
    ApiResponse,
    SuspendRequest,
    TransferRequest,
    TransferResult,
    WalletBalance,
    WalletCreate,
    WalletRead,
    WalletStats,
)
from app.services import wallet as wallet_service
from app.services.wallet_provider import WalletProvider

router = APIRouter(prefix="/wallet", tags=["wallet"])
settings = get_settings()


@router.post("", response_model=ApiResponse[WalletRead], status_code=status.HTTP_201_CREATED)
async def create_wallet(
    payload: WalletCreate | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: WalletProvider = Depends(get_provider),
) -> ApiResponse[WalletRead]:
    currency = (payload.currency if payload else None) or settings.wallet_default_currency
    wallet = await wallet_service.create_wallet(db, provider, current_user.id, currency)
    return ApiResponse(message="Wallet created successfully", data=WalletRead.model_validate(wallet))


@router.get("", response_model=ApiResponse[WalletRead])
def read_wallet(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[WalletRead]:
    wallet = wallet_service.get_wallet(db, current_user.id)
    if wallet is None:
        raise NotFoundError("Wallet not found")
    return ApiResponse(message="Wallet retrieved successfully", data=WalletRead.model_validate(wallet))


@router.get("/balance", response_model=ApiResponse[WalletBalance])
async def read_balance(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: WalletProvider = Depends(get_provider),
) -> ApiResponse[WalletBalance]:
    balance = await wallet_service.refresh_balance(db, provider, current_user.id)
    return ApiResponse(message="Balance retrieved successfully", data=WalletBalance(**balance))


@router.get("/transactions", response_model=ApiResponse[list[dict[str, Any]]])
async def list_transactions(
    limit: int = Query(50, ge=1, le=1000),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: WalletProvider = Depends(get_provider),
) -> ApiResponse[list[dict[str, Any]]]:
    transactions = await wallet_service.list_transactions(db, provider, current_user.id, limit)
    return ApiResponse(message="Wallet transactions retrieved successfully", data=transactions)


@router.post("/transfer", response_model=ApiResponse[TransferResult])
async def transfer_funds(
    payload: TransferRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: WalletProvider = Depends(get_provider),
) -> ApiResponse[TransferResult]:
    result = await wallet_service.transfer_funds(
        db, provider, current_user.id, payload.to_user_id, payload.amount, payload.description
    )
    return ApiResponse(message="Funds transferred successfully", data=TransferResult(**result))


@router.put("/suspend", response_model=ApiResponse[WalletRead])
def suspend_wallet(
    payload: SuspendRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[WalletRead]:
    wallet = wallet_service.suspend_wallet(db, current_user.id, payload.reason if payload else None)
    return ApiResponse(message="Wallet suspended successfully", data=WalletRead.model_validate(wallet))


@router.put("/activate", response_model=ApiResponse[WalletRead])
def activate_wallet(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[WalletRead]:
    wallet = wallet_service.activate_wallet(db, current_user.id)
    return ApiResponse(message="Wallet activated successfully", data=WalletRead.model_validate(wallet))


@router.get("/stats", response_model=ApiResponse[WalletStats])
async def wallet_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: WalletProvider = Depends(get_provider),
) -> ApiResponse[WalletStats]:
    stats = await wallet_service.get_wallet_stats(db, provider, current_user.id)
    return ApiResponse(message="Wallet statistics retrieved successfully", data=WalletStats.model_validate(stats))
