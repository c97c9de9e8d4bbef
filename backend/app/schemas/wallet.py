"""Schemas for the wallet endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, constr

from app.models.enums import WalletStatus


class WalletCreate(BaseModel):
    currency: constr(min_length=3, max_length=3, to_upper=True) | None = Field(
        default=None, description="ISO currency code; defaults to the configured currency"
    )


class WalletRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    wallet_id: str
    account_number: str | None = None
    bank_code: str | None = None
    balance: Decimal
    currency: str
    status: WalletStatus
    created_at: datetime
    updated_at: datetime


class WalletBalance(BaseModel):
    balance: Decimal
    currency: str
    last_updated: datetime


class TransferRequest(BaseModel):
    to_user_id: int = Field(..., ge=1)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    description: constr(max_length=200) | None = None


class TransferResult(BaseModel):
    reference: str | None = None
    status: str
    amount: Decimal
    balance: Decimal


class SuspendRequest(BaseModel):
    reason: constr(max_length=200) | None = None


class WalletStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_balance: Decimal = Field(..., alias="totalBalance")
    currency: str
    total_transactions: int = Field(..., alias="totalTransactions")
    wallet_age: int = Field(..., alias="walletAge")
