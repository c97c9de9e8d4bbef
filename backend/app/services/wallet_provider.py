"""Clients for the remote wallet provider."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from functools import lru_cache
from typing import Any, Protocol

import httpx

from app.config import get_settings
from app.errors import ConflictError, InvalidArgumentError, NotFoundError, ProviderError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderWallet:
    """Wallet details as reported by the provider."""

    wallet_id: str
    account_number: str | None
    bank_code: str | None
    balance: Decimal
    currency: str
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any], *, default_currency: str) -> "ProviderWallet":
        return cls(
            wallet_id=str(data["wallet_id"]),
            account_number=data.get("account_number"),
            bank_code=data.get("bank_code"),
            balance=Decimal(str(data.get("balance") or 0)),
            currency=data.get("currency") or default_currency,
            raw=dict(data),
        )


class WalletProvider(Protocol):
    """Operations the backend relies on from the wallet provider."""

    async def create_wallet(self, user_id: int, currency: str) -> ProviderWallet:
        ...

    async def get_balance(self, wallet_id: str) -> ProviderWallet:
        ...

    async def transfer(
        self, from_wallet: str, to_wallet: str, amount: Decimal, description: str | None = None
    ) -> dict[str, Any]:
        ...

    async def list_transactions(self, wallet_id: str, limit: int = 50) -> list[dict[str, Any]]:
        ...


def generate_reference() -> str:
    return f"TX_{int(time.time() * 1000)}_{secrets.token_hex(4).upper()}"


class HttpWalletProvider:
    """Talks to the provider's REST API over httpx.

    Mutating requests carry an ``X-Signature`` header: the HMAC-SHA256 of the
    JSON body keyed with the shared secret.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        secret: str,
        *,
        timeout: float = 30.0,
        default_currency: str = "NGN",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.secret = secret
        self.timeout = timeout
        self.default_currency = default_currency
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def sign(self, body: str) -> str:
        return hmac.new(self.secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        errors: dict[int, Exception] | None = None,
        failure: str,
    ) -> Any:
        headers = self._get_headers()
        content: str | None = None
        if payload is not None:
            content = json.dumps(payload, default=str)
            headers["X-Signature"] = self.sign(content)

        logger.info("Wallet provider request: %s %s", method, path)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, path, content=content, params=params, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("Wallet provider %s %s failed: %s", method, path, exc)
            raise ProviderError(failure) from exc

        logger.info("Wallet provider response: %s %s", response.status_code, path)
        if response.is_error:
            mapped = (errors or {}).get(response.status_code)
            if mapped is not None:
                raise mapped
            logger.error("Wallet provider error body: %s", response.text)
            raise ProviderError(failure)

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError(failure) from exc
        return body.get("data") if isinstance(body, dict) else body

    async def create_wallet(self, user_id: int, currency: str) -> ProviderWallet:
        data = await self._request(
            "POST",
            "/wallets/create",
            payload={"user_id": str(user_id), "currency": currency, "account_type": "savings"},
            errors={409: ConflictError("Wallet already exists for this user")},
            failure="Failed to create wallet",
        )
        if not isinstance(data, dict) or "wallet_id" not in data:
            raise ProviderError("Failed to create wallet")
        return ProviderWallet.from_payload(data, default_currency=currency)

    async def get_balance(self, wallet_id: str) -> ProviderWallet:
        data = await self._request(
            "GET",
            f"/wallets/{wallet_id}/balance",
            errors={404: NotFoundError("Wallet not found")},
            failure="Failed to retrieve wallet balance",
        )
        if not isinstance(data, dict):
            raise ProviderError("Failed to retrieve wallet balance")
        data.setdefault("wallet_id", wallet_id)
        return ProviderWallet.from_payload(data, default_currency=self.default_currency)

    async def transfer(
        self, from_wallet: str, to_wallet: str, amount: Decimal, description: str | None = None
    ) -> dict[str, Any]:
        reference = generate_reference()
        data = await self._request(
            "POST",
            "/wallets/transfer",
            payload={
                "from_wallet": from_wallet,
                "to_wallet": to_wallet,
                "amount": str(amount),
                "description": description or "Peer-to-peer transfer",
                "reference": reference,
            },
            errors={400: InvalidArgumentError("Insufficient funds or invalid transfer details")},
            failure="Transfer failed",
        )
        result = dict(data) if isinstance(data, dict) else {}
        result.setdefault("reference", reference)
        return result

    async def list_transactions(self, wallet_id: str, limit: int = 50) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/wallets/{wallet_id}/transactions",
            params={"limit": limit},
            failure="Failed to retrieve transaction history",
        )
        return list(data or [])


class MockWalletProvider:
    """In-process provider used when no API key is configured.

    Balances are tracked per wallet so transfers are reflected in later
    balance reads.
    """

    bank_code = "999999"

    def __init__(self, default_currency: str = "NGN") -> None:
        self.default_currency = default_currency
        self._wallets: dict[str, ProviderWallet] = {}
        self._transactions: dict[str, list[dict[str, Any]]] = {}

    @staticmethod
    def _account_number() -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(10))

    async def create_wallet(self, user_id: int, currency: str) -> ProviderWallet:
        wallet_id = f"WALLET_{user_id}_{int(time.time() * 1000)}_{secrets.token_hex(2)}"
        wallet = ProviderWallet(
            wallet_id=wallet_id,
            account_number=self._account_number(),
            bank_code=self.bank_code,
            balance=Decimal("0"),
            currency=currency,
            raw={"mock": True},
        )
        self._wallets[wallet_id] = wallet
        self._transactions[wallet_id] = []
        return wallet

    def credit(self, wallet_id: str, amount: Decimal) -> None:
        """Fund a mock wallet."""

        wallet = self._require(wallet_id)
        wallet.balance += Decimal(amount)
        self._record(wallet_id, "credit", Decimal(amount), "Mock funding")

    def _require(self, wallet_id: str) -> ProviderWallet:
        wallet = self._wallets.get(wallet_id)
        if wallet is None:
            raise NotFoundError("Wallet not found")
        return wallet

    def _record(self, wallet_id: str, kind: str, amount: Decimal, narration: str) -> dict[str, Any]:
        entry = {
            "reference": generate_reference(),
            "type": kind,
            "amount": str(amount),
            "narration": narration,
            "status": "completed",
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        self._transactions.setdefault(wallet_id, []).insert(0, entry)
        return entry

    async def get_balance(self, wallet_id: str) -> ProviderWallet:
        return replace(self._require(wallet_id))

    async def transfer(
        self, from_wallet: str, to_wallet: str, amount: Decimal, description: str | None = None
    ) -> dict[str, Any]:
        source = self._require(from_wallet)
        target = self._require(to_wallet)
        if source.balance < amount:
            raise InvalidArgumentError("Insufficient funds")
        source.balance -= amount
        target.balance += amount
        narration = description or "Peer-to-peer transfer"
        entry = self._record(from_wallet, "debit", amount, narration)
        self._record(to_wallet, "credit", amount, narration)
        return {"reference": entry["reference"], "status": "completed", "amount": str(amount)}

    async def list_transactions(self, wallet_id: str, limit: int = 50) -> list[dict[str, Any]]:
        self._require(wallet_id)
        return list(self._transactions.get(wallet_id, [])[:limit])


@lru_cache(maxsize=1)
def get_wallet_provider() -> WalletProvider:
    settings = get_settings()
    if settings.wallet_provider_mock:
        logger.info("Wallet provider API key not configured; using the mock provider")
        return MockWalletProvider(default_currency=settings.wallet_default_currency)
    return HttpWalletProvider(
        settings.wallet_provider_base_url,
        settings.wallet_provider_api_key or "",
        settings.wallet_provider_secret,
        timeout=settings.wallet_provider_timeout_seconds,
        default_currency=settings.wallet_default_currency,
    )
