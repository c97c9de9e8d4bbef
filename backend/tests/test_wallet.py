"""Wallet service and provider client tests."""

from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from app.api.deps import get_provider
from app.core.security import create_access_token
from app.errors import ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError, ProviderError
from app.main import app
from app.models import WalletStatus
from app.services import wallet as wallet_service
from app.services.wallet_provider import HttpWalletProvider, MockWalletProvider


@pytest.fixture()
def provider() -> MockWalletProvider:
    return MockWalletProvider(default_currency="NGN")


@pytest.mark.anyio("asyncio")
async def test_create_wallet_once_per_user(db_session, make_user, provider) -> None:
    owner = make_user()

    wallet = await wallet_service.create_wallet(db_session, provider, owner, "NGN")

    assert wallet.status is WalletStatus.ACTIVE
    assert wallet.bank_code == MockWalletProvider.bank_code
    assert wallet.meta["provider_data"] == {"mock": True}
    with pytest.raises(ConflictError):
        await wallet_service.create_wallet(db_session, provider, owner, "NGN")


@pytest.mark.anyio("asyncio")
async def test_transfer_moves_funds_between_users(db_session, make_user, provider) -> None:
    sender, recipient = make_user(), make_user()
    source = await wallet_service.create_wallet(db_session, provider, sender, "NGN")
    target = await wallet_service.create_wallet(db_session, provider, recipient, "NGN")
    provider.credit(source.wallet_id, Decimal("100.00"))

    result = await wallet_service.transfer_funds(
        db_session, provider, sender, recipient, Decimal("40.00"), "Dinner"
    )

    assert result["balance"] == Decimal("60.00")
    assert result["reference"].startswith("TX_")
    balance = await wallet_service.refresh_balance(db_session, provider, recipient)
    assert balance["balance"] == Decimal("40.00")
    history = await wallet_service.list_transactions(db_session, provider, sender)
    assert [entry["type"] for entry in history] == ["debit", "credit"]

    stats = await wallet_service.get_wallet_stats(db_session, provider, sender)
    assert stats["totalTransactions"] == 2
    assert stats["walletAge"] == 0


@pytest.mark.anyio("asyncio")
async def test_transfer_guards(db_session, make_user, provider) -> None:
    sender, recipient, walletless = make_user(), make_user(), make_user()
    source = await wallet_service.create_wallet(db_session, provider, sender, "NGN")
    await wallet_service.create_wallet(db_session, provider, recipient, "NGN")
    provider.credit(source.wallet_id, Decimal("10"))

    with pytest.raises(InvalidArgumentError, match="yourself"):
        await wallet_service.transfer_funds(db_session, provider, sender, sender, Decimal("1"))
    with pytest.raises(NotFoundError, match="Recipient wallet"):
        await wallet_service.transfer_funds(db_session, provider, sender, walletless, Decimal("1"))
    with pytest.raises(InvalidArgumentError, match="Insufficient"):
        await wallet_service.transfer_funds(db_session, provider, sender, recipient, Decimal("11"))

    wallet_service.suspend_wallet(db_session, recipient, "chargeback")
    with pytest.raises(InvalidStateError):
        await wallet_service.transfer_funds(db_session, provider, sender, recipient, Decimal("1"))

    reactivated = wallet_service.activate_wallet(db_session, recipient)
    assert reactivated.status is WalletStatus.ACTIVE
    assert "suspension_reason" not in reactivated.meta


def _provider_handler(calls: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path.endswith("/wallets/create"):
            return httpx.Response(
                200,
                json={"data": {"wallet_id": "W-1", "account_number": "0123456789", "bank_code": "058", "balance": "0"}},
            )
        if request.url.path.endswith("/wallets/W-1/balance"):
            return httpx.Response(200, json={"data": {"balance": "12.50", "currency": "NGN"}})
        if request.url.path.endswith("/wallets/missing/balance"):
            return httpx.Response(404, json={"message": "not found"})
        if request.url.path.endswith("/wallets/transfer"):
            return httpx.Response(400, json={"message": "insufficient"})
        return httpx.Response(500, text="boom")

    return handler


@pytest.mark.anyio("asyncio")
async def test_http_provider_signs_requests_and_maps_errors() -> None:
    calls: list[httpx.Request] = []
    client = HttpWalletProvider(
        "https://provider.test/v1",
        "api-key",
        "shared-secret",
        transport=httpx.MockTransport(_provider_handler(calls)),
    )

    wallet = await client.create_wallet(7, "NGN")
    assert wallet.wallet_id == "W-1"
    assert wallet.currency == "NGN"

    create_request = calls[0]
    assert create_request.headers["Authorization"] == "Bearer api-key"
    expected = hmac.new(b"shared-secret", create_request.content, hashlib.sha256).hexdigest()
    assert create_request.headers["X-Signature"] == expected
    assert json.loads(create_request.content)["user_id"] == "7"

    balance = await client.get_balance("W-1")
    assert balance.balance == Decimal("12.50")
    assert "X-Signature" not in calls[1].headers

    with pytest.raises(NotFoundError):
        await client.get_balance("missing")
    with pytest.raises(InvalidArgumentError):
        await client.transfer("W-1", "W-2", Decimal("5"))
    with pytest.raises(ProviderError):
        await client.list_transactions("W-1")


@pytest.mark.anyio("asyncio")
async def test_http_provider_wraps_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = HttpWalletProvider("https://provider.test", "k", "s", transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError, match="Failed to retrieve wallet balance"):
        await client.get_balance("W-1")


def test_wallet_endpoints(client, make_user, provider) -> None:
    sender, recipient = make_user(), make_user()
    app.dependency_overrides[get_provider] = lambda: provider
    sender_headers = {"Authorization": f"Bearer {create_access_token(sender)}"}
    recipient_headers = {"Authorization": f"Bearer {create_access_token(recipient)}"}

    assert client.get("/api/wallet", headers=sender_headers).status_code == 404

    created = client.post("/api/wallet", json={"currency": "ngn"}, headers=sender_headers)
    assert created.status_code == 201, created.text
    assert created.json()["data"]["currency"] == "NGN"
    assert client.post("/api/wallet", headers=recipient_headers).status_code == 201
    assert client.post("/api/wallet", headers=recipient_headers).status_code == 409

    provider.credit(created.json()["data"]["wallet_id"], Decimal("25"))
    transfer = client.post(
        "/api/wallet/transfer",
        json={"to_user_id": recipient, "amount": "5.00", "description": "Lunch"},
        headers=sender_headers,
    )
    assert transfer.status_code == 200, transfer.text
    assert Decimal(transfer.json()["data"]["balance"]) == Decimal("20")

    balance = client.get("/api/wallet/balance", headers=recipient_headers)
    assert Decimal(balance.json()["data"]["balance"]) == Decimal("5")

    suspended = client.put("/api/wallet/suspend", json={"reason": "review"}, headers=recipient_headers)
    assert suspended.json()["data"]["status"] == "suspended"
    blocked = client.post(
        "/api/wallet/transfer", json={"to_user_id": recipient, "amount": "1"}, headers=sender_headers
    )
    assert blocked.status_code == 409

    stats = client.get("/api/wallet/stats", headers=sender_headers)
    assert stats.json()["data"]["totalTransactions"] == 2
