"""Unit tests validating Pydantic schema constraints."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.schemas import (
    ApiResponse,
    CallStatistics,
    MessageCreate,
    Pagination,
    SignupRequest,
    TransferRequest,
    UserProfileUpdate,
)


def test_signup_strips_name_and_checks_phone():
    payload = SignupRequest(
        name="  Ada Lovelace  ", email="ada@example.com", phone="+2348012345678", password="Str0ng!pass"
    )
    assert payload.name == "Ada Lovelace"

    with pytest.raises(ValidationError):
        SignupRequest(name="Ada", email="ada@example.com", phone="0800", password="Str0ng!pass")


def test_signup_enforces_password_complexity():
    with pytest.raises(ValidationError, match="uppercase"):
        SignupRequest(name="Bob", email="bob@example.com", phone="+2348012345678", password="alllowercase1!")


def test_message_create_requires_content():
    with pytest.raises(ValidationError):
        MessageCreate(recipient_id=1, content="")
    with pytest.raises(ValidationError):
        MessageCreate(recipient_id=1, content="hi", message_type="sticker")


def test_profile_update_only_reports_set_fields():
    update = UserProfileUpdate(avatar="https://cdn.example.com/a.png")
    assert update.changes() == {"avatar": "https://cdn.example.com/a.png"}
    assert UserProfileUpdate().changes() == {}


def test_transfer_amount_must_be_positive():
    assert TransferRequest(to_user_id=2, amount="10.50").amount == Decimal("10.50")
    with pytest.raises(ValidationError):
        TransferRequest(to_user_id=2, amount=0)


def test_pagination_rounds_pages_up():
    assert Pagination.build(page=2, limit=20, total=41).pages == 3
    assert Pagination.build(page=1, limit=20, total=0).pages == 0


def test_statistics_serialise_with_camel_case_keys():
    stats = CallStatistics.model_validate(
        {"totalCalls": 1, "totalDuration": 5, "missedCalls": 0, "averageDuration": 5.0, "callsByType": {}}
    )
    body = ApiResponse[CallStatistics](message="ok", data=stats).model_dump(by_alias=True)
    assert body["data"]["totalCalls"] == 1
    assert body["success"] is True
