"""Schemas related to voice and video calls."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import CallStatus, CallType


class CallCreate(BaseModel):
    callee_id: int = Field(..., ge=1)
    call_type: CallType = Field(default=CallType.VOICE)


class CallStatusUpdate(BaseModel):
    status: CallStatus


class CallEnd(BaseModel):
    end_reason: str = Field(default="completed", max_length=50)


class SignalPayload(BaseModel):
    """Opaque WebRTC blob posted over HTTP."""

    payload: Any = Field(..., description="Offer, answer or ICE candidate as produced by the client")


class CallRead(BaseModel):
    """Serialized representation of a call record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    caller_id: int
    callee_id: int
    call_type: CallType
    status: CallStatus
    started_at: datetime
    answered_at: datetime | None = None
    ended_at: datetime | None = None
    duration_seconds: int | None = None
    end_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class CallStatistics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_calls: int = Field(..., alias="totalCalls")
    total_duration: int = Field(..., alias="totalDuration")
    missed_calls: int = Field(..., alias="missedCalls")
    average_duration: float = Field(..., alias="averageDuration")
    calls_by_type: dict[str, int] = Field(..., alias="callsByType")
