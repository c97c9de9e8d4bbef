"""Helpers for WebRTC signalling payloads.

Offers, answers and ICE candidates belong to the two peers negotiating media.
The backend stores and forwards them verbatim and never looks inside, so they
are wrapped in :class:`OpaquePayload` as soon as they leave the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from app.errors import InvalidArgumentError


class SignalKind(str, Enum):
    """Signalling message kinds relayed between call participants."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice_candidate"

    @property
    def event(self) -> str:
        return f"webrtc_{self.value}"

    @property
    def legacy_field(self) -> str:
        # Older clients send the blob under a kind specific key.
        return "candidate" if self is SignalKind.ICE_CANDIDATE else self.value

    @classmethod
    def from_event(cls, event: str) -> "SignalKind":
        prefix = "webrtc_"
        name = event[len(prefix):] if event.startswith(prefix) else event
        try:
            return cls(name)
        except ValueError:
            raise InvalidArgumentError(f"Unknown signalling kind '{event}'") from None


@dataclass(frozen=True, slots=True)
class OpaquePayload:
    """A signalling blob that is stored and forwarded without inspection."""

    value: Any

    def to_wire(self) -> Any:
        return self.value


def extract_payload(kind: SignalKind, data: Mapping[str, Any]) -> OpaquePayload:
    """Pull the signalling blob out of an inbound event body."""

    if "payload" in data:
        return OpaquePayload(data["payload"])
    if kind.legacy_field in data:
        return OpaquePayload(data[kind.legacy_field])
    raise InvalidArgumentError("Signalling payload is required")


def build_relay_envelope(
    kind: SignalKind, call_id: int, payload: OpaquePayload, source_user_id: int
) -> Dict[str, Any]:
    """Outgoing body pushed to the target peer."""

    wire = payload.to_wire()
    return {
        "kind": kind.value,
        "callId": call_id,
        "payload": wire,
        kind.legacy_field: wire,
        "fromUserId": source_user_id,
    }


__all__ = [
    "SignalKind",
    "OpaquePayload",
    "extract_payload",
    "build_relay_envelope",
]
