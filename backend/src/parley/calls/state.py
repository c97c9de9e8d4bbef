"""Call lifecycle rules.

Status changes for a call are validated against a single transition table so
that duration bookkeeping and the one-live-call-per-user rule cannot be
bypassed by writing ``status`` directly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping

from app.errors import InvalidStateError
from app.models.enums import CallStatus

ACTIVE_STATUSES: frozenset[CallStatus] = frozenset(
    {CallStatus.INITIATED, CallStatus.RINGING, CallStatus.ANSWERED}
)
TERMINAL_STATUSES: frozenset[CallStatus] = frozenset(
    {CallStatus.ENDED, CallStatus.MISSED, CallStatus.REJECTED}
)

# A callee may answer before the ringing update lands, so initiated -> answered
# is accepted as well.
ALLOWED_TRANSITIONS: Mapping[CallStatus, frozenset[CallStatus]] = {
    CallStatus.INITIATED: frozenset(
        {
            CallStatus.RINGING,
            CallStatus.ANSWERED,
            CallStatus.ENDED,
            CallStatus.MISSED,
            CallStatus.REJECTED,
        }
    ),
    CallStatus.RINGING: frozenset(
        {CallStatus.ANSWERED, CallStatus.ENDED, CallStatus.MISSED, CallStatus.REJECTED}
    ),
    CallStatus.ANSWERED: frozenset({CallStatus.ENDED}),
    CallStatus.ENDED: frozenset(),
    CallStatus.MISSED: frozenset(),
    CallStatus.REJECTED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps read back from the store as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_terminal(status: CallStatus | str) -> bool:
    return CallStatus(status) in TERMINAL_STATUSES


def can_transition(current: CallStatus | str, target: CallStatus | str) -> bool:
    return CallStatus(target) in ALLOWED_TRANSITIONS[CallStatus(current)]


def ensure_transition(current: CallStatus | str, target: CallStatus | str) -> CallStatus:
    """Return ``target`` as a :class:`CallStatus` or raise :class:`InvalidStateError`."""

    current_status = CallStatus(current)
    target_status = CallStatus(target)
    if current_status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Call already {current_status.value}")
    if not can_transition(current_status, target_status):
        raise InvalidStateError(
            f"Cannot move call from {current_status.value} to {target_status.value}"
        )
    return target_status


def compute_duration(answered_at: datetime | None, ended_at: datetime) -> int:
    """Whole seconds between answer and end; zero for calls never answered."""

    if answered_at is None:
        return 0
    delta = ensure_aware(ended_at) - ensure_aware(answered_at)
    return max(int(delta.total_seconds()), 0)


__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "ALLOWED_TRANSITIONS",
    "utcnow",
    "ensure_aware",
    "is_terminal",
    "can_transition",
    "ensure_transition",
    "compute_duration",
]
