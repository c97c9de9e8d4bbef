"""Call lifecycle rules and signalling payload helpers."""

from .signaling import OpaquePayload, SignalKind, build_relay_envelope, extract_payload
from .state import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    compute_duration,
    ensure_transition,
    is_terminal,
    utcnow,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "OpaquePayload",
    "SignalKind",
    "build_relay_envelope",
    "compute_duration",
    "ensure_transition",
    "extract_payload",
    "is_terminal",
    "utcnow",
]
