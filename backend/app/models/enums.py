from __future__ import annotations

from enum import Enum


class CallType(str, Enum):
    """Media kind negotiated for a call."""

    VOICE = "voice"
    VIDEO = "video"


class CallStatus(str, Enum):
    """Lifecycle states of a call record."""

    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    ENDED = "ended"
    MISSED = "missed"
    REJECTED = "rejected"


class MessageType(str, Enum):
    """Kinds of direct message content."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class WalletStatus(str, Enum):
    """Lifecycle states for a user wallet."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"
