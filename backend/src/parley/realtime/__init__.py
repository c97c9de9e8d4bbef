"""Realtime presence tracking and connection session handling."""

from .managers import (  # noqa: F401
    configure_realtime,
    get_presence_registry,
    shutdown_realtime,
    startup_realtime,
)
from .presence import ConnectionHandle, PresenceRegistry, PresenceSnapshot  # noqa: F401
from .session import Ack, ConnectionSession, HandshakeRejected, SessionState  # noqa: F401

__all__ = [
    "configure_realtime",
    "startup_realtime",
    "shutdown_realtime",
    "get_presence_registry",
    "ConnectionHandle",
    "PresenceRegistry",
    "PresenceSnapshot",
    "Ack",
    "ConnectionSession",
    "HandshakeRejected",
    "SessionState",
]
