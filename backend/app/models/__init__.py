"""Database models package."""

from .base import Base
from .chat import ActiveCallSlot, Call, Message, User, Wallet
from .enums import CallStatus, CallType, MessageType, WalletStatus

__all__ = [
    "Base",
    "User",
    "Message",
    "Call",
    "ActiveCallSlot",
    "Wallet",
    "CallStatus",
    "CallType",
    "MessageType",
    "WalletStatus",
]
