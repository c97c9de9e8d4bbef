"""Pydantic schemas for API payloads."""

from .auth import AuthSession, LoginRequest, RefreshRequest, SignupRequest, Token
from .calls import CallCreate, CallEnd, CallRead, CallStatistics, CallStatusUpdate, SignalPayload
from .common import ApiResponse, ErrorResponse, PaginatedResponse, Pagination
from .messages import ConversationRead, MessageCreate, MessageRead, ReadReceipt, UnreadCount
from .users import PublicUser, UserProfileUpdate, UserRead, UserStats
from .wallet import (
    SuspendRequest,
    TransferRequest,
    TransferResult,
    WalletBalance,
    WalletCreate,
    WalletRead,
    WalletStats,
)

__all__ = [
    "ApiResponse",
    "AuthSession",
    "CallCreate",
    "CallEnd",
    "CallRead",
    "CallStatistics",
    "CallStatusUpdate",
    "ConversationRead",
    "ErrorResponse",
    "LoginRequest",
    "MessageCreate",
    "MessageRead",
    "PaginatedResponse",
    "Pagination",
    "PublicUser",
    "ReadReceipt",
    "RefreshRequest",
    "SignalPayload",
    "SignupRequest",
    "SuspendRequest",
    "Token",
    "TransferRequest",
    "TransferResult",
    "UnreadCount",
    "UserProfileUpdate",
    "UserRead",
    "UserStats",
    "WalletBalance",
    "WalletCreate",
    "WalletRead",
    "WalletStats",
]
