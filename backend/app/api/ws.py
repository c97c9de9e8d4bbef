"""WebSocket endpoint for presence, direct messages and call signalling."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket

from app.config import get_settings
from app.core.security import InvalidCredentialsError, verify_access_token
from app.database import get_db_session
from app.errors import InvalidArgumentError
from app.models import CallType, MessageType
from app.services.call_events import CallEventCoordinator
from app.services.delivery import MessageDeliveryCoordinator, SessionFactory
from app.services.signaling import SignalingRelay
from app.services.users import get_active_user
from parley.calls.signaling import SignalKind, extract_payload
from parley.realtime import (
    Ack,
    ConnectionSession,
    HandshakeRejected,
    PresenceRegistry,
    get_presence_registry,
)
from parley.realtime.session import EventHandler

router = APIRouter(tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

TYPING_EVENT = "user_typing"


def verify_credential(token: str) -> int:
    """Map a bearer token to an active user id for the handshake."""

    try:
        claims = verify_access_token(token)
    except InvalidCredentialsError as exc:
        raise HandshakeRejected(str(exc)) from exc
    with get_db_session() as db:
        if get_active_user(db, claims.user_id) is None:
            raise HandshakeRejected("Invalid token")
    return claims.user_id


def _require_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        raise InvalidArgumentError(f"'{key}' is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"'{key}' must be an integer") from None


def _optional_int(data: Dict[str, Any], key: str) -> int | None:
    if data.get(key) is None:
        return None
    return _require_int(data, key)


def _enum_value(enum_cls, value: Any, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgumentError(f"Unsupported value '{value}'") from None


class RealtimeHandlers:
    """Event handlers bound to one registry and one store session factory."""

    def __init__(self, registry: PresenceRegistry, session_factory: SessionFactory = get_db_session) -> None:
        self.registry = registry
        self.delivery = MessageDeliveryCoordinator(registry, session_factory)
        self.calls = CallEventCoordinator(registry, session_factory)
        self.relay = SignalingRelay(registry, session_factory)

    def table(self) -> Dict[str, EventHandler]:
        return {
            "send_message": self.send_message,
            "mark_read": self.mark_read,
            "typing_start": self.typing_start,
            "typing_stop": self.typing_stop,
            "start_call": self.start_call,
            "answer_call": self.answer_call,
            "reject_call": self.reject_call,
            "end_call": self.end_call,
            SignalKind.OFFER.event: self.webrtc_offer,
            SignalKind.ANSWER.event: self.webrtc_answer,
            SignalKind.ICE_CANDIDATE.event: self.webrtc_ice_candidate,
            "get_online_users": self.get_online_users,
        }

    async def send_message(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        recipient_id = _require_int(data, "recipientId")
        content = data.get("content")
        if not isinstance(content, str) or not content:
            raise InvalidArgumentError("Missing required fields")
        file_url = data.get("fileUrl")
        if file_url is not None and not isinstance(file_url, str):
            raise InvalidArgumentError("'fileUrl' must be a string")
        message = await self.delivery.send(
            session.user_id,
            recipient_id,
            content,
            _enum_value(MessageType, data.get("messageType"), MessageType.TEXT),
            file_url,
        )
        logger.info("Real-time message sent: %s -> %s", session.user_id, recipient_id)
        return Ack.ok(message)

    async def mark_read(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        message_id = _optional_int(data, "messageId")
        if message_id is not None:
            return Ack.ok(await self.delivery.mark_read(message_id, session.user_id))
        sender_id = _optional_int(data, "senderId")
        if sender_id is None:
            raise InvalidArgumentError("'messageId' or 'senderId' is required")
        updated = await self.delivery.mark_all_read(sender_id, session.user_id)
        return Ack.ok({"updated": updated})

    async def _typing(self, session: ConnectionSession, data: Dict[str, Any], typing: bool) -> None:
        recipient_id = _require_int(data, "recipientId")
        await self.registry.push(recipient_id, TYPING_EVENT, {"userId": session.user_id, "typing": typing})

    async def typing_start(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        await self._typing(session, data, True)

    async def typing_stop(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        await self._typing(session, data, False)

    async def start_call(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        callee_id = _require_int(data, "calleeId")
        call_type = _enum_value(CallType, data.get("callType"), CallType.VOICE)
        call = await self.calls.start(session.user_id, callee_id, call_type)
        logger.info("Real-time call initiated: %s -> %s", session.user_id, callee_id)
        return Ack.ok(call)

    async def answer_call(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        return Ack.ok(await self.calls.answer(_require_int(data, "callId"), session.user_id))

    async def reject_call(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        return Ack.ok(await self.calls.reject(_require_int(data, "callId"), session.user_id))

    async def end_call(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        reason = data.get("endReason") or "completed"
        return Ack.ok(await self.calls.end(_require_int(data, "callId"), session.user_id, str(reason)))

    async def _signal(self, kind: SignalKind, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        delivered = await self.relay.relay(
            kind,
            _require_int(data, "callId"),
            extract_payload(kind, data),
            _optional_int(data, "targetUserId"),
            session.user_id,
        )
        return Ack.ok({"delivered": delivered})

    async def webrtc_offer(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        return await self._signal(SignalKind.OFFER, session, data)

    async def webrtc_answer(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        return await self._signal(SignalKind.ANSWER, session, data)

    async def webrtc_ice_candidate(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        return await self._signal(SignalKind.ICE_CANDIDATE, session, data)

    async def get_online_users(self, session: ConnectionSession, data: Dict[str, Any]) -> Ack:
        snapshot = await self.registry.snapshot()
        return Ack.ok({"userIds": [user_id for user_id in snapshot.user_ids() if user_id != session.user_id]})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Authenticated realtime channel; one live session per user."""

    registry = get_presence_registry()
    handlers = RealtimeHandlers(registry)
    session = ConnectionSession(
        websocket,
        registry,
        verify_credential=verify_credential,
        handlers=handlers.table(),
        keepalive_timeout_seconds=settings.websocket_keepalive_timeout_seconds,
        ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
    )
    if not await session.handshake():
        return
    await session.serve()
