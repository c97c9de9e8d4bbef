"""Lifecycle of a single realtime connection.

A session moves ``connecting -> authenticated -> active -> closed``. The
handshake verifies the bearer credential before the socket is accepted, the
active phase dispatches named events to the registered handlers, and closing
removes the session from the presence registry.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, TypeVar

from fastapi import WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.errors import DomainError
from app.monitoring.metrics import realtime_events_total

from .presence import ConnectionHandle, PresenceRegistry, build_frame, safe_send_json


logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSION_REPLACED_EVENT = "session_replaced"
SESSION_REPLACED_CLOSE_CODE = 4000


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


class HandshakeRejected(Exception):
    """Raised by credential verifiers when a connection must be refused."""


@dataclass(slots=True)
class Ack:
    """Tagged result returned for request/response style events."""

    success: bool
    data: Any = None
    error: str | None = None
    code: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "Ack":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str = "error") -> "Ack":
        return cls(success=False, error=error, code=code)

    def to_frame(self, ack_id: Any = None) -> Dict[str, Any]:
        frame: Dict[str, Any] = {"event": "ack", "ackId": ack_id, "success": self.success}
        if self.success:
            frame["data"] = self.data
        else:
            frame["error"] = self.error
            frame["code"] = self.code
        return frame


EventHandler = Callable[["ConnectionSession", Dict[str, Any]], Awaitable[Ack | None]]
CredentialVerifier = Callable[[str], int]


def extract_bearer(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    return token or None


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or build_frame("ping", None)
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


class ConnectionSession:
    """Owns one websocket from handshake to disconnect."""

    def __init__(
        self,
        websocket: WebSocket,
        registry: PresenceRegistry,
        *,
        verify_credential: CredentialVerifier,
        handlers: Mapping[str, EventHandler],
        keepalive_timeout_seconds: float | None = None,
        ping_interval_seconds: float | None = None,
    ) -> None:
        self.websocket = websocket
        self.registry = registry
        self.state = SessionState.CONNECTING
        self.user_id: int | None = None
        self.handle: ConnectionHandle | None = None
        self._verify_credential = verify_credential
        self._handlers = handlers
        self._keepalive_timeout = keepalive_timeout_seconds
        self._ping_interval = ping_interval_seconds

    async def handshake(self) -> bool:
        """Authenticate, accept and register the connection."""

        token = extract_bearer(self.websocket)
        if token is None:
            await self._refuse("Missing token")
            return False
        try:
            user_id = self._verify_credential(token)
        except HandshakeRejected as exc:
            await self._refuse(str(exc) or "Invalid token")
            return False

        self.user_id = user_id
        self.state = SessionState.AUTHENTICATED

        await self.websocket.accept()
        self.handle = ConnectionHandle.open(user_id, self.websocket)
        previous = await self.registry.register(user_id, self.handle)
        self.state = SessionState.ACTIVE
        logger.info("Realtime session %s opened for user %s", self.handle.session_id, user_id)

        if previous is not None and previous.session_id != self.handle.session_id:
            await self._evict(previous)
        return True

    async def serve(self) -> None:
        """Process inbound frames until the transport goes away."""

        try:
            async for raw_message in iter_keepalive_messages(
                self.websocket,
                self.websocket.receive_text,
                timeout_seconds=self._keepalive_timeout,
                ping_interval_seconds=self._ping_interval,
            ):
                if self.state is not SessionState.ACTIVE:
                    break
                await self.handle_raw(raw_message)
        finally:
            await self.close()

    async def handle_raw(self, raw_message: str) -> None:
        try:
            frame = json.loads(raw_message)
        except json.JSONDecodeError:
            await self.send("error", {"error": "Invalid message format"})
            return

        if not isinstance(frame, dict):
            await self.send("error", {"error": "Message payload must be a JSON object"})
            return

        event = frame.get("event")
        if event == "ping":
            await self.send("pong", None)
            return
        if event == "pong":
            return

        ack_id = frame.get("ackId")
        data = frame.get("data")
        if data is None:
            data = {}
        if not isinstance(event, str) or not event:
            await self._send_ack(Ack.fail("Event name must be provided", "invalid_argument"), ack_id)
            return
        if not isinstance(data, dict):
            await self._send_ack(Ack.fail("Event data must be a JSON object", "invalid_argument"), ack_id)
            return

        ack = await self.dispatch(event, data)
        if ack is not None:
            await self._send_ack(ack, ack_id)

    async def dispatch(self, event: str, data: Dict[str, Any]) -> Ack | None:
        handler = self._handlers.get(event)
        if handler is None:
            return Ack.fail(f"Unsupported event '{event}'", "invalid_argument")

        realtime_events_total.labels(event, "in").inc()
        # A handler that already started writing must finish even if the
        # connection task is cancelled underneath it.
        inner = asyncio.ensure_future(handler(self, data))
        try:
            return await asyncio.shield(inner)
        except DomainError as exc:
            return Ack.fail(exc.message, exc.code)
        except asyncio.CancelledError:
            inner.add_done_callback(lambda task: self._report_detached(event, task))
            raise
        except Exception:
            logger.exception("Realtime event %s failed for user %s", event, self.user_id)
            return Ack.fail("Internal server error", "internal")

    async def send(self, event: str, data: Any) -> bool:
        realtime_events_total.labels(event, "out").inc()
        return await safe_send_json(self.websocket, build_frame(event, data))

    async def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self.handle is None or self.user_id is None:
            return
        removed = await self.registry.unregister(self.user_id, self.handle)
        logger.info(
            "Realtime session %s closed for user %s%s",
            self.handle.session_id,
            self.user_id,
            "" if removed else " (already replaced)",
        )

    def _report_detached(self, event: str, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, DomainError):
            logger.info(
                "Detached realtime event %s for user %s was refused: %s", event, self.user_id, exc.message
            )
        else:
            logger.error(
                "Detached realtime event %s failed for user %s", event, self.user_id, exc_info=exc
            )

    async def _send_ack(self, ack: Ack, ack_id: Any) -> None:
        await safe_send_json(self.websocket, ack.to_frame(ack_id))

    async def _refuse(self, reason: str) -> None:
        self.state = SessionState.CLOSED
        await self.websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)

    async def _evict(self, previous: ConnectionHandle) -> None:
        await previous.send(SESSION_REPLACED_EVENT, {"sessionId": previous.session_id})
        if previous.websocket.application_state == WebSocketState.CONNECTED:
            try:
                await previous.websocket.close(
                    code=SESSION_REPLACED_CLOSE_CODE, reason="Session replaced"
                )
            except RuntimeError:
                logger.debug("Displaced session %s already closed", previous.session_id)


__all__ = [
    "Ack",
    "ConnectionSession",
    "CredentialVerifier",
    "EventHandler",
    "HandshakeRejected",
    "SessionState",
    "extract_bearer",
    "iter_keepalive_messages",
]
