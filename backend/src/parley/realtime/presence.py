"""In-process registry of live realtime connections.

One :class:`ConnectionHandle` is kept per user; a newer connection replaces the
older one. The registry lock only guards the in-memory map: every send happens
after it has been released so a slow peer never stalls unrelated connections.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections, realtime_push_failures_total


logger = logging.getLogger(__name__)

PRESENCE_EVENT = "user_status"


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def build_frame(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


@dataclass(frozen=True, slots=True)
class ConnectionHandle:
    """A single authenticated realtime session."""

    user_id: int
    session_id: str
    connected_at: datetime
    websocket: WebSocket = field(compare=False, repr=False)

    @classmethod
    def open(cls, user_id: int, websocket: WebSocket) -> "ConnectionHandle":
        return cls(
            user_id=user_id,
            session_id=uuid.uuid4().hex,
            connected_at=datetime.now(timezone.utc),
            websocket=websocket,
        )

    async def send(self, event: str, data: Any) -> bool:
        return await safe_send_json(self.websocket, build_frame(event, data))


class PresenceSnapshot:
    """Point-in-time copy of the registry that can be iterated repeatedly."""

    __slots__ = ("_entries", "taken_at")

    def __init__(self, entries: Iterable[tuple[int, ConnectionHandle]]) -> None:
        self._entries = tuple(entries)
        self.taken_at = datetime.now(timezone.utc)

    def __iter__(self) -> Iterator[tuple[int, ConnectionHandle]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def user_ids(self) -> list[int]:
        return [user_id for user_id, _ in self._entries]


class PresenceRegistry:
    """Maps user ids to their live connection and announces presence changes."""

    def __init__(self) -> None:
        self._handles: Dict[int, ConnectionHandle] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._handles)

    async def register(
        self, user_id: int, handle: ConnectionHandle, *, announce: bool = True
    ) -> ConnectionHandle | None:
        """Install ``handle`` for ``user_id`` and return the handle it displaced."""

        async with self._lock:
            previous = self._handles.get(user_id)
            self._handles[user_id] = handle
            if previous is None:
                realtime_connections.inc()

        if previous is not None and previous.session_id == handle.session_id:
            return previous
        if announce:
            await self.announce(user_id, True)
        return previous

    async def unregister(
        self, user_id: int, handle: ConnectionHandle, *, announce: bool = True
    ) -> bool:
        """Remove ``handle`` unless a newer session already replaced it."""

        async with self._lock:
            current = self._handles.get(user_id)
            if current is None or current.session_id != handle.session_id:
                return False
            self._handles.pop(user_id, None)
            realtime_connections.dec()

        if announce:
            await self.announce(user_id, False)
        return True

    async def lookup(self, user_id: int) -> ConnectionHandle | None:
        async with self._lock:
            return self._handles.get(user_id)

    async def is_online(self, user_id: int) -> bool:
        return await self.lookup(user_id) is not None

    async def snapshot(self) -> PresenceSnapshot:
        async with self._lock:
            return PresenceSnapshot(self._handles.items())

    async def clear(self) -> list[ConnectionHandle]:
        async with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            realtime_connections.set(0)
        return handles

    async def push(self, user_id: int, event: str, data: Any) -> bool:
        """Best-effort delivery to ``user_id``; False when offline or the send failed."""

        handle = await self.lookup(user_id)
        if handle is None:
            return False
        delivered = await handle.send(event, data)
        if not delivered:
            realtime_push_failures_total.labels(event).inc()
        return delivered

    async def broadcast(
        self, event: str, data: Any, *, exclude: Iterable[int] | None = None
    ) -> int:
        excluded = set(exclude or ())
        snapshot = await self.snapshot()
        delivered = 0
        for user_id, handle in snapshot:
            if user_id in excluded:
                continue
            if await handle.send(event, data):
                delivered += 1
            else:
                realtime_push_failures_total.labels(event).inc()
        return delivered

    async def announce(self, user_id: int, is_online: bool) -> int:
        payload = {
            "userId": user_id,
            "isOnline": is_online,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return await self.broadcast(PRESENCE_EVENT, payload, exclude={user_id})


__all__ = [
    "PRESENCE_EVENT",
    "ConnectionHandle",
    "PresenceRegistry",
    "PresenceSnapshot",
    "build_frame",
    "safe_send_json",
]
