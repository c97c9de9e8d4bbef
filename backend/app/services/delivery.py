"""Persist-then-push delivery of direct messages and read receipts."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from app.database import get_db_session
from app.models import Message, MessageType
from app.schemas.messages import MessageRead
from app.services import messages as message_store
from app.services.users import get_active_user, public_profile
from parley.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "new_message"
MESSAGE_READ_EVENT = "message_read"

SessionFactory = Callable[[], AbstractContextManager[Session]]


def serialize_message(message: Message) -> Dict[str, Any]:
    return MessageRead.model_validate(message).model_dump(mode="json")


class MessageDeliveryCoordinator:
    """Writes messages to the store first and mirrors them to online peers.

    A push that cannot be delivered is dropped: the recipient reads the
    message from history on the next fetch.
    """

    def __init__(
        self, registry: PresenceRegistry, session_factory: SessionFactory = get_db_session
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory

    async def send(
        self,
        sender_id: int,
        recipient_id: int,
        content: str,
        message_type: MessageType | str = MessageType.TEXT,
        file_url: str | None = None,
        *,
        channel: str = "realtime",
    ) -> Dict[str, Any]:
        with self._session_factory() as db:
            message = message_store.create_message(
                db, sender_id, recipient_id, content, message_type, file_url, sent_via=channel
            )
            payload = serialize_message(message)
            sender = get_active_user(db, sender_id)
            sender_info = public_profile(sender) if sender is not None else {"id": sender_id}

        delivered = await self._registry.push(
            recipient_id, NEW_MESSAGE_EVENT, {**payload, "sender": sender_info}
        )
        logger.debug(
            "Message %s pushed to %s: %s", payload["id"], recipient_id, "delivered" if delivered else "offline"
        )
        return payload

    async def mark_read(self, message_id: int, reader_id: int) -> Dict[str, Any]:
        with self._session_factory() as db:
            message, changed = message_store.mark_message_read(db, message_id, reader_id)
            payload = serialize_message(message)

        if changed:
            await self._registry.push(
                payload["sender_id"],
                MESSAGE_READ_EVENT,
                {
                    "readBy": reader_id,
                    "messageId": payload["id"],
                    "timestamp": payload["read_at"],
                },
            )
        return payload

    async def mark_all_read(self, sender_id: int, reader_id: int) -> int:
        with self._session_factory() as db:
            updated = message_store.mark_conversation_read(db, sender_id, reader_id)

        if updated:
            await self._registry.push(
                sender_id,
                MESSAGE_READ_EVENT,
                {
                    "readBy": reader_id,
                    "messageId": None,
                    "count": updated,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
        return updated

    async def soft_delete(self, message_id: int, actor_id: int) -> Dict[str, Any]:
        with self._session_factory() as db:
            message, _ = message_store.soft_delete_message(db, message_id, actor_id)
            return serialize_message(message)
