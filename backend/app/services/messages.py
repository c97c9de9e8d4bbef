"""Store operations and read projections for direct messages.

Soft-deleted rows stay in the table but never leave this module: every read
below filters on ``is_deleted``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from app.models import Message, MessageType, User
from app.monitoring.metrics import messages_sent_total
from app.services.users import get_active_user

logger = logging.getLogger(__name__)

settings = get_settings()

ACTIVE_CONVERSATION_WINDOW = timedelta(days=30)
FILE_URL_MAX_LENGTH = 500


@dataclass(slots=True)
class ConversationSummary:
    """Latest visible message exchanged with one counterpart."""

    other_user: User
    last_message: Message
    unread_count: int


def _pair_filter(user_id: int, other_user_id: int):
    return or_(
        and_(Message.sender_id == user_id, Message.recipient_id == other_user_id),
        and_(Message.sender_id == other_user_id, Message.recipient_id == user_id),
    )


def _party_filter(user_id: int):
    return or_(Message.sender_id == user_id, Message.recipient_id == user_id)


def _visible():
    return Message.is_deleted.is_(False)


def create_message(
    db: Session,
    sender_id: int,
    recipient_id: int,
    content: str,
    message_type: MessageType | str = MessageType.TEXT,
    file_url: str | None = None,
    *,
    sent_via: str = "api",
) -> Message:
    if get_active_user(db, recipient_id) is None:
        raise NotFoundError("Recipient not found")
    if not content or not content.strip():
        raise InvalidArgumentError("Message content is required")
    if len(content) > settings.message_max_length:
        raise InvalidArgumentError(
            f"Message content exceeds {settings.message_max_length} characters"
        )
    if file_url is not None and len(file_url) > FILE_URL_MAX_LENGTH:
        raise InvalidArgumentError(f"File URL exceeds {FILE_URL_MAX_LENGTH} characters")
    try:
        kind = MessageType(message_type)
    except ValueError:
        raise InvalidArgumentError(f"Unsupported message type '{message_type}'") from None

    message = Message(
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        message_type=kind,
        file_url=file_url,
        meta={"sent_via": sent_via, "client_timestamp": datetime.now(timezone.utc).isoformat()},
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    messages_sent_total.labels(sent_via).inc()
    logger.info("Message sent: %s -> %s", sender_id, recipient_id)
    return message


def get_message_history(
    db: Session, user_id: int, other_user_id: int, *, page: int = 1, limit: int = 20
) -> tuple[list[Message], int]:
    """Page through a conversation newest first; each page is returned oldest first."""

    if get_active_user(db, other_user_id) is None:
        raise NotFoundError("User not found")

    filters = (_pair_filter(user_id, other_user_id), _visible())
    total = db.execute(select(func.count(Message.id)).where(*filters)).scalar_one()
    rows = (
        db.execute(
            select(Message)
            .where(*filters)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(reversed(rows)), int(total or 0)


def mark_message_read(db: Session, message_id: int, reader_id: int) -> tuple[Message, bool]:
    """Mark one message read; the flag is False when it already was."""

    message = db.get(Message, message_id)
    if message is None or message.is_deleted:
        raise NotFoundError("Message not found")
    if message.recipient_id != reader_id:
        raise ForbiddenError("Only the recipient can mark a message as read")
    if message.is_read:
        return message, False

    message.is_read = True
    message.read_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(message)
    logger.info("Message marked as read: %s by %s", message_id, reader_id)
    return message, True


def mark_conversation_read(db: Session, sender_id: int, reader_id: int) -> int:
    """Mark every unread message from ``sender_id`` to ``reader_id`` read."""

    result = db.execute(
        update(Message)
        .where(
            Message.sender_id == sender_id,
            Message.recipient_id == reader_id,
            Message.is_read.is_(False),
            _visible(),
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = int(result.rowcount or 0)
    if count:
        logger.info("%s messages marked as read between %s and %s", count, sender_id, reader_id)
    return count


def soft_delete_message(db: Session, message_id: int, actor_id: int) -> tuple[Message, bool]:
    message = db.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if message.sender_id != actor_id and message.recipient_id != actor_id:
        raise ForbiddenError("Not a participant in this conversation")
    if message.is_deleted:
        return message, False

    message.is_deleted = True
    message.deleted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(message)
    logger.info("Message deleted: %s by %s", message_id, actor_id)
    return message, True


def delete_conversation(db: Session, user_id: int, other_user_id: int) -> int:
    result = db.execute(
        update(Message)
        .where(_pair_filter(user_id, other_user_id), _visible())
        .values(is_deleted=True, deleted_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = int(result.rowcount or 0)
    logger.info(
        "Conversation deleted: %s <-> %s, %s messages affected", user_id, other_user_id, count
    )
    return count


def get_unread_count(db: Session, user_id: int) -> int:
    count = db.execute(
        select(func.count(Message.id)).where(
            Message.recipient_id == user_id, Message.is_read.is_(False), _visible()
        )
    ).scalar_one()
    return int(count or 0)


def get_message(db: Session, message_id: int, user_id: int) -> Message:
    message = db.execute(
        select(Message).where(Message.id == message_id, _party_filter(user_id), _visible())
    ).scalar_one_or_none()
    if message is None:
        raise NotFoundError("Message not found")
    return message


def get_conversations(
    db: Session, user_id: int, *, page: int = 1, limit: int = 20
) -> tuple[list[ConversationSummary], int]:
    """Latest visible message per counterpart with the unread count from them."""

    counterpart = case(
        (Message.sender_id == user_id, Message.recipient_id), else_=Message.sender_id
    )
    ranked = (
        select(
            Message.id.label("message_id"),
            counterpart.label("other_user_id"),
            func.row_number()
            .over(
                partition_by=counterpart,
                order_by=(Message.created_at.desc(), Message.id.desc()),
            )
            .label("rn"),
        )
        .where(_party_filter(user_id), _visible())
        .subquery()
    )
    unread = (
        select(Message.sender_id.label("sender_id"), func.count(Message.id).label("unread_count"))
        .where(Message.recipient_id == user_id, Message.is_read.is_(False), _visible())
        .group_by(Message.sender_id)
        .subquery()
    )

    total = db.execute(
        select(func.count())
        .select_from(ranked)
        .join(User, User.id == ranked.c.other_user_id)
        .where(ranked.c.rn == 1, User.is_active.is_(True))
    ).scalar_one()

    rows = db.execute(
        select(Message, User, func.coalesce(unread.c.unread_count, 0))
        .join(ranked, ranked.c.message_id == Message.id)
        .join(User, User.id == ranked.c.other_user_id)
        .outerjoin(unread, unread.c.sender_id == ranked.c.other_user_id)
        .where(ranked.c.rn == 1, User.is_active.is_(True))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    summaries = [
        ConversationSummary(other_user=other, last_message=message, unread_count=int(count or 0))
        for message, other, count in rows
    ]
    return summaries, int(total or 0)


def search_messages(
    db: Session, user_id: int, query: str, *, page: int = 1, limit: int = 20
) -> tuple[list[Message], int]:
    """Case-insensitive substring search over the user's visible messages."""

    needle = query.strip().lower()
    if not needle:
        raise InvalidArgumentError("Search query is required")

    filters = (
        _party_filter(user_id),
        _visible(),
        func.lower(Message.content).contains(needle, autoescape=True),
    )
    total = db.execute(select(func.count(Message.id)).where(*filters)).scalar_one()
    rows = (
        db.execute(
            select(Message)
            .where(*filters)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(rows), int(total or 0)


def get_message_statistics(db: Session, user_id: int) -> Dict[str, Any]:
    total_sent, total_received, total_unread = db.execute(
        select(
            func.count(case((Message.sender_id == user_id, Message.id))),
            func.count(case((Message.recipient_id == user_id, Message.id))),
            func.count(
                case(
                    (and_(Message.recipient_id == user_id, Message.is_read.is_(False)), Message.id)
                )
            ),
        ).where(_party_filter(user_id), _visible())
    ).one()

    since = datetime.now(timezone.utc) - ACTIVE_CONVERSATION_WINDOW
    counterpart = case(
        (Message.sender_id == user_id, Message.recipient_id), else_=Message.sender_id
    )
    active = db.execute(
        select(func.count(func.distinct(counterpart)))
        .select_from(Message)
        .join(User, User.id == counterpart)
        .where(_party_filter(user_id), _visible(), Message.created_at >= since, User.is_active.is_(True))
    ).scalar_one()

    return {
        "totalSent": int(total_sent or 0),
        "totalReceived": int(total_received or 0),
        "totalUnread": int(total_unread or 0),
        "activeConversations": int(active or 0),
    }
