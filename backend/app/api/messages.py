"""Direct message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_delivery_coordinator
from app.config import get_settings
from app.database import get_db
from app.models import User
from app.schemas import (
    ApiResponse,
    ConversationRead,
    MessageCreate,
    MessageRead,
    PaginatedResponse,
    Pagination,
    ReadReceipt,
    UnreadCount,
)
from app.services import messages as message_store
from app.services.delivery import MessageDeliveryCoordinator

router = APIRouter(prefix="/messages", tags=["messages"])
settings = get_settings()

PageParam = Query(1, ge=1)
LimitParam = Query(settings.page_default_limit, ge=1, le=settings.page_max_limit)


@router.post("/send", response_model=ApiResponse[MessageRead], status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    coordinator: MessageDeliveryCoordinator = Depends(get_delivery_coordinator),
) -> ApiResponse[MessageRead]:
    message = await coordinator.send(
        current_user.id,
        payload.recipient_id,
        payload.content,
        payload.message_type,
        payload.file_url,
        channel="api",
    )
    return ApiResponse(message="Message sent successfully", data=MessageRead.model_validate(message))


@router.get("/conversations", response_model=PaginatedResponse[ConversationRead])
def list_conversations(
    page: int = PageParam,
    limit: int = LimitParam,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaginatedResponse[ConversationRead]:
    summaries, total = message_store.get_conversations(db, current_user.id, page=page, limit=limit)
    return PaginatedResponse(
        message="Conversations retrieved successfully",
        data=[ConversationRead.model_validate(summary) for summary in summaries],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/history/{user_id}", response_model=PaginatedResponse[MessageRead])
def message_history(
    user_id: int,
    page: int = PageParam,
    limit: int = LimitParam,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaginatedResponse[MessageRead]:
    rows, total = message_store.get_message_history(db, current_user.id, user_id, page=page, limit=limit)
    return PaginatedResponse(
        message="Messages retrieved successfully",
        data=[MessageRead.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.put("/{message_id}/read", response_model=ApiResponse[MessageRead])
async def mark_message_read(
    message_id: int,
    current_user: User = Depends(get_current_user),
    coordinator: MessageDeliveryCoordinator = Depends(get_delivery_coordinator),
) -> ApiResponse[MessageRead]:
    message = await coordinator.mark_read(message_id, current_user.id)
    return ApiResponse(message="Message marked as read", data=MessageRead.model_validate(message))


@router.put("/read/{user_id}", response_model=ApiResponse[ReadReceipt])
async def mark_conversation_read(
    user_id: int,
    current_user: User = Depends(get_current_user),
    coordinator: MessageDeliveryCoordinator = Depends(get_delivery_coordinator),
) -> ApiResponse[ReadReceipt]:
    updated = await coordinator.mark_all_read(user_id, current_user.id)
    return ApiResponse(message="Messages marked as read", data=ReadReceipt(updated=updated))


@router.delete("/conversation/{user_id}", response_model=ApiResponse[ReadReceipt])
def delete_conversation(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[ReadReceipt]:
    deleted = message_store.delete_conversation(db, current_user.id, user_id)
    return ApiResponse(message="Conversation deleted successfully", data=ReadReceipt(updated=deleted))


@router.delete("/{message_id}", response_model=ApiResponse[None])
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    coordinator: MessageDeliveryCoordinator = Depends(get_delivery_coordinator),
) -> ApiResponse[None]:
    await coordinator.soft_delete(message_id, current_user.id)
    return ApiResponse(message="Message deleted successfully")


@router.get("/unread/count", response_model=ApiResponse[UnreadCount])
def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[UnreadCount]:
    count = message_store.get_unread_count(db, current_user.id)
    return ApiResponse(message="Unread count retrieved successfully", data=UnreadCount(unread_count=count))


@router.get("/search", response_model=PaginatedResponse[MessageRead])
def search_messages(
    q: str = Query(..., min_length=1, max_length=200),
    page: int = PageParam,
    limit: int = LimitParam,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaginatedResponse[MessageRead]:
    rows, total = message_store.search_messages(db, current_user.id, q, page=page, limit=limit)
    return PaginatedResponse(
        message="Messages found successfully",
        data=[MessageRead.model_validate(row) for row in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/stats", response_model=ApiResponse[dict[str, int]])
def message_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[dict[str, int]]:
    stats = message_store.get_message_statistics(db, current_user.id)
    return ApiResponse(message="Message statistics retrieved successfully", data=stats)


@router.get("/{message_id}", response_model=ApiResponse[MessageRead])
def read_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[MessageRead]:
    message = message_store.get_message(db, message_id, current_user.id)
    return ApiResponse(message="Message retrieved successfully", data=MessageRead.model_validate(message))
