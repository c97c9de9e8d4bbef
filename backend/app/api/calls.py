"""Call lifecycle and signalling endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_call_coordinator, get_current_user, get_signaling_relay
from app.config import get_settings
from app.database import get_db
from app.models import CallStatus, CallType, User
from app.schemas import (
    ApiResponse,
    CallCreate,
    CallEnd,
    CallRead,
    CallStatistics,
    CallStatusUpdate,
    PaginatedResponse,
    Pagination,
    SignalPayload,
)
from app.services import calls as call_store
from app.services.call_events import CallEventCoordinator
from app.services.signaling import SignalingRelay
from parley.calls.signaling import OpaquePayload, SignalKind

router = APIRouter(prefix="/calls", tags=["calls"])
settings = get_settings()


@router.post("", response_model=ApiResponse[CallRead], status_code=status.HTTP_201_CREATED)
async def start_call(
    payload: CallCreate,
    current_user: User = Depends(get_current_user),
    coordinator: CallEventCoordinator = Depends(get_call_coordinator),
) -> ApiResponse[CallRead]:
    call = await coordinator.start(current_user.id, payload.callee_id, payload.call_type, channel="api")
    return ApiResponse(message="Call initiated successfully", data=CallRead.model_validate(call))


@router.put("/{call_id}/answer", response_model=ApiResponse[CallRead])
async def answer_call(
    call_id: int,
    current_user: User = Depends(get_current_user),
    coordinator: CallEventCoordinator = Depends(get_call_coordinator),
) -> ApiResponse[CallRead]:
    call = await coordinator.answer(call_id, current_user.id)
    return ApiResponse(message="Call answered successfully", data=CallRead.model_validate(call))


@router.put("/{call_id}/reject", response_model=ApiResponse[CallRead])
async def reject_call(
    call_id: int,
    current_user: User = Depends(get_current_user),
    coordinator: CallEventCoordinator = Depends(get_call_coordinator),
) -> ApiResponse[CallRead]:
    call = await coordinator.reject(call_id, current_user.id)
    return ApiResponse(message="Call rejected successfully", data=CallRead.model_validate(call))


@router.put("/{call_id}/end", response_model=ApiResponse[CallRead])
async def end_call(
    call_id: int,
    payload: CallEnd | None = None,
    current_user: User = Depends(get_current_user),
    coordinator: CallEventCoordinator = Depends(get_call_coordinator),
) -> ApiResponse[CallRead]:
    reason = payload.end_reason if payload is not None else "completed"
    call = await coordinator.end(call_id, current_user.id, reason)
    return ApiResponse(message="Call ended successfully", data=CallRead.model_validate(call))


@router.put("/{call_id}/status", response_model=ApiResponse[CallRead])
async def update_call_status(
    call_id: int,
    payload: CallStatusUpdate,
    current_user: User = Depends(get_current_user),
    coordinator: CallEventCoordinator = Depends(get_call_coordinator),
) -> ApiResponse[CallRead]:
    call = await coordinator.update_status(call_id, payload.status, current_user.id)
    return ApiResponse(message="Call status updated successfully", data=CallRead.model_validate(call))


@router.get("/history", response_model=PaginatedResponse[CallRead])
def call_history(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_default_limit, ge=1, le=settings.page_max_limit),
    call_type: CallType | None = Query(None, alias="callType"),
    call_status: CallStatus | None = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PaginatedResponse[CallRead]:
    calls, total = call_store.get_call_history(
        db, current_user.id, page=page, limit=limit, call_type=call_type, status=call_status
    )
    return PaginatedResponse(
        message="Call history retrieved successfully",
        data=[CallRead.model_validate(call) for call in calls],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.get("/active", response_model=ApiResponse[CallRead])
def active_call(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[CallRead]:
    call = call_store.get_active_call(db, current_user.id)
    if call is None:
        return ApiResponse(message="No active call")
    return ApiResponse(message="Active call retrieved successfully", data=CallRead.model_validate(call))


@router.get("/stats", response_model=ApiResponse[CallStatistics])
def call_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[CallStatistics]:
    stats = call_store.get_call_statistics(db, current_user.id)
    return ApiResponse(message="Call statistics retrieved successfully", data=CallStatistics.model_validate(stats))


@router.get("/{call_id}", response_model=ApiResponse[CallRead])
def read_call(
    call_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[CallRead]:
    call = call_store.get_call(db, call_id, current_user.id)
    return ApiResponse(message="Call retrieved successfully", data=CallRead.model_validate(call))


@router.delete("/{call_id}", response_model=ApiResponse[None])
def delete_call(
    call_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[None]:
    call_store.delete_call(db, call_id, current_user.id)
    return ApiResponse(message="Call deleted successfully")


async def _relay(
    relay: SignalingRelay, kind: SignalKind, call_id: int, payload: SignalPayload, user: User
) -> ApiResponse[dict[str, bool]]:
    delivered = await relay.relay(kind, call_id, OpaquePayload(payload.payload), None, user.id)
    return ApiResponse(message=f"WebRTC {kind.value.replace('_', ' ')} relayed", data={"delivered": delivered})


@router.post("/{call_id}/offer", response_model=ApiResponse[dict[str, bool]])
async def post_offer(
    call_id: int,
    payload: SignalPayload,
    current_user: User = Depends(get_current_user),
    relay: SignalingRelay = Depends(get_signaling_relay),
) -> ApiResponse[dict[str, bool]]:
    return await _relay(relay, SignalKind.OFFER, call_id, payload, current_user)


@router.post("/{call_id}/answer", response_model=ApiResponse[dict[str, bool]])
async def post_answer(
    call_id: int,
    payload: SignalPayload,
    current_user: User = Depends(get_current_user),
    relay: SignalingRelay = Depends(get_signaling_relay),
) -> ApiResponse[dict[str, bool]]:
    return await _relay(relay, SignalKind.ANSWER, call_id, payload, current_user)


@router.post("/{call_id}/ice-candidate", response_model=ApiResponse[dict[str, bool]])
async def post_ice_candidate(
    call_id: int,
    payload: SignalPayload,
    current_user: User = Depends(get_current_user),
    relay: SignalingRelay = Depends(get_signaling_relay),
) -> ApiResponse[dict[str, bool]]:
    return await _relay(relay, SignalKind.ICE_CANDIDATE, call_id, payload, current_user)
