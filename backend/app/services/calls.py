"""Persistence side of the call lifecycle.

Every status change goes through :func:`transition_call`, which checks the
transition table, stamps timestamps and duration, and releases the per-user
``active_call_slots`` rows when a call reaches a terminal status. The slot
rows are the source of truth for "one live call per user": two concurrent
``start_call`` requests for the same user cannot both insert a slot.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from app.models import ActiveCallSlot, Call, CallStatus, CallType
from app.monitoring.metrics import call_transitions_total
from app.services.users import get_active_user
from parley.calls.signaling import OpaquePayload
from parley.calls.state import (
    ACTIVE_STATUSES,
    compute_duration,
    ensure_transition,
    is_terminal,
    utcnow,
)

logger = logging.getLogger(__name__)

END_REASON_MAX_LENGTH = 50


def _party_filter(user_id: int):
    return or_(Call.caller_id == user_id, Call.callee_id == user_id)


def _lock_call(db: Session, call_id: int) -> Call:
    call = db.execute(
        select(Call).where(Call.id == call_id).with_for_update()
    ).scalar_one_or_none()
    if call is None:
        raise NotFoundError("Call not found")
    return call


def _ensure_party(call: Call, user_id: int | None) -> None:
    if user_id is not None and not call.involves(user_id):
        raise ForbiddenError("Not a participant in this call")


def has_active_call(db: Session, *user_ids: int) -> bool:
    clauses = [_party_filter(user_id) for user_id in user_ids]
    stmt = (
        select(Call.id)
        .where(or_(*clauses), Call.status.in_(ACTIVE_STATUSES))
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def start_call(
    db: Session,
    caller_id: int,
    callee_id: int,
    call_type: CallType | str,
    *,
    created_via: str = "api",
) -> Call:
    """Create a call in ``initiated`` for two idle users."""

    if get_active_user(db, callee_id) is None:
        raise NotFoundError("Callee not found")
    if caller_id == callee_id:
        raise InvalidArgumentError("Cannot call yourself")
    if has_active_call(db, caller_id, callee_id):
        raise ConflictError("User is already in a call")

    now = utcnow()
    call = Call(
        caller_id=caller_id,
        callee_id=callee_id,
        call_type=CallType(call_type),
        status=CallStatus.INITIATED,
        started_at=now,
        meta={"created_via": created_via, "client_timestamp": now.isoformat()},
    )
    db.add(call)
    try:
        db.flush()
        db.execute(
            insert(ActiveCallSlot),
            [
                {"user_id": caller_id, "call_id": call.id},
                {"user_id": callee_id, "call_id": call.id},
            ],
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User is already in a call") from exc

    db.refresh(call)
    call_transitions_total.labels(CallStatus.INITIATED.value).inc()
    logger.info(
        "Call initiated: %s -> %s, type: %s, id: %s",
        caller_id,
        callee_id,
        call.call_type.value,
        call.id,
    )
    return call


def transition_call(
    db: Session,
    call_id: int,
    target: CallStatus | str,
    acting_user_id: int | None = None,
    *,
    end_reason: str | None = None,
) -> Call:
    """Move a call to ``target`` if the transition table allows it."""

    if end_reason is not None and len(end_reason) > END_REASON_MAX_LENGTH:
        raise InvalidArgumentError(
            f"End reason exceeds {END_REASON_MAX_LENGTH} characters"
        )
    call = _lock_call(db, call_id)
    _ensure_party(call, acting_user_id)
    status = ensure_transition(call.status, target)

    now = utcnow()
    call.status = status
    if status is CallStatus.ANSWERED:
        call.answered_at = now
    elif is_terminal(status):
        call.ended_at = now
        call.duration_seconds = compute_duration(call.answered_at, now)
        call.end_reason = end_reason or (
            "completed" if status is CallStatus.ENDED else status.value
        )
        db.execute(delete(ActiveCallSlot).where(ActiveCallSlot.call_id == call.id))

    db.commit()
    db.refresh(call)
    call_transitions_total.labels(status.value).inc()
    logger.info("Call status updated: %s, status: %s", call.id, status.value)
    return call


def end_call(db: Session, call_id: int, user_id: int, reason: str = "completed") -> Call:
    call = transition_call(db, call_id, CallStatus.ENDED, user_id, end_reason=reason)
    logger.info(
        "Call ended: %s, duration: %ss, reason: %s", call.id, call.duration_seconds, call.end_reason
    )
    return call


def get_active_call(db: Session, user_id: int) -> Call | None:
    stmt = (
        select(Call)
        .where(_party_filter(user_id), Call.status.in_(ACTIVE_STATUSES))
        .order_by(Call.started_at.desc(), Call.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def get_call(db: Session, call_id: int, user_id: int | None = None) -> Call:
    call = db.get(Call, call_id)
    if call is None or (user_id is not None and not call.involves(user_id)):
        raise NotFoundError("Call not found")
    return call


def get_call_history(
    db: Session,
    user_id: int,
    *,
    page: int = 1,
    limit: int = 20,
    call_type: CallType | str | None = None,
    status: CallStatus | str | None = None,
) -> tuple[list[Call], int]:
    filters = [_party_filter(user_id)]
    if call_type is not None:
        filters.append(Call.call_type == CallType(call_type))
    if status is not None:
        filters.append(Call.status == CallStatus(status))

    total = db.execute(select(func.count(Call.id)).where(*filters)).scalar_one()
    calls = (
        db.execute(
            select(Call)
            .where(*filters)
            .order_by(Call.started_at.desc(), Call.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(calls), int(total or 0)


def get_call_statistics(db: Session, user_id: int) -> Dict[str, Any]:
    total_calls, total_duration, avg_duration = db.execute(
        select(
            func.count(Call.id),
            func.sum(func.coalesce(Call.duration_seconds, 0)),
            func.avg(func.coalesce(Call.duration_seconds, 0)),
        ).where(_party_filter(user_id))
    ).one()
    missed = db.execute(
        select(func.count(Call.id)).where(
            Call.callee_id == user_id, Call.status == CallStatus.MISSED
        )
    ).scalar_one()
    by_type = dict(
        db.execute(
            select(Call.call_type, func.count(Call.id))
            .where(_party_filter(user_id))
            .group_by(Call.call_type)
        ).all()
    )
    return {
        "totalCalls": int(total_calls or 0),
        "totalDuration": int(total_duration or 0),
        "missedCalls": int(missed or 0),
        "averageDuration": float(avg_duration or 0),
        "callsByType": {kind.value: int(by_type.get(kind, 0)) for kind in CallType},
    }


def delete_call(db: Session, call_id: int, user_id: int) -> None:
    call = db.get(Call, call_id)
    if call is None or not call.involves(user_id):
        raise NotFoundError("Call not found")
    db.delete(call)
    db.commit()
    logger.info("Call deleted: %s by %s", call_id, user_id)


def _update_metadata(
    db: Session, call_id: int, user_id: int | None, mutate: Callable[[Dict[str, Any]], None]
) -> Call:
    call = _lock_call(db, call_id)
    _ensure_party(call, user_id)
    # JSON columns are not mutation tracked; assign a fresh dict.
    metadata = dict(call.meta or {})
    mutate(metadata)
    call.meta = metadata
    db.commit()
    db.refresh(call)
    return call


def record_offer(db: Session, call_id: int, payload: OpaquePayload, user_id: int | None = None) -> Call:
    call = _update_metadata(db, call_id, user_id, lambda meta: meta.__setitem__("offer", payload.to_wire()))
    logger.info("WebRTC offer stored for call: %s", call_id)
    return call


def record_answer(db: Session, call_id: int, payload: OpaquePayload, user_id: int | None = None) -> Call:
    call = _update_metadata(db, call_id, user_id, lambda meta: meta.__setitem__("answer", payload.to_wire()))
    logger.info("WebRTC answer stored for call: %s", call_id)
    return call


def append_ice_candidate(
    db: Session, call_id: int, payload: OpaquePayload, user_id: int | None = None
) -> Call:
    def _append(meta: Dict[str, Any]) -> None:
        candidates = list(meta.get("ice_candidates") or [])
        candidates.append(payload.to_wire())
        meta["ice_candidates"] = candidates

    call = _update_metadata(db, call_id, user_id, _append)
    logger.debug("ICE candidate added for call: %s", call_id)
    return call
