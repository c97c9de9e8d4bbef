"""Call lifecycle operations paired with the realtime notifications they cause."""

from __future__ import annotations

import logging
from typing import Any, Dict

from app.database import get_db_session
from app.errors import InvalidStateError
from app.models import Call, CallStatus, CallType
from app.schemas.calls import CallRead
from app.services import calls as call_store
from app.services.delivery import SessionFactory
from app.services.users import get_active_user
from parley.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

INCOMING_CALL_EVENT = "incoming_call"
CALL_ANSWERED_EVENT = "call_answered"
CALL_REJECTED_EVENT = "call_rejected"
CALL_ENDED_EVENT = "call_ended"
CALL_STATUS_EVENT = "call_status"


def serialize_call(call: Call) -> Dict[str, Any]:
    return CallRead.model_validate(call).model_dump(mode="json")


class CallEventCoordinator:
    """Runs call transitions against the store and notifies the other party."""

    def __init__(
        self, registry: PresenceRegistry, session_factory: SessionFactory = get_db_session
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory

    async def start(
        self, caller_id: int, callee_id: int, call_type: CallType | str, *, channel: str = "realtime"
    ) -> Dict[str, Any]:
        """Create the call and ring the callee when they are connected.

        An offline callee leaves the call in ``initiated`` so it shows up in
        their active-call lookup on reconnect.
        """

        with self._session_factory() as db:
            call = call_store.start_call(db, caller_id, callee_id, call_type, created_via=channel)
            caller = get_active_user(db, caller_id)
            caller_name = caller.name if caller is not None else None
            payload = serialize_call(call)

        delivered = await self._registry.push(
            callee_id,
            INCOMING_CALL_EVENT,
            {
                "callId": payload["id"],
                "callerId": caller_id,
                "callerName": caller_name,
                "callType": payload["call_type"],
            },
        )
        if delivered:
            with self._session_factory() as db:
                try:
                    call = call_store.transition_call(db, payload["id"], CallStatus.RINGING)
                except InvalidStateError:
                    # Answered or hung up before ringing was recorded.
                    call = call_store.get_call(db, payload["id"])
                payload = serialize_call(call)
        return payload

    async def answer(self, call_id: int, user_id: int) -> Dict[str, Any]:
        with self._session_factory() as db:
            call = call_store.transition_call(db, call_id, CallStatus.ANSWERED, user_id)
            payload = serialize_call(call)
            other = call.other_party(user_id)

        await self._registry.push(other, CALL_ANSWERED_EVENT, {"callId": call_id, "answeredBy": user_id})
        logger.info("Call answered: %s by %s", call_id, user_id)
        return payload

    async def reject(self, call_id: int, user_id: int) -> Dict[str, Any]:
        with self._session_factory() as db:
            call = call_store.transition_call(db, call_id, CallStatus.REJECTED, user_id)
            payload = serialize_call(call)
            other = call.other_party(user_id)

        await self._registry.push(other, CALL_REJECTED_EVENT, {"callId": call_id, "rejectedBy": user_id})
        logger.info("Call rejected: %s by %s", call_id, user_id)
        return payload

    async def end(self, call_id: int, user_id: int, reason: str = "completed") -> Dict[str, Any]:
        with self._session_factory() as db:
            call = call_store.end_call(db, call_id, user_id, reason)
            payload = serialize_call(call)
            other = call.other_party(user_id)

        await self._registry.push(
            other,
            CALL_ENDED_EVENT,
            {
                "callId": call_id,
                "endedBy": user_id,
                "endReason": payload["end_reason"],
                "duration": payload["duration_seconds"],
            },
        )
        return payload

    async def update_status(self, call_id: int, status: CallStatus | str, user_id: int) -> Dict[str, Any]:
        """Generic status change; answered, rejected and ended keep their dedicated events."""

        status = CallStatus(status)
        if status is CallStatus.ANSWERED:
            return await self.answer(call_id, user_id)
        if status is CallStatus.REJECTED:
            return await self.reject(call_id, user_id)
        if status is CallStatus.ENDED:
            return await self.end(call_id, user_id)

        with self._session_factory() as db:
            call = call_store.transition_call(db, call_id, status, user_id)
            payload = serialize_call(call)
            other = call.other_party(user_id)

        await self._registry.push(
            other, CALL_STATUS_EVENT, {"callId": call_id, "status": status.value, "updatedBy": user_id}
        )
        return payload
