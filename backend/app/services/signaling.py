"""Forwarding of WebRTC offers, answers and ICE candidates between call parties."""

from __future__ import annotations

import logging

from app.database import get_db_session
from app.errors import ForbiddenError
from app.services import calls as call_store
from app.services.delivery import SessionFactory
from parley.calls.signaling import OpaquePayload, SignalKind, build_relay_envelope
from parley.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class SignalingRelay:
    """Mirrors each signalling blob onto the call record, then forwards it.

    Forwarding keeps per-connection order only; ICE candidates are appended as
    they arrive and never deduplicated.
    """

    def __init__(
        self, registry: PresenceRegistry, session_factory: SessionFactory = get_db_session
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory

    async def relay(
        self,
        kind: SignalKind | str,
        call_id: int,
        payload: OpaquePayload,
        target_user_id: int | None,
        source_user_id: int,
    ) -> bool:
        """Store ``payload`` and push it to the other party; True when delivered."""

        kind = SignalKind(kind)
        with self._session_factory() as db:
            call = call_store.get_call(db, call_id)
            if not call.involves(source_user_id):
                raise ForbiddenError("Not a participant in this call")
            other_party = call.other_party(source_user_id)
            if target_user_id is None:
                target_user_id = other_party
            elif target_user_id != other_party:
                raise ForbiddenError("Signalling target is not the other call participant")

            if kind is SignalKind.OFFER:
                call_store.record_offer(db, call_id, payload, source_user_id)
            elif kind is SignalKind.ANSWER:
                call_store.record_answer(db, call_id, payload, source_user_id)
            else:
                call_store.append_ice_candidate(db, call_id, payload, source_user_id)

        envelope = build_relay_envelope(kind, call_id, payload, source_user_id)
        delivered = await self._registry.push(target_user_id, kind.event, envelope)
        if not delivered:
            logger.debug("Dropped %s for call %s: user %s offline", kind.event, call_id, target_user_id)
        return delivered
