"""Process-wide ownership of the realtime presence registry."""

from __future__ import annotations

import logging

from .presence import PresenceRegistry


logger = logging.getLogger(__name__)

_registry: PresenceRegistry | None = None


def configure_realtime(registry: PresenceRegistry | None = None) -> PresenceRegistry:
    """Install ``registry`` (or a fresh one) as the process registry."""

    global _registry
    _registry = registry or PresenceRegistry()
    return _registry


def get_presence_registry() -> PresenceRegistry:
    if _registry is None:
        return configure_realtime()
    return _registry


async def startup_realtime() -> None:
    registry = configure_realtime()
    logger.info("Realtime presence registry ready (%s)", hex(id(registry)))


async def shutdown_realtime() -> None:
    global _registry
    if _registry is None:
        return
    handles = await _registry.clear()
    if handles:
        logger.info("Dropped %d realtime sessions during shutdown", len(handles))
    _registry = None
