"""Lightweight cache abstraction for refresh tokens."""

from __future__ import annotations

import logging
import threading
import time
from functools import lru_cache
from typing import Protocol

from redis import Redis
from redis.exceptions import RedisError

from app.config import get_settings


logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Protocol describing cache operations we rely on."""

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a key/value pair with a time-to-live in seconds."""

    def get(self, key: str) -> str | None:
        """Retrieve a cached value if it exists and has not expired."""

    def delete(self, key: str) -> None:
        """Remove a cached entry, ignoring missing values."""


class InMemoryCache:
    """Process-local cache used when no Redis URL is configured."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at: float | None = None
        if ttl_seconds > 0:
            expires_at = time.time() + ttl_seconds
        with self._lock:
            self._store[key] = (value, expires_at)

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.time():
                self._store.pop(key, None)
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class RedisCache:
    """Thin Redis wrapper adhering to :class:`CacheBackend`."""

    def __init__(self, url: str) -> None:
        self._client = Redis.from_url(url, decode_responses=True)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            self._client.setex(key, ttl_seconds, value)
        else:
            self._client.set(key, value)

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def delete(self, key: str) -> None:
        self._client.delete(key)


@lru_cache(maxsize=1)
def get_cache() -> CacheBackend:
    """Return the configured cache backend, Redis when a URL is configured."""

    settings = get_settings()
    if settings.auth_cache_url:
        try:
            cache = RedisCache(settings.auth_cache_url)
            cache._client.ping()
            return cache
        except RedisError as exc:
            logger.warning("Auth cache at %s unavailable, using in-memory store: %s", settings.auth_cache_url, exc)
    return InMemoryCache()
