"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Iterator

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app import database
from app.core import security
from app.database import get_db
from app.main import app
from app.models import Base, User
from app.services.cache import get_cache
from app.services.wallet_provider import get_wallet_provider
from parley.realtime import PresenceRegistry, configure_realtime

security.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

DEFAULT_PASSWORD = "Sup3r$ecret"


class DummyWebSocket:
    """Records outbound frames and replays queued inbound text."""

    def __init__(self, *, token: str | None = None, messages: list[str] | None = None) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.query_params: dict[str, str] = {"token": token} if token else {}
        self.headers: dict[str, str] = {}
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.closed: tuple[int, str | None] | None = None
        self._inbox = list(messages or [])

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict[str, Any]) -> None:
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("socket closed")
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason)
        self.application_state = WebSocketState.DISCONNECTED

    async def receive_text(self) -> str:
        if not self._inbox:
            raise RuntimeError("no more messages")
        return self._inbox.pop(0)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame.get("event") == name]


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine, monkeypatch) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine.

    Short-lived sessions opened outside request scope go through
    ``app.database.SessionLocal``, so it is rebound here as well.
    """

    factory = sessionmaker(bind=test_engine, autocommit=False, autoflush=False, future=True)
    monkeypatch.setattr(database, "SessionLocal", factory)
    return factory


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def reset_process_state() -> Iterator[None]:
    get_cache.cache_clear()
    get_wallet_provider.cache_clear()
    configure_realtime()
    yield
    get_cache.cache_clear()
    get_wallet_provider.cache_clear()


@pytest.fixture()
def registry() -> PresenceRegistry:
    return configure_realtime()


@pytest.fixture()
def make_user(session_factory):
    """Create users directly in the store; returns their ids."""

    counter = {"value": 0}

    def _make_user(name: str | None = None, *, is_active: bool = True) -> int:
        counter["value"] += 1
        index = counter["value"]
        with session_factory() as session:
            user = User(
                name=name or f"User {index}",
                email=f"user{index}@example.com",
                phone=f"+23480000000{index:02d}",
                hashed_password=security.get_password_hash(DEFAULT_PASSWORD),
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
