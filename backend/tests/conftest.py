"""Shared test fixtures.

Every test gets its own SQLite database under ``tmp_path`` (through
aiosqlite) and a controllable clock so expiry can be fast-forwarded.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from fileshare.config import Settings
from fileshare.database import Database
from fileshare.main import create_app
from fileshare.services.delivery import DeliveryController
from fileshare.services.identity_store import IdentityStore

TTL_SECONDS = 60
MAX_UPLOAD_BYTES = 1024


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'fileshare.db'}",
        FILE_STORAGE_PATH=str(tmp_path / "uploads"),
        FILE_TTL_SECONDS=TTL_SECONDS,
        MAX_UPLOAD_BYTES=MAX_UPLOAD_BYTES,
        STORAGE_TIMEOUT_SECONDS=5.0,
        ENVIRONMENT="production",
    )


# ---------------------------------------------------------------------------
# Store / controller
# ---------------------------------------------------------------------------


@pytest.fixture
async def database(settings):
    db = Database(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def store(database):
    return IdentityStore(database.session_factory, timeout=5.0)


@pytest.fixture
def controller(store, clock):
    return DeliveryController(
        store,
        ttl_seconds=TTL_SECONDS,
        max_upload_bytes=MAX_UPLOAD_BYTES,
        clock=clock,
    )


@pytest.fixture
def mock_session_factory():
    """Session factory whose session is an AsyncMock, for failure injection.

    Usage: ``factory, session = mock_session_factory``.
    """
    session = AsyncMock()
    session.add = MagicMock()

    @asynccontextmanager
    async def _session_ctx():
        yield session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory, session


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
async def client(app):
    """Async test client with the application lifespan running."""
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
