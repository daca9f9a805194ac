"""
Shared pytest fixtures for the LeakScan test suite.

Provides an in-memory SQLite database (via aiosqlite), the SQL-backed scan
store, an in-memory store and event recorder for lifecycle tests, a FastAPI
test application with dependency overrides, and bearer-token helpers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leakscan.core.database import Base, build_session_factory
from leakscan.core.exceptions import ScanStateError
from leakscan.core.security import JWTIdentityProvider
from leakscan.engine.aggregator import FindingRecord
from leakscan.engine.store import SqlScanStore
from leakscan.models.scan import Scan, ScanStatus

TEST_JWT_SECRET: str = "leakscan-test-secret-0123456789abcdef0123456789abcdef"
TEST_ORIGIN: str = "http://localhost:5173"


# ---------------------------------------------------------------------------
# Database engine and session fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async in-memory SQLite engine and provision all tables.

    ``StaticPool`` keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(test_engine)


@pytest_asyncio.fixture()
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the in-memory test database."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlScanStore:
    return SqlScanStore(session_factory)


# ---------------------------------------------------------------------------
# In-memory collaborators for lifecycle tests
# ---------------------------------------------------------------------------

class MemoryScanStore:
    """Dict-backed stand-in for the persistent store.

    Records every status write per scan so tests can inspect the exact
    transition sequence.  Individual operations can be made to fail by
    assigning an exception to ``fail_on[<operation>]``.
    """

    def __init__(self) -> None:
        self.scans: dict[uuid.UUID, Scan] = {}
        self.findings: dict[uuid.UUID, list[FindingRecord]] = {}
        self.transitions: dict[uuid.UUID, list[ScanStatus]] = {}
        self.fail_on: dict[str, Exception] = {}

    def _maybe_fail(self, operation: str, status: ScanStatus | None = None) -> None:
        key = f"{operation}:{status.value}" if status is not None else operation
        exc = self.fail_on.get(key) or self.fail_on.get(operation)
        if exc is not None:
            raise exc

    async def create_scan(self, domain: str, user_id: str) -> Scan:
        self._maybe_fail("create_scan")
        now = datetime.now(timezone.utc)
        scan = Scan(
            id=uuid.uuid4(),
            domain=domain,
            user_id=user_id,
            status=ScanStatus.RUNNING,
            created_at=now,
            updated_at=now,
        )
        self.scans[scan.id] = scan
        self.findings[scan.id] = []
        self.transitions[scan.id] = [ScanStatus.RUNNING]
        return scan

    async def append_findings(self, records: list[FindingRecord]) -> None:
        self._maybe_fail("append_findings")
        for record in records:
            self.findings[record.scan_id].append(record)

    async def update_status(self, scan_id: uuid.UUID, status: ScanStatus) -> datetime:
        self._maybe_fail("update_status", status)
        scan = self.scans.get(scan_id)
        if scan is None or scan.status != ScanStatus.RUNNING:
            raise ScanStateError(f"Scan {scan_id} is not running.")
        scan.status = status
        scan.updated_at = datetime.now(timezone.utc)
        self.transitions[scan_id].append(status)
        return scan.updated_at


class RecordingPublisher:
    """Collects published events as ``(scan_id, event_type, data)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, scan_id: object, event_type: str, data: dict[str, Any]) -> None:
        self.events.append((str(scan_id), event_type, data))

    def types_for(self, scan_id: object) -> list[str]:
        return [event for sid, event, _ in self.events if sid == str(scan_id)]


@pytest.fixture()
def memory_store() -> MemoryScanStore:
    return MemoryScanStore()


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


# ---------------------------------------------------------------------------
# Authentication helpers
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_token() -> Callable[..., str]:
    """Return a factory producing signed bearer tokens for a user id."""

    def _make(user_id: str, expires_in: timedelta = timedelta(hours=1), **claims: Any) -> str:
        payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in, **claims}
        return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture()
def user_id() -> str:
    return "0b7d4c6e-5f1a-4f0e-9d7c-2a1b3c4d5e6f"


@pytest.fixture()
def auth_headers(make_token: Callable[..., str], user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}", "Origin": TEST_ORIGIN}


# ---------------------------------------------------------------------------
# FastAPI application with DB override
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def test_app(
    session_factory: async_sessionmaker[AsyncSession],
    publisher: RecordingPublisher,
):
    """Return the LeakScan application with its collaborators overridden.

    Database sessions and the scan store use the in-memory SQLite engine,
    and tokens are verified with ``TEST_JWT_SECRET``.
    """
    from leakscan.api.deps import (
        get_db_session,
        get_event_publisher,
        get_identity_provider,
        get_scan_store,
    )
    from leakscan.main import create_app

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db_session] = _override_get_db_session
    app.dependency_overrides[get_scan_store] = lambda: SqlScanStore(session_factory)
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_identity_provider] = lambda: JWTIdentityProvider(
        secret=TEST_JWT_SECRET
    )

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx.AsyncClient wired to the test FastAPI app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
