"""
Shared FastAPI dependency functions for the LeakScan API.

Provides database session injection, the scan store, identity resolution,
and scan lookup scoped to the calling user.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leakscan.config import get_settings
from leakscan.core.database import async_session_factory
from leakscan.core.exceptions import ApiError, AuthenticationError
from leakscan.core.security import JWTIdentityProvider, extract_bearer_token
from leakscan.engine.events import EventPublisher, RedisEventPublisher
from leakscan.engine.store import ScanStore, SqlScanStore
from leakscan.models.scan import Scan


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session and guarantee cleanup on exit.

    The session is committed automatically when the request handler finishes
    without raising an exception.  On failure the transaction is rolled back.
    In both cases the session is closed.

    Yields:
        An :class:`~sqlalchemy.ext.asyncio.AsyncSession` bound to the
        application engine.
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def get_scan_store() -> ScanStore:
    """Return the write-side store used by the lifecycle controller."""
    return SqlScanStore(async_session_factory)


def get_event_publisher() -> EventPublisher:
    """Return the notification channel publisher."""
    return RedisEventPublisher(get_settings().REDIS_URL)


def get_identity_provider() -> JWTIdentityProvider:
    """Return an identity provider configured from the application settings."""
    settings = get_settings()
    return JWTIdentityProvider(
        secret=settings.AUTH_JWT_SECRET,
        algorithm=settings.AUTH_JWT_ALGORITHM,
        audience=settings.AUTH_JWT_AUDIENCE,
    )


async def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    provider: JWTIdentityProvider = Depends(get_identity_provider),
) -> str:
    """Resolve the ``Authorization`` header to the caller's user id.

    Raises:
        ApiError: *401 Unauthorized* when the header is missing or the token
            does not verify.
    """
    try:
        return provider.resolve(extract_bearer_token(authorization))
    except AuthenticationError as exc:
        raise ApiError(str(exc), status.HTTP_401_UNAUTHORIZED) from exc


async def get_owned_scan(
    scan_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Scan:
    """Load one of the caller's scans by primary key or raise 404.

    Scans owned by other users are reported as missing.

    Raises:
        ApiError: *404 Not Found* if no matching scan exists for the caller.
    """
    stmt = select(Scan).where(Scan.id == scan_id, Scan.user_id == user_id)
    result = await db.execute(stmt)
    scan = result.scalar_one_or_none()

    if scan is None:
        raise ApiError(
            f"Scan with id '{scan_id}' not found.",
            status.HTTP_404_NOT_FOUND,
        )
    return scan
