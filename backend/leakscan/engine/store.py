"""
Write-side persistence for scans and findings.

The lifecycle controller only ever writes through this store and never reads
its own records back.  Every method is a single independent operation with
its own session and exactly one commit, so no two writes of one scan run
contend for the same row at the same time.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leakscan.core.exceptions import ScanStateError
from leakscan.engine.aggregator import FindingRecord
from leakscan.models.finding import Finding
from leakscan.models.scan import Scan, ScanStatus


class ScanStore(Protocol):
    """Operations the lifecycle controller needs from the persistent store."""

    async def create_scan(self, domain: str, user_id: str) -> Scan:
        ...

    async def append_findings(self, records: list[FindingRecord]) -> None:
        ...

    async def update_status(self, scan_id: uuid.UUID, status: ScanStatus) -> datetime:
        ...


class SqlScanStore:
    """:class:`ScanStore` backed by the SQLAlchemy async ORM.

    Args:
        session_factory: Produces a fresh :class:`AsyncSession` per write.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_scan(self, domain: str, user_id: str) -> Scan:
        """Insert a new scan in ``RUNNING`` state and return it.

        The raw *domain* is stored verbatim for display purposes.
        """
        now = datetime.now(timezone.utc)
        scan = Scan(
            domain=domain,
            user_id=user_id,
            status=ScanStatus.RUNNING,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(scan)
            await session.commit()
        return scan

    async def append_findings(self, records: list[FindingRecord]) -> None:
        """Insert all *records* in one transaction."""
        if not records:
            return
        async with self._session_factory() as session:
            session.add_all(
                [
                    Finding(
                        scan_id=record.scan_id,
                        user_id=record.user_id,
                        url=record.url,
                        description=record.description,
                        severity=record.severity.value,
                    )
                    for record in records
                ]
            )
            await session.commit()

    async def update_status(self, scan_id: uuid.UUID, status: ScanStatus) -> datetime:
        """Move a running scan to *status* and stamp ``updated_at``.

        The update only matches rows that are still ``RUNNING``, so a scan
        that already reached a terminal state is never overwritten.

        Returns:
            The new ``updated_at`` timestamp.

        Raises:
            ScanStateError: If no running scan with *scan_id* exists.
        """
        updated_at = datetime.now(timezone.utc)
        stmt = (
            update(Scan)
            .where(Scan.id == scan_id, Scan.status == ScanStatus.RUNNING)
            .values(status=status, updated_at=updated_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            matched: int = result.rowcount
            await session.commit()

        if matched != 1:
            raise ScanStateError(
                f"Scan {scan_id} is not running; cannot move it to {status.value}."
            )
        return updated_at
