"""
Scan Lifecycle Controller for LeakScan.

Owns the state machine of a single scan::

    pending ──create──▶ running ──▶ completed
                           │
                           └──────▶ failed

1. :meth:`ScanLifecycleController.create` persists the record directly as
   ``running``; ``pending`` is never observable.  If this write fails no
   lifecycle exists and the error reaches the caller.
2. :meth:`ScanLifecycleController.run` normalises the domain, expands the
   candidates, probes them, persists the findings, and marks the scan
   ``completed``.  Any failure on the way marks it ``failed`` instead and is
   not re-raised.  Only a failed write of ``failed`` itself escapes.
3. Every transition and every finding is published to the notification
   channel.
"""

from __future__ import annotations

import time
import uuid
from typing import Iterable, Optional

from leakscan.core.exceptions import ScanCreationError, ScanStateError
from leakscan.core.logging import get_logger
from leakscan.engine.aggregator import FindingRecord, aggregate, has_findings
from leakscan.engine.candidates import expand_candidates, normalize_domain
from leakscan.engine.catalog import PATTERN_CATALOG, PatternEntry
from leakscan.engine.events import EventPublisher, NullEventPublisher
from leakscan.engine.prober import ProbeDispatcher
from leakscan.engine.store import ScanStore
from leakscan.models.scan import Scan, ScanStatus

logger = get_logger(__name__)

_TRANSITIONS: dict[ScanStatus, frozenset[ScanStatus]] = {
    ScanStatus.PENDING: frozenset({ScanStatus.RUNNING}),
    ScanStatus.RUNNING: frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED}),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
}

_TERMINAL_EVENTS: dict[ScanStatus, str] = {
    ScanStatus.COMPLETED: "scan_completed",
    ScanStatus.FAILED: "scan_failed",
}


def check_transition(current: ScanStatus, new: ScanStatus) -> None:
    """Raise :class:`ScanStateError` unless *current* may move to *new*."""
    if new not in _TRANSITIONS[current]:
        raise ScanStateError(
            f"Illegal scan transition {current.value} -> {new.value}."
        )


class ScanLifecycleController:
    """Drives scans from creation to a terminal state.

    One controller may serve any number of scans; it keeps no per-scan
    state between calls, so concurrent scans never share anything but the
    store and the publisher.

    Usage::

        controller = ScanLifecycleController(store, publisher)
        scan = await controller.create("https://example.com", user_id)
        status = await controller.run(scan.id, scan.domain, user_id)
    """

    def __init__(
        self,
        store: ScanStore,
        publisher: Optional[EventPublisher] = None,
        dispatcher: Optional[ProbeDispatcher] = None,
        catalog: Iterable[PatternEntry] = PATTERN_CATALOG,
    ) -> None:
        self._store = store
        self._publisher: EventPublisher = publisher or NullEventPublisher()
        self._dispatcher: ProbeDispatcher = dispatcher or ProbeDispatcher()
        self._catalog: tuple[PatternEntry, ...] = tuple(catalog)

    # -- Creation -------------------------------------------------------------

    async def create(self, domain: str, user_id: str) -> Scan:
        """Persist a new scan in ``running`` state.

        Args:
            domain: Raw user input, stored verbatim.
            user_id: Owner as resolved by the identity provider.

        Returns:
            The persisted :class:`Scan`.

        Raises:
            ScanCreationError: If the record could not be written.
        """
        check_transition(ScanStatus.PENDING, ScanStatus.RUNNING)
        try:
            scan = await self._store.create_scan(domain, user_id)
        except Exception as exc:
            logger.error(
                "Could not create scan record: %s",
                exc,
                extra={"action": "scan_create_error", "target": domain},
            )
            raise ScanCreationError("Failed to create scan record.") from exc

        logger.info(
            "Scan %s created",
            scan.id,
            extra={"action": "scan_created", "target": domain},
        )
        await self._publisher.publish(scan.id, "scan_started", {"domain": domain})
        return scan

    # -- Execution ------------------------------------------------------------

    async def run(self, scan_id: uuid.UUID, domain: str, user_id: str) -> ScanStatus:
        """Probe *domain* for scan *scan_id* and drive it to a terminal state.

        Args:
            scan_id: Identifier returned by :meth:`create`.
            domain: The raw domain stored on the scan.
            user_id: Owner of the scan.

        Returns:
            ``ScanStatus.COMPLETED`` or ``ScanStatus.FAILED``.

        Raises:
            ScanStateError: If the scan is no longer running.
            Exception: Whatever the store raised while writing ``failed``.
        """
        start: float = time.monotonic()
        try:
            records = await self._probe_and_persist(scan_id, domain, user_id)
            await self._finish(scan_id, ScanStatus.COMPLETED, {"findings": len(records)})
        except ScanStateError:
            # Someone else already finished this scan; never re-enter it.
            raise
        except Exception as exc:
            logger.exception(
                "Background scan failed for scan %s: %s",
                scan_id,
                exc,
                extra={"action": "scan_failed", "target": domain},
            )
            await self.fail(scan_id, str(exc))
            return ScanStatus.FAILED

        logger.info(
            "Scan %s completed with %d finding(s) in %.1fs",
            scan_id,
            len(records),
            time.monotonic() - start,
            extra={"action": "scan_completed", "target": domain},
        )
        return ScanStatus.COMPLETED

    async def fail(self, scan_id: uuid.UUID, reason: str) -> None:
        """Mark a running scan ``failed``.

        There is no state beyond ``failed``: if this write does not go
        through, the error is logged as critical and re-raised.
        """
        try:
            await self._finish(scan_id, ScanStatus.FAILED, {"error": reason})
        except Exception:
            logger.critical(
                "Could not mark scan %s as failed",
                scan_id,
                exc_info=True,
                extra={"action": "scan_status_update_error", "target": str(scan_id)},
            )
            raise

    # -- Internals ------------------------------------------------------------

    async def _probe_and_persist(
        self,
        scan_id: uuid.UUID,
        domain: str,
        user_id: str,
    ) -> list[FindingRecord]:
        hostname = normalize_domain(domain.strip())
        if not hostname:
            raise ValueError(f"Domain {domain!r} does not contain a hostname.")

        candidates = expand_candidates(hostname, self._catalog)
        confirmed = await self._dispatcher.probe(candidates)
        records = aggregate(confirmed, scan_id, user_id)

        if has_findings(records):
            await self._store.append_findings(records)
            for record in records:
                await self._publisher.publish(scan_id, "finding", record.to_event())
        return records

    async def _finish(
        self,
        scan_id: uuid.UUID,
        status: ScanStatus,
        data: dict[str, object],
    ) -> None:
        check_transition(ScanStatus.RUNNING, status)
        updated_at = await self._store.update_status(scan_id, status)
        await self._publisher.publish(
            scan_id,
            _TERMINAL_EVENTS[status],
            {**data, "status": status.value, "updated_at": updated_at},
        )
