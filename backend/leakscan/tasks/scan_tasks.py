"""
Celery task definitions for LeakScan scan execution.

The API creates the scan record and acknowledges the caller; this module
owns everything after that.  :func:`run_scan` creates a fresh event loop,
builds a store on a per-task engine, and hands the scan to the
:class:`~leakscan.engine.lifecycle.ScanLifecycleController`, which is
responsible for reaching ``completed`` or ``failed``.

Anything that escapes the controller (a failure while wiring it up, or
Celery's ``SoftTimeLimitExceeded`` interrupting the loop) is caught by the
task, which then marks the scan ``failed`` on a second, fresh loop.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Coroutine, TypeVar

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from leakscan.config import get_settings
from leakscan.core.celery_app import celery
from leakscan.core.database import build_session_factory
from leakscan.core.exceptions import ScanStateError
from leakscan.core.logging import get_logger
from leakscan.engine.events import RedisEventPublisher
from leakscan.engine.lifecycle import ScanLifecycleController
from leakscan.engine.prober import ProbeDispatcher
from leakscan.engine.store import SqlScanStore
from leakscan.models.scan import ScanStatus

logger = get_logger(__name__)

_T = TypeVar("_T")


def _build_task_engine() -> AsyncEngine:
    # Celery workers spin up a new loop per task, so the module-level engine
    # cannot be reused here.
    settings = get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_pre_ping=True,
    )


async def _execute_scan(scan_id: str, domain: str, user_id: str) -> str:
    """Async entry point that wires the controller and runs the scan.

    Args:
        scan_id: The UUID of the scan to execute (as a string).
        domain: The raw domain stored on the scan.
        user_id: Owner of the scan.

    Returns:
        The terminal status value (``"completed"`` or ``"failed"``).
    """
    task_engine = _build_task_engine()
    try:
        controller = ScanLifecycleController(
            store=SqlScanStore(build_session_factory(task_engine)),
            publisher=RedisEventPublisher(get_settings().REDIS_URL),
            dispatcher=ProbeDispatcher.from_settings(),
        )
        status = await controller.run(uuid.UUID(scan_id), domain, user_id)
        return status.value
    finally:
        await task_engine.dispose()


async def _mark_failed(scan_id: str, reason: str) -> None:
    """Write ``failed`` for a scan whose run was aborted outside the controller."""
    task_engine = _build_task_engine()
    try:
        controller = ScanLifecycleController(
            store=SqlScanStore(build_session_factory(task_engine)),
            publisher=RedisEventPublisher(get_settings().REDIS_URL),
        )
        await controller.fail(uuid.UUID(scan_id), reason)
    finally:
        await task_engine.dispose()


def _run_in_new_loop(coro: Coroutine[Any, Any, _T]) -> _T:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _abort_reason(exc: BaseException) -> str:
    if isinstance(exc, SoftTimeLimitExceeded):
        return "Scan exceeded its time limit."
    return str(exc) or type(exc).__name__


@celery.task(
    name="leakscan.run_scan",
    bind=True,
    max_retries=0,
    acks_late=False,
    track_started=True,
)
def run_scan(self: Any, scan_id: str, domain: str, user_id: str) -> dict[str, str]:
    """Celery task that probes one domain for one scan.

    The task is deliberately non-retryable (``max_retries=0``) and acked on
    receipt: a failed scan is recorded as ``failed`` and the user starts a
    new one.

    Args:
        self: The Celery task instance (bound via ``bind=True``).
        scan_id: UUID of the :class:`~leakscan.models.scan.Scan` to execute.
        domain: The raw domain stored on the scan.
        user_id: Owner of the scan.

    Returns:
        A dictionary with ``scan_id`` and ``status`` keys.

    Raises:
        ScanStateError: If the scan had already reached a terminal state.
        Exception: Only when the scan could not even be marked ``failed``.
    """
    logger.info(
        "Celery task received for scan %s",
        scan_id,
        extra={"action": "task_received", "target": domain},
    )

    try:
        status: str = _run_in_new_loop(_execute_scan(scan_id, domain, user_id))
    except ScanStateError:
        logger.warning(
            "Scan %s is no longer running; leaving it untouched",
            scan_id,
            extra={"action": "task_skipped", "target": domain},
        )
        raise
    except Exception as exc:
        logger.error(
            "Scan %s aborted outside the lifecycle controller: %r",
            scan_id,
            exc,
            extra={"action": "task_aborted", "target": domain},
        )
        try:
            _run_in_new_loop(_mark_failed(scan_id, _abort_reason(exc)))
        except ScanStateError:
            # Already terminal: the controller got there first.
            raise exc
        status = ScanStatus.FAILED.value

    logger.info(
        "Celery task finished for scan %s with status %s",
        scan_id,
        status,
        extra={"action": "task_completed", "target": domain},
    )

    return {"scan_id": scan_id, "status": status}
