"""
Scan request and scan history endpoints.

``POST /scans/`` is the single operation that starts work: it resolves the
caller, creates the scan record, hands the probing run to a Celery worker,
and acknowledges immediately.  The two ``GET`` routes are read-only views of
the caller's scan history.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leakscan.api.deps import (
    get_current_user_id,
    get_db_session,
    get_event_publisher,
    get_owned_scan,
    get_scan_store,
)
from leakscan.api.schemas.scan import ScanAccepted, ScanCreate, ScanDetail
from leakscan.core.exceptions import ApiError, ScanCreationError
from leakscan.core.logging import get_logger
from leakscan.engine.events import EventPublisher
from leakscan.engine.lifecycle import ScanLifecycleController
from leakscan.engine.store import ScanStore
from leakscan.models.scan import Scan
from leakscan.tasks.scan_tasks import run_scan

logger = get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /scans/
# ---------------------------------------------------------------------------


@router.post(
    "/",
    response_model=ScanAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start probing a domain for exposed sensitive paths",
)
async def create_scan(
    body: ScanCreate,
    user_id: str = Depends(get_current_user_id),
    store: ScanStore = Depends(get_scan_store),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> ScanAccepted:
    """Create a scan for the given domain and start probing in the background.

    The response only acknowledges that the scan exists.  Its findings and
    final status are written to the scan record and published on the
    notification channel as the background run progresses.

    Args:
        body: The validated request payload.
        user_id: The caller, resolved from the bearer token (injected).
        store: The scan store (injected).
        publisher: The notification channel (injected).

    Returns:
        A :class:`ScanAccepted` carrying the new scan id.

    Raises:
        ApiError: *500* when the record cannot be created or the background
            run cannot be scheduled.
    """
    controller = ScanLifecycleController(store, publisher)

    try:
        scan = await controller.create(body.domain, user_id)
    except ScanCreationError as exc:
        raise ApiError(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

    try:
        run_scan.delay(str(scan.id), scan.domain, user_id)
    except Exception as exc:
        logger.error(
            "Could not schedule scan %s: %s",
            scan.id,
            exc,
            extra={"action": "scan_dispatch_error", "target": body.domain},
        )
        try:
            await controller.fail(scan.id, "Scan could not be scheduled.")
        except Exception as fail_exc:
            raise ApiError(
                "Failed to schedule scan.",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ) from fail_exc
        raise ApiError(
            "Failed to schedule scan.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from exc

    return ScanAccepted(scan_id=scan.id, status=scan.status.value)


# ---------------------------------------------------------------------------
# GET /scans/
# ---------------------------------------------------------------------------


@router.get(
    "/",
    response_model=list[ScanDetail],
    summary="List the caller's scans with their findings",
)
async def list_scans(
    skip: int = Query(0, ge=0, description="Number of records to skip."),
    limit: int = Query(50, ge=1, le=200, description="Max records to return."),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> list[ScanDetail]:
    """Return the caller's scans ordered by creation date descending."""
    stmt = (
        select(Scan)
        .where(Scan.user_id == user_id)
        .order_by(Scan.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [ScanDetail.model_validate(scan) for scan in result.scalars().all()]


# ---------------------------------------------------------------------------
# GET /scans/{scan_id}
# ---------------------------------------------------------------------------


@router.get(
    "/{scan_id}",
    response_model=ScanDetail,
    summary="Get one scan with its findings",
)
async def get_scan(scan: Scan = Depends(get_owned_scan)) -> ScanDetail:
    return ScanDetail.model_validate(scan)
