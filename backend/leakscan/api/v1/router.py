"""
Aggregated APIRouter for API version 1.

All v1 endpoint routers are included here and exposed as a single ``router``
instance that is mounted by the FastAPI application in ``leakscan.main``.
The prefix ``/api/v1`` is applied by the application, so sub-routers only
declare their own resource prefix (e.g. ``/scans``).
"""

from __future__ import annotations

from fastapi import APIRouter

from leakscan.api.v1 import scans

router = APIRouter()

router.include_router(
    scans.router,
    prefix="/scans",
    tags=["scans"],
)
