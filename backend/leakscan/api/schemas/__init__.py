"""
Pydantic schemas for the LeakScan REST API.

Re-exports the request and response models so endpoint modules can write::

    from leakscan.api.schemas import ScanCreate, ScanAccepted
"""

from leakscan.api.schemas.scan import (
    FindingResponse,
    ScanAccepted,
    ScanCreate,
    ScanDetail,
)

__all__: list[str] = [
    "FindingResponse",
    "ScanAccepted",
    "ScanCreate",
    "ScanDetail",
]
