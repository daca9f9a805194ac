"""
Pydantic v2 schemas for scan-related API requests and responses.

Response models use ``ConfigDict(from_attributes=True)`` so that ORM objects
can be serialised directly via ``Model.model_validate(orm_instance)``.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leakscan.engine.candidates import normalize_domain

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ScanCreate(BaseModel):
    """Payload for ``POST /api/v1/scans/``.

    Attributes:
        domain: The domain to probe, as typed by the user.  A scheme,
            ``www.`` prefix, or path is accepted and ignored for probing;
            the value itself is stored verbatim.
    """

    domain: str = Field(
        ...,
        max_length=2048,
        examples=["example.com", "https://www.example.com/"],
        description="Domain to probe for exposed sensitive paths.",
    )

    @field_validator("domain", mode="after")
    @classmethod
    def require_hostname(cls, value: str) -> str:
        """Reject input that normalises to an empty hostname.

        The value itself is returned untouched and stored verbatim.
        """
        if not normalize_domain(value.strip()):
            raise ValueError("Domain is required in the request body.")
        return value


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ScanAccepted(BaseModel):
    """Returned by ``POST /api/v1/scans/`` once the scan record exists (202).

    Findings are not part of this response; they appear on the scan record
    and on the notification channel as probing progresses.
    """

    message: str = "Scan initiated successfully"
    scan_id: UUID
    status: str


class FindingResponse(BaseModel):
    """A single confirmed exposure."""

    id: UUID
    url: str
    description: str
    severity: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ScanDetail(BaseModel):
    """A scan with its findings, as shown in the scan history.

    Attributes:
        id: Scan UUID.
        domain: The domain exactly as submitted.
        status: ``running``, ``completed`` or ``failed``.
        created_at: When the scan was requested.
        updated_at: When the status last changed.
        findings: Confirmed exposures, oldest first.
    """

    id: UUID
    domain: str
    status: str
    created_at: datetime
    updated_at: datetime
    findings: list[FindingResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def unwrap_status(cls, value: object) -> object:
        """Accept a :class:`ScanStatus` member as well as its string value."""
        return getattr(value, "value", value)
