"""
Finding model.

A finding is a candidate URL that answered with a status below 400.  It is
written exactly once, never updated, and lives only as long as its scan.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leakscan.core.database import Base

if TYPE_CHECKING:
    from leakscan.models.scan import Scan


class Finding(Base):
    """A confirmed exposure of a sensitive path.

    Attributes:
        id: UUID primary key, auto-generated.
        scan_id: Foreign key to the owning :class:`~leakscan.models.scan.Scan`.
        user_id: Owner of the scan, denormalised for per-user queries.
        url: The probed URL that appeared to exist.
        description: Human-readable description from the pattern catalog.
        severity: ``Critical``, ``High``, ``Medium`` or ``Low``.
        created_at: When the finding was recorded.
        scan: Parent :class:`~leakscan.models.scan.Scan` relationship.
    """

    __tablename__ = "scan_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    scan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("scans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    severity: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # -- Relationships ---------------------------------------------------------
    scan: Mapped[Scan] = relationship(
        "Scan",
        back_populates="findings",
    )

    def __repr__(self) -> str:
        return f"<Finding url={self.url!r} severity={self.severity} scan_id={self.scan_id}>"
