"""
Scan model and its status enumeration.

A scan is one user-initiated probing run against one domain.  It owns zero
or more :class:`~leakscan.models.finding.Finding` rows which are removed
together with the scan.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leakscan.core.database import Base

if TYPE_CHECKING:
    from leakscan.models.finding import Finding


class ScanStatus(str, enum.Enum):
    """Lifecycle states of a scan.

    ``PENDING`` is conceptual: records are persisted directly as
    ``RUNNING``.  ``COMPLETED`` and ``FAILED`` are terminal.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scan(Base):
    """A single probing run.

    Attributes:
        id: UUID primary key, assigned when the record is created.
        domain: The domain exactly as the user typed it, kept for display.
        status: Current :class:`ScanStatus`.
        user_id: Opaque identifier of the owner from the identity provider.
        created_at: When the scan was requested.
        updated_at: When the status last changed.
        findings: Confirmed exposures found by this scan.
    """

    __tablename__ = "scans"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    domain: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    status: Mapped[ScanStatus] = mapped_column(
        Enum(
            ScanStatus,
            name="scan_status",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=ScanStatus.RUNNING,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # -- Relationships ---------------------------------------------------------
    findings: Mapped[list[Finding]] = relationship(
        "Finding",
        back_populates="scan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Finding.created_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Scan id={self.id} domain={self.domain!r} status={self.status.value}>"
