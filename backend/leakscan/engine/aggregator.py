"""
Result Aggregator for LeakScan.

Attaches scan and owner context to confirmed candidates so they can be
handed to the persistence layer.  Zero findings is a normal, successful
outcome and produces an empty list.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from leakscan.engine.candidates import Candidate
from leakscan.engine.catalog import Severity


@dataclass(frozen=True)
class FindingRecord:
    """A confirmed exposure ready to be persisted exactly once.

    Attributes:
        scan_id:     The scan that produced the finding.
        user_id:     Owner of that scan.
        url:         The URL that answered with a status below 400.
        description: Human-readable description of the exposure.
        severity:    Impact level from the pattern catalog.
    """

    scan_id: uuid.UUID
    user_id: str
    url: str
    description: str
    severity: Severity

    def to_event(self) -> dict[str, Any]:
        """JSON-friendly representation used for notification events."""
        payload = asdict(self)
        payload["scan_id"] = str(self.scan_id)
        payload["severity"] = self.severity.value
        return payload


def aggregate(
    findings: Iterable[Candidate],
    scan_id: uuid.UUID,
    user_id: str,
) -> list[FindingRecord]:
    """Turn confirmed candidates into :class:`FindingRecord` instances."""
    return [
        FindingRecord(
            scan_id=scan_id,
            user_id=user_id,
            url=finding.url,
            description=finding.description,
            severity=finding.severity,
        )
        for finding in findings
    ]


def has_findings(records: list[FindingRecord]) -> bool:
    return bool(records)
