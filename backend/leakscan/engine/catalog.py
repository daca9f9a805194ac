"""
Catalog of commonly exposed, sensitive HTTP paths.

The catalog is a statically initialised, read-only table shared by the whole
process.  Its order is significant: candidate URLs are generated in catalog
order so that downstream processing is deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Impact level of an exposed path, ordered Critical > High > Medium > Low.

    The string value is what gets persisted and shown to users.
    """

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Numeric rank where a larger number means a more severe finding."""
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


@dataclass(frozen=True)
class PatternEntry:
    """A known-sensitive endpoint.

    Attributes:
        path:        Absolute URL path, always starting with ``/``.
        description: Human-readable explanation shown with a finding.
        severity:    Impact level if the path turns out to be reachable.
    """

    path: str
    description: str
    severity: Severity

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ValueError(f"Pattern path must start with '/': {self.path!r}")


PATTERN_CATALOG: tuple[PatternEntry, ...] = (
    PatternEntry("/.git/config", "Publicly exposed .git/config file", Severity.HIGH),
    PatternEntry("/.env", "Publicly exposed .env file", Severity.CRITICAL),
    PatternEntry("/.aws/credentials", "Exposed AWS credentials file", Severity.CRITICAL),
    PatternEntry("/wp-config.php", "Exposed WordPress configuration file", Severity.HIGH),
    PatternEntry("/_debugbar/open", "Laravel Debugbar open handler", Severity.MEDIUM),
    PatternEntry("/.hg/hgrc", "Publicly exposed Mercurial config", Severity.HIGH),
    PatternEntry("/server-status", "Apache server-status page exposed", Severity.MEDIUM),
    PatternEntry("/phpinfo.php", "PHP info file exposed", Severity.MEDIUM),
    PatternEntry("/.DS_Store", "macOS .DS_Store file exposed", Severity.LOW),
    PatternEntry("/.idea/workspace.xml", "JetBrains IDE workspace file exposed", Severity.LOW),
)
