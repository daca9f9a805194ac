"""
Target normalisation and candidate URL expansion.

Turns whatever the user typed into a bare hostname and pairs that hostname
with every entry of the pattern catalog.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from leakscan.engine.catalog import PATTERN_CATALOG, PatternEntry, Severity

_SCHEME_PREFIX: re.Pattern[str] = re.compile(r"^https?://")
_WWW_PREFIX: str = "www."

# Only https is probed; plain-http-only hosts never yield findings.
_PROBE_SCHEME: str = "https"


@dataclass(frozen=True)
class Candidate:
    """A URL built from a target hostname and one catalog entry, not yet probed.

    Attributes:
        url:         Fully-qualified ``https`` URL to check.
        description: Copied from the originating :class:`PatternEntry`.
        severity:    Copied from the originating :class:`PatternEntry`.
    """

    url: str
    description: str
    severity: Severity


def normalize_domain(raw: str) -> str:
    """Reduce user input to a bare hostname.

    Strips a leading ``http://`` or ``https://``, then any leading ``www.``
    labels, and finally drops everything from the first ``/`` onwards.
    Never raises; an empty string normalises to an empty string and the
    caller decides whether that is acceptable.

    >>> normalize_domain("https://www.example.com/foo?x=1")
    'example.com'
    """
    hostname = _SCHEME_PREFIX.sub("", raw, count=1)
    # Repeated "www." labels are all dropped so a second pass is a no-op.
    while hostname.startswith(_WWW_PREFIX):
        hostname = hostname[len(_WWW_PREFIX):]
    return hostname.split("/", 1)[0]


def expand_candidates(
    hostname: str,
    catalog: Iterable[PatternEntry] = PATTERN_CATALOG,
) -> list[Candidate]:
    """Build one :class:`Candidate` per catalog entry, preserving catalog order."""
    return [
        Candidate(
            url=f"{_PROBE_SCHEME}://{hostname}{entry.path}",
            description=entry.description,
            severity=entry.severity,
        )
        for entry in catalog
    ]
