"""LeakScan Exposure Probing Engine."""

from leakscan.engine.catalog import PATTERN_CATALOG, PatternEntry, Severity
from leakscan.engine.candidates import Candidate, expand_candidates, normalize_domain
from leakscan.engine.prober import ProbeDispatcher, is_exposed
from leakscan.engine.aggregator import FindingRecord, aggregate, has_findings
from leakscan.engine.lifecycle import ScanLifecycleController

__all__ = [
    "PATTERN_CATALOG",
    "PatternEntry",
    "Severity",
    "Candidate",
    "expand_candidates",
    "normalize_domain",
    "ProbeDispatcher",
    "is_exposed",
    "FindingRecord",
    "aggregate",
    "has_findings",
    "ScanLifecycleController",
]
