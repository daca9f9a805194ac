"""
LeakScan ORM models package.

Re-exports every model class so that consumers can import directly from
``leakscan.models`` instead of reaching into individual submodules::

    from leakscan.models import Scan, ScanStatus, Finding
"""

from leakscan.models.scan import Scan, ScanStatus
from leakscan.models.finding import Finding

__all__: list[str] = [
    "Scan",
    "ScanStatus",
    "Finding",
]
