"""
Exception hierarchy for LeakScan.

Only creation-time, authentication, and validation failures ever reach an
API caller.  Everything that happens after a scan record exists is recorded
as scan state by the lifecycle controller instead of being raised.
"""

from __future__ import annotations


class LeakScanError(Exception):
    """Base class for all errors raised by LeakScan itself."""


class AuthenticationError(LeakScanError):
    """The request carried no usable identity credential."""


class ScanCreationError(LeakScanError):
    """The initial scan record could not be persisted."""


class ScanStateError(LeakScanError):
    """A status transition was rejected.

    Raised for transitions the lifecycle does not allow and for attempts to
    move a scan that has already reached a terminal state.
    """


class ApiError(LeakScanError):
    """An error rendered to the HTTP caller as ``{"error": message}``.

    Attributes:
        message: Human-readable description sent to the client.
        status_code: HTTP status code of the error response.
    """

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message: str = message
        self.status_code: int = status_code
