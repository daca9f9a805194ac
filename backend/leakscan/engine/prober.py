"""
Probe Dispatcher for LeakScan.

Checks every candidate URL with a single ``HEAD`` request.  All probes of a
scan run concurrently via :func:`asyncio.gather`, each with its own deadline,
and the dispatcher waits for every one of them before returning.

Probing is best-effort reconnaissance against a third party: a probe either
confirms that a path answers with a status below 400, or it does not.  A
timeout, refused connection, DNS or TLS failure is the same outcome as a
404 and never fails the scan.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

import httpx

from leakscan.core.logging import get_logger
from leakscan.engine.candidates import Candidate

logger = get_logger(__name__)

_DEFAULT_TIMEOUT_SECONDS: float = 5.0
_EXPOSED_STATUS_CEILING: int = 400


async def is_exposed(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = _DEFAULT_TIMEOUT_SECONDS,
) -> bool:
    """Return ``True`` when *url* answers a ``HEAD`` request with status < 400.

    The deadline covers the whole request, from dispatch to response headers.
    Every exception raised along the way means "not exposed".

    Args:
        client: Shared HTTP client; redirects must not be followed.
        url: Fully-qualified URL to check.
        timeout: Seconds allowed for this single probe.
    """
    try:
        response = await asyncio.wait_for(client.head(url), timeout=timeout)
    except Exception:  # noqa: BLE001 -- every probe failure means "not exposed"
        return False
    return response.status_code < _EXPOSED_STATUS_CEILING


class ProbeDispatcher:
    """Runs one existence check per candidate, all at once.

    Usage::

        dispatcher = ProbeDispatcher(timeout=5.0)
        confirmed = await dispatcher.probe(candidates)

    Attributes:
        timeout: Per-probe deadline in seconds.
        max_concurrency: Optional operator-imposed cap on probes in flight.
            ``None`` probes every candidate simultaneously.
        verify_tls: Whether certificate errors count as probe failures.
        user_agent: ``User-Agent`` header sent with every probe.
    """

    def __init__(
        self,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        max_concurrency: Optional[int] = None,
        verify_tls: bool = True,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout: float = timeout
        self.max_concurrency: Optional[int] = max_concurrency
        self.verify_tls: bool = verify_tls
        self.user_agent: Optional[str] = user_agent
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "ProbeDispatcher":
        """Build a dispatcher configured from the application settings."""
        from leakscan.config import get_settings

        settings = get_settings()
        return cls(
            timeout=settings.PROBE_TIMEOUT_SECONDS,
            max_concurrency=settings.PROBE_MAX_CONCURRENCY,
            verify_tls=settings.PROBE_VERIFY_TLS,
            user_agent=settings.PROBE_USER_AGENT,
        )

    async def probe(self, candidates: list[Candidate]) -> list[Candidate]:
        """Check every candidate and return the confirmed ones.

        Confirmed candidates are returned in input order, whatever order the
        probes completed in.

        Args:
            candidates: URLs to check.

        Returns:
            The subset of *candidates* that appear to exist.
        """
        if not candidates:
            return []

        start: float = time.monotonic()
        semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )

        async with self._build_client() as client:

            async def _check(candidate: Candidate) -> bool:
                if semaphore is None:
                    return await is_exposed(client, candidate.url, self.timeout)
                async with semaphore:
                    return await is_exposed(client, candidate.url, self.timeout)

            outcomes: list[bool] = await asyncio.gather(
                *(_check(candidate) for candidate in candidates)
            )

        confirmed: list[Candidate] = [
            candidate for candidate, exposed in zip(candidates, outcomes) if exposed
        ]

        logger.info(
            "Probed %d candidates, %d confirmed in %.1fs",
            len(candidates),
            len(confirmed),
            time.monotonic() - start,
            extra={"action": "probe_completed", "target": _host_of(candidates[0].url)},
        )
        return confirmed

    def _build_client(self) -> httpx.AsyncClient:
        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        return httpx.AsyncClient(
            # The asyncio deadline in is_exposed is authoritative; this only
            # keeps httpx from waiting longer than that on any single phase.
            timeout=httpx.Timeout(self.timeout),
            # No pool ceiling: the pool must never serialise probes.
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            follow_redirects=False,
            verify=self.verify_tls,
            headers=headers,
            transport=self._transport,
        )


def _host_of(url: str) -> str:
    # Plain string handling: candidate URLs are not guaranteed to parse.
    return url.partition("://")[2].split("/", 1)[0]
