"""
Notification channel for scan lifecycle events.

Events are published to the Redis Pub/Sub channel ``scan:{scan_id}`` so that
any interested observer (e.g. a UI relay) can follow a scan live.  LeakScan
is a producer only.

Message format::

    {
        "event": "finding",
        "scan_id": "8b0c...",
        "data": { ... },
        "timestamp": "2026-10-19T14:30:05+00:00"
    }

Event types:
    - ``scan_started``   -- the record exists and probing is about to begin.
    - ``finding``        -- a confirmed exposure was persisted.
    - ``scan_completed`` -- the scan reached ``completed``.
    - ``scan_failed``    -- the scan reached ``failed``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis

from leakscan.core.logging import get_logger

logger = get_logger(__name__)

_PUBLISH_TIMEOUT_SECONDS: float = 2.0


def channel_name(scan_id: object) -> str:
    """Return the Pub/Sub channel name for a scan (``scan:<uuid>``)."""
    return f"scan:{scan_id}"


def build_event(scan_id: object, event_type: str, data: dict[str, Any]) -> str:
    """Serialise an event envelope to JSON."""
    return json.dumps(
        {
            "event": event_type,
            "scan_id": str(scan_id),
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        default=str,
    )


class EventPublisher(Protocol):
    async def publish(self, scan_id: object, event_type: str, data: dict[str, Any]) -> None:
        ...


class RedisEventPublisher:
    """Publishes scan events through Redis Pub/Sub.

    Publishing is best-effort: a failure is logged as a warning and never
    changes the outcome of a scan.
    """

    def __init__(self, redis_url: Optional[str] = None) -> None:
        if redis_url is None:
            from leakscan.config import get_settings

            redis_url = get_settings().REDIS_URL
        self.redis_url: str = redis_url

    async def publish(self, scan_id: object, event_type: str, data: dict[str, Any]) -> None:
        message: str = build_event(scan_id, event_type, data)
        try:
            redis_client = aioredis.from_url(
                self.redis_url,
                socket_connect_timeout=_PUBLISH_TIMEOUT_SECONDS,
                socket_timeout=_PUBLISH_TIMEOUT_SECONDS,
            )
            async with redis_client:
                await redis_client.publish(channel_name(scan_id), message)
        except Exception as exc:
            logger.warning(
                "Failed to publish %s event: %s",
                event_type,
                exc,
                extra={"action": "event_publish_error", "target": str(scan_id)},
            )


class NullEventPublisher:
    """Discards every event; used when no notification channel is wired up."""

    async def publish(self, scan_id: object, event_type: str, data: dict[str, Any]) -> None:
        return None
