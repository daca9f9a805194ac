"""
Celery application instance and configuration.

The Celery app uses Redis as both broker and result backend, configured from
the application settings.  Scan tasks live in ``leakscan.tasks.scan_tasks``.
"""

from __future__ import annotations

from celery import Celery
from celery.signals import worker_process_init

from leakscan.config import get_settings
from leakscan.core.logging import configure_logging

# ── Constants ────────────────────────────────────────────────────────────────

# Ten probes with a five second deadline each finish well within a minute.
_TASK_SOFT_TIME_LIMIT_SECONDS: int = 120
_TASK_HARD_TIME_LIMIT_SECONDS: int = 180
_RESULT_EXPIRES_SECONDS: int = 3600        # 1 hour
_WORKER_PREFETCH_MULTIPLIER: int = 1


def _create_celery_app() -> Celery:
    """Build and configure the Celery application instance.

    Returns:
        A fully configured ``Celery`` application ready to be used by workers
        and by the FastAPI backend to dispatch tasks.
    """
    settings = get_settings()

    app = Celery(
        "leakscan",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["leakscan.tasks.scan_tasks"],
    )

    app.conf.update(
        # ── Serialization ────────────────────────────────────────────────
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # ── Time Zones ───────────────────────────────────────────────────
        timezone="UTC",
        enable_utc=True,

        # ── Task Execution ───────────────────────────────────────────────
        task_soft_time_limit=_TASK_SOFT_TIME_LIMIT_SECONDS,
        task_time_limit=_TASK_HARD_TIME_LIMIT_SECONDS,
        task_track_started=True,

        # ── Result Backend ───────────────────────────────────────────────
        result_expires=_RESULT_EXPIRES_SECONDS,

        # ── Worker ───────────────────────────────────────────────────────
        worker_prefetch_multiplier=_WORKER_PREFETCH_MULTIPLIER,
        worker_max_tasks_per_child=200,
        worker_hijack_root_logger=False,

        # ── Broker ───────────────────────────────────────────────────────
        broker_connection_retry_on_startup=True,
    )

    return app


@worker_process_init.connect
def _init_worker_logging(**_: object) -> None:
    configure_logging()


celery: Celery = _create_celery_app()
