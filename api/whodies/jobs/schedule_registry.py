from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from rq_scheduler import Scheduler

from whodies.core.config import settings
from whodies.jobs.ingestion import process_queue_job
from whodies.services.task_queue import task_queue

logger = logging.getLogger("whodies.jobs.schedule_registry")

QUEUE_POLL_JOB_ID = "ingestion:process_queue"


def _schedule_entries() -> list[dict]:
    return [
        {
            "id": QUEUE_POLL_JOB_ID,
            "func": process_queue_job,
            "interval": settings.poll_interval_seconds,
            "repeat": None,
            "queue_name": settings.ingestion_queue_name,
            # A poll is one job at most; it must not outlive the next tick.
            "timeout": min(settings.ingestion_job_timeout_seconds, settings.poll_interval_seconds),
        },
    ]


def ensure_schedules() -> None:
    """Idempotently register periodic jobs with rq-scheduler."""
    if settings.environment.lower() == "test":
        return
    if not task_queue.connection:
        logger.info("Skipping scheduler bootstrap; queue connection is unavailable")
        return
    scheduler = Scheduler(connection=task_queue.connection, queue_name=settings.ingestion_queue_name)
    for entry in _schedule_entries():
        if entry["id"] in scheduler:
            continue
        scheduler.schedule(
            scheduled_time=datetime.now(timezone.utc),
            func=entry["func"],
            interval=entry["interval"],
            repeat=entry["repeat"],
            id=entry["id"],
            queue_name=entry["queue_name"],
            timeout=entry["timeout"],
            result_ttl=int(timedelta(hours=1).total_seconds()),
        )
        logger.info("Scheduled job %s every %ss on queue %s", entry["id"], entry["interval"], entry["queue_name"])
