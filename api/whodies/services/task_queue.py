"""RQ task queue wrapper with inline fallback for local/test runs."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.registry import DeferredJobRegistry, FailedJobRegistry, ScheduledJobRegistry, StartedJobRegistry
from rq.worker import Worker
from rq_scheduler import Scheduler

from whodies.core.config import settings

logger = logging.getLogger("whodies.services.task_queue")


def event_retry() -> Retry:
    """Framework-level retry budget for event-triggered ingestion."""
    return Retry(max=settings.event_retry_budget, interval=list(settings.event_retry_backoff_seconds))


class TaskQueue:
    """Thin wrapper around RQ that can fall back to inline execution."""

    def __init__(self) -> None:
        self.queue_names: list[str] = settings.worker_queue_names or ["default"]
        self._connection: Redis | None = None
        self._enabled = False
        self._bootstrap()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def connection(self) -> Redis | None:
        return self._connection

    def _bootstrap(self) -> None:
        """Initialize Redis connectivity unless disabled for tests."""
        if settings.environment.lower() == "test":
            logger.info("Task queue disabled in test environment")
            return
        try:
            connection = Redis.from_url(settings.redis_url)
            connection.ping()
        except RedisError as exc:  # pragma: no cover - network/redis specific
            logger.warning("Redis unavailable; running jobs inline: %s", exc)
            return
        self._connection = connection
        self._enabled = True
        logger.info("Task queue ready (queues: %s)", ", ".join(self.queue_names))

    def get_queue(self, queue_name: str | None = None) -> Queue:
        if not self._connection:
            raise RuntimeError("Queue connection not initialized")
        target = queue_name or (self.queue_names[0] if self.queue_names else "default")
        return Queue(target, connection=self._connection)

    async def dispatch_ingestion(self, job_id: int) -> dict[str, Any]:
        """Hand a freshly queued request to the event-driven path.

        With Redis the job is enqueued with the retry budget and failure
        callback; without it the same steps run inline in this process.
        """
        from whodies.jobs.ingestion import on_ingestion_failure, process_requested_job, run_requested_job_inline

        if not self._enabled or not self._connection:
            return await run_requested_job_inline(job_id)

        def _enqueue() -> str:
            queue = self.get_queue(settings.ingestion_queue_name)
            job = queue.enqueue(
                process_requested_job,
                kwargs={"job_id": job_id},
                job_timeout=settings.ingestion_job_timeout_seconds,
                retry=event_retry(),
                on_failure=on_ingestion_failure,
                description=f"ingest:{job_id}",
                meta={"ingestion_job_id": job_id, "steps": {}},
            )
            return job.id

        try:
            rq_job_id = await asyncio.to_thread(_enqueue)
        except RedisError as exc:  # pragma: no cover - network/redis specific
            logger.warning("Falling back to inline execution after queue failure: %s", exc)
            return await run_requested_job_inline(job_id)
        logger.info("Dispatched ingestion job #%s as %s", job_id, rq_job_id)
        return {"job_id": job_id, "queued": True, "rq_job_id": rq_job_id}

    def snapshot(self) -> dict[str, Any]:
        """Return a diagnostic snapshot of queue, worker, and scheduler state."""
        if not self._connection:
            return {
                "status": "offline",
                "queues": [],
                "workers": [],
                "error": "queue connection not initialized",
            }

        queues: list[dict[str, Any]] = []
        for name in self.queue_names:
            queue = Queue(name, connection=self._connection)
            queues.append(
                {
                    "name": name,
                    "size": queue.count,
                    "deferred": len(DeferredJobRegistry(queue=queue)),
                    "scheduled": len(ScheduledJobRegistry(queue=queue)),
                    "started": len(StartedJobRegistry(queue=queue)),
                    "failed": len(FailedJobRegistry(queue=queue)),
                }
            )

        workers: list[dict[str, Any]] = []
        try:
            for worker in Worker.all(connection=self._connection):
                workers.append(
                    {
                        "name": worker.name,
                        "state": worker.get_state(),
                        "queues": list(worker.queue_names()),
                        "current_job_id": worker.get_current_job_id(),
                    }
                )
        except RedisError as exc:  # pragma: no cover - network/redis specific
            logger.warning("Unable to list workers: %s", exc)

        scheduler_summary: dict[str, Any] = {}
        try:
            scheduler = Scheduler(connection=self._connection, queue_name=settings.ingestion_queue_name)
            scheduler_summary["scheduled_jobs"] = len(list(scheduler.get_jobs()))
            scheduler_summary["healthy"] = True
        except RedisError:  # pragma: no cover - redis specific
            scheduler_summary["scheduled_jobs"] = None
            scheduler_summary["healthy"] = False

        warnings: list[str] = []
        if not workers:
            warnings.append("no_workers")
        if scheduler_summary.get("healthy") is False:
            warnings.append("scheduler_unreachable")
        return {
            "status": "online" if not warnings else "degraded",
            "queues": queues,
            "workers": workers,
            "scheduler": scheduler_summary,
            "warnings": warnings,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }


task_queue = TaskQueue()
