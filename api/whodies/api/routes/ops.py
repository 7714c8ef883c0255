from __future__ import annotations

from fastapi import APIRouter, Depends

from whodies.api.deps import require_cron_secret
from whodies.ingestion.observability import source_monitor
from whodies.services.task_queue import task_queue

router = APIRouter()


@router.get("/queues", tags=["ops"], dependencies=[Depends(require_cron_secret)])
async def queue_health() -> dict:
    """
    Redis/RQ health plus per-source scrape metrics.

    Shares the cron secret so operational data is not exposed anonymously.
    """

    return {"task_queue": task_queue.snapshot(), "sources": await source_monitor.snapshot()}
