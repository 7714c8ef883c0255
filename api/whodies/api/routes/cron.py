from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from whodies.api.deps import get_db, require_cron_secret
from whodies.ingestion.http import ConfigurationError
from whodies.schema.ingest import QueueResult
from whodies.services import ingestion_service

router = APIRouter()
logger = logging.getLogger("whodies.api.cron")


@router.get(
    "/process-queue",
    response_model=QueueResult,
    response_model_exclude_none=True,
    dependencies=[Depends(require_cron_secret)],
)
async def process_queue(session: AsyncSession = Depends(get_db)) -> QueueResult:
    """Process one pending ingestion job; the same work the scheduled poller does."""
    pipeline = ingestion_service.build_pipeline()
    try:
        pipeline.resolver.check_credentials()
    except ConfigurationError as exc:
        logger.error("Refusing to process queue: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return await ingestion_service.process_queue(session, pipeline)
