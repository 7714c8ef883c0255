"""Ingestion queue transitions.

Every status change is a single UPDATE guarded by the expected prior status,
so concurrent triggers (poller, event dispatch, manual runs) in separate
processes cannot both move the same row. The database is the only lock.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from whodies.core.config import settings
from whodies.models.ingestion import TERMINAL_STATUSES, IngestionQueue, IngestionStatus
from whodies.utils.datetime import utcnow

# How many times to look for another pending row after losing a claim race.
CLAIM_RACE_ATTEMPTS = 5

logger = logging.getLogger("whodies.services.queue")


async def _guarded_update(
    session: AsyncSession,
    job_id: int,
    *,
    expected: IngestionStatus | None = None,
    **values: object,
) -> bool:
    stmt = update(IngestionQueue).where(IngestionQueue.id == job_id)
    if expected is not None:
        stmt = stmt.where(IngestionQueue.status == expected)
    else:
        stmt = stmt.where(IngestionQueue.status.notin_(list(TERMINAL_STATUSES)))
    result = await session.execute(stmt.values(**values).execution_options(synchronize_session=False))
    await session.commit()
    return result.rowcount == 1


async def get_job(session: AsyncSession, job_id: int) -> IngestionQueue | None:
    return await session.get(IngestionQueue, job_id, populate_existing=True)


async def claim_specific(session: AsyncSession, job_id: int) -> bool:
    """Move one job from pending to processing; False if it is missing or already taken."""
    claimed = await _guarded_update(
        session, job_id, expected=IngestionStatus.PENDING, status=IngestionStatus.PROCESSING
    )
    if claimed:
        logger.info("Claimed job #%s", job_id)
    return claimed


async def claim_next_pending(session: AsyncSession) -> IngestionQueue | None:
    """Claim the oldest pending job, or return None when the queue is empty."""
    for _ in range(CLAIM_RACE_ATTEMPTS):
        candidate_id = await session.scalar(
            select(IngestionQueue.id)
            .where(IngestionQueue.status == IngestionStatus.PENDING)
            .order_by(IngestionQueue.created_at, IngestionQueue.id)
            .limit(1)
        )
        # Close the read transaction before the guarded write.
        await session.commit()
        if candidate_id is None:
            return None
        if await claim_specific(session, candidate_id):
            return await get_job(session, candidate_id)
        logger.info("Lost claim race for job #%s, looking again", candidate_id)
    return None


async def record_tmdb_id(session: AsyncSession, job_id: int, tmdb_id: int) -> None:
    await _guarded_update(session, job_id, expected=IngestionStatus.PROCESSING, tmdb_id=tmdb_id)


async def mark_complete(session: AsyncSession, job_id: int, *, tmdb_id: int | None = None) -> bool:
    values: dict[str, object] = {"status": IngestionStatus.COMPLETE, "completed_at": utcnow()}
    if tmdb_id is not None:
        values["tmdb_id"] = tmdb_id
    return await _guarded_update(session, job_id, expected=IngestionStatus.PROCESSING, **values)


async def mark_failed(session: AsyncSession, job_id: int, reason: str) -> bool:
    """Terminal failure with a bounded reason. Complete or failed rows are left alone."""
    bounded = (reason or "Unknown error")[: settings.failure_reason_max_length]
    return await _guarded_update(
        session, job_id, status=IngestionStatus.FAILED, failure_reason=bounded, completed_at=utcnow()
    )


async def find_processing_duplicate(session: AsyncSession, tmdb_id: int, *, job_id: int) -> IngestionQueue | None:
    """An older job already processing the same movie, if any.

    Only lower ids count: of two jobs resolving to one movie, the newer defers.
    """
    return await session.scalar(
        select(IngestionQueue)
        .where(
            IngestionQueue.tmdb_id == tmdb_id,
            IngestionQueue.status == IngestionStatus.PROCESSING,
            IngestionQueue.id < job_id,
        )
        .order_by(IngestionQueue.id)
        .limit(1)
    )


async def find_active_query(session: AsyncSession, query: str) -> IngestionQueue | None:
    """Pending or processing job whose query matches case-insensitively."""
    return await session.scalar(
        select(IngestionQueue)
        .where(
            func.lower(IngestionQueue.query) == query.lower(),
            IngestionQueue.status.in_([IngestionStatus.PENDING, IngestionStatus.PROCESSING]),
        )
        .limit(1)
    )


async def enqueue(session: AsyncSession, *, query: str, year: int | None) -> IngestionQueue:
    job = IngestionQueue(query=query, year=year, status=IngestionStatus.PENDING)
    session.add(job)
    await session.commit()
    await session.refresh(job)
    return job
