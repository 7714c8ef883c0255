"""RQ entry points for the two ingestion triggers.

The poller claims whatever is oldest; the event path claims one specific job
and runs it as named steps. Step results are memoised on the RQ job so that a
retry after a crash replays a finished claim instead of claiming again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from rq import get_current_job
from rq.job import Job
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt

from whodies.core.config import settings
from whodies.db.session import async_session, engine
from whodies.ingestion.http import ConfigurationError, fixed_backoff
from whodies.services import ingestion_service, queue_service

CLAIM_STEP = "claim-job"
PROCESS_STEP = "process-job"

SessionFactory = async_sessionmaker[AsyncSession]

logger = logging.getLogger("whodies.jobs.ingestion")


class StepMemo:
    """Named step results that survive retries of the same job."""

    def __init__(self, store: dict[str, Any] | None = None, persist: Callable[[], None] | None = None) -> None:
        self._store = store if store is not None else {}
        self._persist = persist

    @classmethod
    def for_rq_job(cls, rq_job: Job) -> "StepMemo":
        steps = rq_job.meta.setdefault("steps", {})
        return cls(steps, persist=rq_job.save_meta)

    def completed(self, name: str) -> bool:
        return name in self._store

    async def run(self, name: str, func: Callable[[], Awaitable[Any]]) -> Any:
        if name in self._store:
            logger.info("Replaying finished step %s", name)
            return self._store[name]
        result = await func()
        self._store[name] = result
        if self._persist:
            self._persist()
        return result


async def run_requested_job(
    job_id: int,
    memo: StepMemo,
    *,
    session_factory: SessionFactory = async_session,
    pipeline: ingestion_service.IngestionPipeline | None = None,
) -> dict[str, Any]:
    """Claim one job and process it; errors propagate so the retry budget applies."""

    async def _claim() -> bool:
        async with session_factory() as session:
            return await queue_service.claim_specific(session, job_id)

    if not await memo.run(CLAIM_STEP, _claim):
        logger.info("Job #%s was not claimable; another trigger owns it", job_id)
        return {"job_id": job_id, "processed": False}

    async def _process() -> str | None:
        async with session_factory() as session:
            return await ingestion_service.process_claimed_job(session, job_id, pipeline)

    title = await memo.run(PROCESS_STEP, _process)
    return {"job_id": job_id, "processed": True, "title": title}


async def fail_requested_job(
    job_id: int, reason: str, *, session_factory: SessionFactory = async_session
) -> None:
    async with session_factory() as session:
        if await queue_service.mark_failed(session, job_id, reason):
            logger.warning("Job #%s failed after exhausting retries: %s", job_id, reason)


async def run_requested_job_inline(
    job_id: int,
    *,
    session_factory: SessionFactory = async_session,
    pipeline: ingestion_service.IngestionPipeline | None = None,
) -> dict[str, Any]:
    """Event path without a worker: same steps, same retry budget, same failure handler."""
    memo = StepMemo()
    result: dict[str, Any] = {}
    attempts = settings.event_retry_budget + 1
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=fixed_backoff(settings.event_retry_backoff_seconds),
            retry=retry_if_not_exception_type(ConfigurationError),
            before_sleep=lambda state: logger.warning(
                "Job #%s attempt %d/%d failed (%s), retrying",
                job_id,
                state.attempt_number,
                attempts,
                state.outcome.exception() if state.outcome else "error",
            ),
            reraise=True,
        ):
            with attempt:
                result = await run_requested_job(
                    job_id, memo, session_factory=session_factory, pipeline=pipeline
                )
    except Exception as exc:
        reason = str(exc) or exc.__class__.__name__
        await fail_requested_job(job_id, reason, session_factory=session_factory)
        return {"job_id": job_id, "processed": True, "failed": True, "reason": reason}
    return result


def on_ingestion_failure(job: Job, connection: Any, exc_type: type, exc_value: BaseException, tb: Any) -> None:
    """RQ failure callback; runs on every failed attempt, before RQ decides to retry.

    The queue row stays processing while retries remain. Missing configuration
    cannot be fixed by retrying, so it burns the remaining budget at once.
    """
    job_id = job.kwargs.get("job_id") or job.meta.get("ingestion_job_id")
    if job_id is None:
        return
    if isinstance(exc_value, ConfigurationError):
        job.retries_left = 0
    if job.retries_left:
        logger.info("Job #%s attempt failed (%s); %s retries left", job_id, exc_value, job.retries_left)
        return
    reason = str(exc_value) or exc_type.__name__

    async def _run() -> None:
        try:
            await fail_requested_job(int(job_id), reason)
        finally:
            await engine.dispose()

    asyncio.run(_run())


def process_requested_job(job_id: int) -> dict[str, Any]:
    """Enqueue-able event-path job."""
    rq_job = get_current_job()
    memo = StepMemo.for_rq_job(rq_job) if rq_job else StepMemo()

    async def _run() -> dict[str, Any]:
        try:
            return await run_requested_job(job_id, memo)
        finally:
            await engine.dispose()

    result = asyncio.run(_run())
    logger.info("Event-path run for job #%s finished: %s", job_id, result)
    return result


def process_queue_job() -> dict[str, Any]:
    """Enqueue-able poller job: claim and process at most one pending request."""

    async def _run() -> dict[str, Any]:
        try:
            async with async_session() as session:
                result = await ingestion_service.process_queue(session)
        finally:
            await engine.dispose()
        return result.model_dump(exclude_none=True)

    result = asyncio.run(_run())
    logger.info("Queue poll finished: %s", result)
    return result
