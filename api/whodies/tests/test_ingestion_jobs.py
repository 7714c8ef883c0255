"""Event-path retries, step memoisation, and the RQ failure callback."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from whodies.core.config import settings
from whodies.ingestion.http import ConfigurationError, TransientAPIError
from whodies.jobs import ingestion as ingestion_jobs
from whodies.jobs.ingestion import (
    CLAIM_STEP,
    PROCESS_STEP,
    StepMemo,
    on_ingestion_failure,
    run_requested_job,
    run_requested_job_inline,
)
from whodies.models.ingestion import IngestionStatus
from whodies.services import queue_service
from whodies.services.ingestion_service import IngestionPipeline
from whodies.tests.utils import FakeResolver, FakeScraper, add_job


class FlakyResolver(FakeResolver):
    """Fails the first `failures` searches, recording the job status seen at each attempt."""

    def __init__(self, failures: int, session_factory, job_id: int) -> None:
        super().__init__()
        self.failures = failures
        self.session_factory = session_factory
        self.job_id = job_id
        self.statuses: list[IngestionStatus] = []

    async def search(self, query: str, year: int | None = None):
        async with self.session_factory() as session:
            self.statuses.append((await queue_service.get_job(session, self.job_id)).status)
        if self.failures > 0:
            self.failures -= 1
            raise TransientAPIError("TMDB HTTP 503")
        return await super().search(query, year)


@pytest.mark.asyncio
async def test_step_memo_replays_finished_steps() -> None:
    persisted: list[dict] = []
    store: dict = {}
    memo = StepMemo(store, persist=lambda: persisted.append(dict(store)))
    calls = {"count": 0}

    async def _step() -> str:
        calls["count"] += 1
        return "done"

    assert await memo.run(CLAIM_STEP, _step) == "done"
    assert await memo.run(CLAIM_STEP, _step) == "done"
    assert calls["count"] == 1
    assert persisted == [{CLAIM_STEP: "done"}]
    assert memo.completed(CLAIM_STEP) and not memo.completed(PROCESS_STEP)


@pytest.mark.asyncio
async def test_requested_job_runs_to_completion(session, session_factory) -> None:
    job = await add_job(session, "jaws 1975")
    pipeline = IngestionPipeline(resolver=FakeResolver(), scraper=FakeScraper())

    result = await run_requested_job(job.id, StepMemo(), session_factory=session_factory, pipeline=pipeline)

    assert result == {"job_id": job.id, "processed": True, "title": "Jaws"}
    assert (await queue_service.get_job(session, job.id)).status == IngestionStatus.COMPLETE


@pytest.mark.asyncio
async def test_requested_job_not_claimable_is_a_noop(session, session_factory) -> None:
    job = await add_job(session, "jaws", status=IngestionStatus.PROCESSING)
    resolver = FakeResolver()

    result = await run_requested_job(
        job.id,
        StepMemo(),
        session_factory=session_factory,
        pipeline=IngestionPipeline(resolver=resolver, scraper=FakeScraper()),
    )

    assert result == {"job_id": job.id, "processed": False}
    assert resolver.searches == []


@pytest.mark.asyncio
async def test_retry_replays_claim_instead_of_reclaiming(session, session_factory) -> None:
    job = await add_job(session, "jaws")
    memo = StepMemo()
    pipeline = IngestionPipeline(resolver=FakeResolver(error=TransientAPIError("503")), scraper=FakeScraper())

    with pytest.raises(TransientAPIError):
        await run_requested_job(job.id, memo, session_factory=session_factory, pipeline=pipeline)
    assert memo.completed(CLAIM_STEP)

    pipeline.resolver = FakeResolver()
    result = await run_requested_job(job.id, memo, session_factory=session_factory, pipeline=pipeline)

    assert result["processed"] is True
    assert (await queue_service.get_job(session, job.id)).status == IngestionStatus.COMPLETE


@pytest.mark.asyncio
async def test_inline_path_stays_processing_during_retries(session, session_factory) -> None:
    job = await add_job(session, "jaws")
    resolver = FlakyResolver(2, session_factory, job.id)

    result = await run_requested_job_inline(
        job.id, session_factory=session_factory, pipeline=IngestionPipeline(resolver=resolver, scraper=FakeScraper())
    )

    assert result["processed"] is True and "failed" not in result
    assert resolver.statuses == [IngestionStatus.PROCESSING] * 3
    assert (await queue_service.get_job(session, job.id)).status == IngestionStatus.COMPLETE


@pytest.mark.asyncio
async def test_inline_path_fails_after_budget(session, session_factory) -> None:
    job = await add_job(session, "jaws")
    resolver = FlakyResolver(99, session_factory, job.id)

    result = await run_requested_job_inline(
        job.id, session_factory=session_factory, pipeline=IngestionPipeline(resolver=resolver, scraper=FakeScraper())
    )

    assert result["failed"] is True
    assert len(resolver.statuses) == settings.event_retry_budget + 1
    assert set(resolver.statuses) == {IngestionStatus.PROCESSING}
    refreshed = await queue_service.get_job(session, job.id)
    assert refreshed.status == IngestionStatus.FAILED
    assert refreshed.failure_reason == "TMDB HTTP 503"


@pytest.mark.asyncio
async def test_inline_path_fails_immediately_on_configuration_error(session, session_factory) -> None:
    job = await add_job(session, "jaws")
    resolver = FakeResolver(credentials_error=ConfigurationError("TMDB API credentials missing"))

    result = await run_requested_job_inline(
        job.id, session_factory=session_factory, pipeline=IngestionPipeline(resolver=resolver, scraper=FakeScraper())
    )

    assert result["failed"] is True
    assert resolver.searches == []
    refreshed = await queue_service.get_job(session, job.id)
    assert refreshed.status == IngestionStatus.FAILED
    assert "credentials" in refreshed.failure_reason


def _rq_job(job_id: int, retries_left: int) -> SimpleNamespace:
    return SimpleNamespace(kwargs={"job_id": job_id}, meta={}, retries_left=retries_left)


def test_failure_callback_waits_for_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    failed: list[tuple[int, str]] = []

    async def _fail(job_id: int, reason: str, **_: object) -> None:
        failed.append((job_id, reason))

    async def _dispose() -> None:
        return None

    monkeypatch.setattr(ingestion_jobs, "fail_requested_job", _fail)
    monkeypatch.setattr(ingestion_jobs, "engine", SimpleNamespace(dispose=_dispose))

    error = TransientAPIError("503")
    on_ingestion_failure(_rq_job(7, 2), None, TransientAPIError, error, None)
    assert failed == []

    on_ingestion_failure(_rq_job(7, 0), None, TransientAPIError, error, None)
    assert failed == [(7, "503")]


def test_failure_callback_skips_retries_for_configuration_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    failed: list[tuple[int, str]] = []

    async def _fail(job_id: int, reason: str, **_: object) -> None:
        failed.append((job_id, reason))

    async def _dispose() -> None:
        return None

    monkeypatch.setattr(ingestion_jobs, "fail_requested_job", _fail)
    monkeypatch.setattr(ingestion_jobs, "engine", SimpleNamespace(dispose=_dispose))

    rq_job = _rq_job(9, 3)
    on_ingestion_failure(rq_job, None, ConfigurationError, ConfigurationError("no key"), None)

    assert rq_job.retries_left == 0
    assert failed == [(9, "no key")]
