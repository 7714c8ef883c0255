"""Job orchestration for the movie ingestion pipeline.

Invariants:
- Every job that leaves this module is complete or failed, never processing,
  when triggered through `process_queue`.
- A movie that is already catalogued, or already being processed by another
  job, is never scraped again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from whodies.core.config import settings
from whodies.ingestion.extraction import extract_deaths
from whodies.ingestion.llm import TextGenerator, get_generator
from whodies.ingestion.scraper import DeathScraper
from whodies.ingestion.tmdb import TMDBClient
from whodies.models.ingestion import TERMINAL_STATUSES, IngestionQueue
from whodies.schema.ingest import QueueResult
from whodies.services import movie_service, queue_service
from whodies.utils.query import parse_query_with_year

logger = logging.getLogger("whodies.services.ingestion")


class MovieNotFoundError(Exception):
    """The metadata search returned no candidates for a query."""


@dataclass
class IngestionPipeline:
    """External collaborators for one pipeline run."""
    resolver: TMDBClient = field(default_factory=TMDBClient)
    scraper: DeathScraper = field(default_factory=DeathScraper)
    generator: TextGenerator | None = None


def build_pipeline() -> IngestionPipeline:
    return IngestionPipeline(generator=get_generator())


def search_terms(job: IngestionQueue) -> tuple[str, int | None]:
    """Title and year to search for; a stored year wins over one parsed from the query."""
    title, parsed_year = parse_query_with_year(job.query)
    return title, job.year or parsed_year


async def process_job(session: AsyncSession, job: IngestionQueue, pipeline: IngestionPipeline) -> str:
    """Run one claimed job through resolve, dedupe, scrape, extract, and write.

    Returns the movie title. Errors propagate to the caller, which owns the
    failed transition.
    """
    job_id = job.id
    title, year = search_terms(job)
    logger.info('Processing job #%s: "%s"%s', job_id, title, f" ({year})" if year else "")

    candidate = await pipeline.resolver.search(title, year)
    if candidate is None:
        raise MovieNotFoundError(f'Movie "{job.query}" not found on TMDB')
    await queue_service.record_tmdb_id(session, job_id, candidate.tmdb_id)

    duplicate = await queue_service.find_processing_duplicate(
        session, candidate.tmdb_id, job_id=job_id
    )
    if duplicate is not None:
        logger.info(
            "TMDB %s already processing as job #%s; completing job #%s",
            candidate.tmdb_id,
            duplicate.id,
            job_id,
        )
        await queue_service.mark_complete(session, job_id, tmdb_id=candidate.tmdb_id)
        return candidate.title

    if await movie_service.movie_exists(session, candidate.tmdb_id):
        logger.info('"%s" (TMDB %s) already in the catalog', candidate.title, candidate.tmdb_id)
        await queue_service.mark_complete(session, job_id, tmdb_id=candidate.tmdb_id)
        return candidate.title

    metadata = await pipeline.resolver.fetch_metadata(candidate.tmdb_id)
    logger.info('Resolved "%s" (%s), directed by %s', metadata.title, metadata.year, metadata.director)

    await asyncio.sleep(settings.scrape_delay_seconds)
    scraped = await pipeline.scraper.scrape(metadata.title, metadata.year, metadata.director)
    deaths = await extract_deaths(metadata.title, scraped, pipeline.generator)

    await movie_service.write_movie_with_deaths(session, job_id, metadata, deaths)
    return metadata.title


async def process_queue(session: AsyncSession, pipeline: IngestionPipeline | None = None) -> QueueResult:
    """Claim and process at most one pending job. Never raises."""
    job = await queue_service.claim_next_pending(session)
    if job is None:
        return QueueResult(processed=False, reason="no_jobs")

    job_id = job.id
    try:
        title = await process_job(session, job, pipeline or build_pipeline())
    except Exception as exc:
        reason = str(exc) or exc.__class__.__name__
        logger.exception("Job #%s failed: %s", job_id, reason)
        await session.rollback()
        await queue_service.mark_failed(session, job_id, reason)
        return QueueResult(
            processed=True,
            job_id=job_id,
            failed=True,
            reason=reason[: settings.failure_reason_max_length],
        )
    return QueueResult(processed=True, job_id=job_id, title=title)


async def process_claimed_job(
    session: AsyncSession, job_id: int, pipeline: IngestionPipeline | None = None
) -> str | None:
    """Event-path body for a job this caller already claimed.

    Safe to re-run: a job that reached a terminal state is left alone, and the
    dedupe checks make a partially processed job converge. Errors propagate so
    the caller's retry budget applies.
    """
    pipeline = pipeline or build_pipeline()
    pipeline.resolver.check_credentials()

    job = await queue_service.get_job(session, job_id)
    if job is None:
        logger.warning("Job #%s vanished before processing", job_id)
        return None
    if job.status in TERMINAL_STATUSES:
        logger.info("Job #%s already %s; nothing to do", job_id, job.status.value)
        return None
    try:
        return await process_job(session, job, pipeline)
    except Exception:
        await session.rollback()
        raise
