"""Request intake and queue-processing schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from whodies.schema.movie import MovieSummary


class MovieRequest(BaseModel):
    """Free-text movie request, optionally ending in a year."""
    query: str = Field(min_length=1)


class MovieRequestResponse(BaseModel):
    success: bool
    message: str
    existing_movie: MovieSummary | None = None
    job_id: int | None = None


class QueueResult(BaseModel):
    """Outcome of one poller or cron run."""
    processed: bool
    job_id: int | None = None
    title: str | None = None
    failed: bool | None = None
    reason: str | None = None
