"""Catalog read schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from whodies.schema.base import ORMModel


class DeathInfo(ORMModel):
    id: int
    character: str
    time_of_death: str
    cause: str
    killed_by: str
    context: str
    is_ambiguous: bool


class MovieSummary(ORMModel):
    """Movie fields shown when a request matches an existing catalog entry."""
    tmdb_id: int
    title: str
    year: int
    poster_path: str | None = None


class MovieDetail(MovieSummary):
    id: int
    director: str
    tagline: str | None = None
    runtime: int
    mpaa_rating: str
    created_at: datetime
    updated_at: datetime
    deaths: list[DeathInfo] = Field(default_factory=list)
