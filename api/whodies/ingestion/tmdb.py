from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from whodies.core.config import settings
from whodies.ingestion.base import NOT_RATED, UNKNOWN, MovieCandidate, MovieMetadata
from whodies.ingestion.http import ConfigurationError, fetch_json
from whodies.utils.datetime import release_year

API_BASE = "https://api.themoviedb.org/3"
THEATRICAL_RELEASE = 3

logger = logging.getLogger("whodies.ingestion.tmdb")


def join_directors(credits: dict[str, Any]) -> str:
    directors = [member["name"] for member in credits.get("crew") or [] if member.get("job") == "Director"]
    return ", ".join(directors) if directors else UNKNOWN


def pick_certification(release_dates: dict[str, Any], region: str) -> str:
    """Theatrical certification for `region`, else its first release entry.

    TMDB reports unrated releases as "" or "0"; both become NR.
    """
    regional = next(
        (entry for entry in release_dates.get("results") or [] if entry.get("iso_3166_1") == region),
        None,
    )
    if not regional:
        return NOT_RATED
    dates = regional.get("release_dates") or []
    theatrical = next((rd for rd in dates if rd.get("type") == THEATRICAL_RELEASE), None)
    certification = (theatrical or {}).get("certification") or (dates[0].get("certification") if dates else None)
    if certification and certification != "0":
        return certification
    return NOT_RATED


class TMDBClient:
    source_name = "tmdb"

    def __init__(
        self,
        api_key: str | None = None,
        auth_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.tmdb_api_key
        self.auth_token = auth_token or settings.tmdb_api_auth_header
        self.transport = transport

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        headers: dict[str, str] = {"accept": "application/json"}
        params: dict[str, str] = {}
        if self.auth_token:
            token = self.auth_token
            headers["Authorization"] = token if token.startswith("Bearer ") else f"Bearer {token}"
        elif self.api_key:
            params["api_key"] = self.api_key
        else:
            raise ConfigurationError("TMDB API credentials missing; set TMDB_API_AUTH_HEADER or TMDB_API_KEY")
        return headers, params

    def check_credentials(self) -> None:
        """Raise ConfigurationError before any work starts when no credentials are set."""
        self._auth()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        headers, auth_params = self._auth()
        return await fetch_json(
            f"{API_BASE}{path}",
            headers=headers,
            params={**auth_params, **(params or {})},
            max_attempts=settings.tmdb_max_attempts,
            backoff=settings.tmdb_backoff_seconds,
            timeout=settings.tmdb_timeout_seconds,
            transport=self.transport,
        )

    async def search(self, query: str, year: int | None = None) -> MovieCandidate | None:
        """Return the first-ranked movie for a query, or None when nothing matches."""
        params: dict[str, Any] = {"query": query, "language": settings.tmdb_language}
        if year:
            params["year"] = year
        payload = await self._get("/search/movie", params)
        results = payload.get("results") or []
        if not results:
            return None
        first = results[0]
        if len(results) > 1:
            logger.info(
                'Multiple matches for "%s", using first: "%s" (%s). Others: %s',
                query,
                first.get("title"),
                first.get("id"),
                ", ".join(f'"{r.get("title")}" ({r.get("id")})' for r in results[1:4]),
            )
        return MovieCandidate(tmdb_id=int(first["id"]), title=first.get("title") or query)

    async def fetch_metadata(self, tmdb_id: int) -> MovieMetadata:
        movie, credits, releases = await asyncio.gather(
            self._get(f"/movie/{tmdb_id}"),
            self._get(f"/movie/{tmdb_id}/credits"),
            self._get(f"/movie/{tmdb_id}/release_dates"),
        )
        return MovieMetadata(
            tmdb_id=int(movie.get("id") or tmdb_id),
            title=movie.get("title") or UNKNOWN,
            year=release_year(movie.get("release_date")),
            director=join_directors(credits),
            tagline=movie.get("tagline") or None,
            poster_path=movie.get("poster_path") or None,
            runtime=movie.get("runtime") or 0,
            mpaa_rating=pick_certification(releases, settings.tmdb_region),
        )
