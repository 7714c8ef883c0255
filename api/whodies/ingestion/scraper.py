"""Gather death information for one movie from the ranked scrape sources."""

from __future__ import annotations

import functools
import logging
from typing import Callable, Sequence

from whodies.ingestion import PLOT_SOURCES, get_source
from whodies.ingestion.base import BaseSource, ScrapedContent, ScrapedResult
from whodies.ingestion.disambiguation import validate
from whodies.ingestion.http import ExternalAPIError
from whodies.ingestion.observability import CircuitOpenError, SourceMonitor, source_monitor
from whodies.ingestion.wikitext import parse_victims

Validator = Callable[[str, int, str], bool]

logger = logging.getLogger("whodies.ingestion.scraper")


class DeathScraper:
    """Victim list from the wiki first, then the first plot source that validates.

    Plot sources are consulted lazily in order and the chain stops at the
    first one whose page passes disambiguation.
    """

    def __init__(
        self,
        *,
        victims_source: BaseSource | None = None,
        plot_sources: Sequence[BaseSource] | None = None,
        validator: Validator = validate,
        monitor: SourceMonitor | None = None,
    ) -> None:
        self.victims_source = victims_source or get_source("fandom")
        self.plot_sources = (
            list(plot_sources) if plot_sources is not None else [get_source(name) for name in PLOT_SOURCES]
        )
        self.validator = validator
        self.monitor = monitor or source_monitor

    async def fetch_first(self, source: BaseSource, title: str, year: int) -> ScrapedResult | None:
        """Try each title spelling until one yields content; errors move on to the next spelling."""
        for variant in source.title_variants(title, year or None):
            logger.info("Trying %s page=%r", source.source_name, variant)
            try:
                result = await self.monitor.track(
                    source.source_name,
                    functools.partial(source.fetch_variant, variant),
                    context={"variant": variant},
                )
            except CircuitOpenError:
                return None
            except ExternalAPIError as exc:
                logger.info("%s error for page=%r: %s", source.source_name, variant, exc)
                continue
            except Exception as exc:
                logger.warning("%s unreadable response for page=%r: %r", source.source_name, variant, exc)
                continue
            if result is not None:
                return result
        return None

    async def fetch_validated(
        self, source: BaseSource, title: str, year: int, director: str
    ) -> ScrapedResult | None:
        result = await self.fetch_first(source, title, year)
        if result is None:
            return None
        if self.validator(result.full_text, year, director):
            logger.info("Accepted %s content (%d chars)", source.source_name, len(result.content))
            return result
        logger.info("Rejected %s content for %r: wrong movie", source.source_name, title)
        await self.monitor.record_rejection(source.source_name, context={"title": title, "year": year})
        return None

    async def scrape(self, title: str, year: int, director: str) -> ScrapedContent:
        scraped = ScrapedContent()

        victims = await self.fetch_validated(self.victims_source, title, year, director)
        if victims:
            scraped.wiki_content = victims.content
            scraped.parsed_deaths = parse_victims(victims.content)
            logger.info("Parsed %d deaths from wikitext", len(scraped.parsed_deaths))

        for source in self.plot_sources:
            plot = await self.fetch_validated(source, title, year, director)
            if plot:
                scraped.plot_summary = plot.content
                break

        if not scraped.has_any_content:
            logger.info('No death data found from any source for "%s"', title)
        return scraped
