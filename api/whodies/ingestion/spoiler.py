from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from whodies.core.config import settings
from whodies.ingestion.base import BaseSource, ScrapedResult
from whodies.ingestion.http import ClientAPIError, request
from whodies.utils.slugify import title_slug_variants

SITE_BASE = "https://themoviespoiler.com/movies"
HTML_LIMIT = 500_000
SECTION_LIMIT = 8_000
FULL_TEXT_LIMIT = 20_000
CHROME_SELECTOR = "nav, header, footer, script, style, .sidebar, .comments"
CONTENT_SELECTORS = (".entry-content", "article", ".post-content")

logger = logging.getLogger("whodies.ingestion.spoiler")


def spoiler_paragraphs(html: str) -> list[str]:
    """Pull the story paragraphs out of a spoiler page, skipping site chrome."""
    soup = BeautifulSoup(html[:HTML_LIMIT], "html.parser")
    for element in soup.select(CHROME_SELECTOR):
        element.decompose()
    content = None
    for selector in CONTENT_SELECTORS:
        content = soup.select_one(selector)
        if content is not None:
            break
    if content is None:
        return []
    paragraphs = [p.get_text().strip() for p in content.find_all("p")]
    return [text for text in paragraphs if len(text) > 20]


class MovieSpoilerSource(BaseSource):
    """The Movie Spoiler; plain HTML pages addressed by title slug."""
    source_name = "spoiler"

    def title_variants(self, title: str, year: int | None) -> list[str]:
        return title_slug_variants(title, year)

    async def fetch_variant(self, variant: str) -> ScrapedResult | None:
        try:
            response = await request(
                f"{SITE_BASE}/{variant}",
                headers=self.headers,
                timeout=settings.scrape_timeout_seconds,
                transport=self.transport,
                follow_redirects=True,
            )
        except ClientAPIError as exc:
            logger.info("Movie Spoiler returned %s for slug=%r", exc.status_code, variant)
            return None
        paragraphs = spoiler_paragraphs(response.text)
        if not paragraphs:
            return None
        combined = "\n\n".join(paragraphs)
        return ScrapedResult(content=combined[:SECTION_LIMIT], full_text=combined[:FULL_TEXT_LIMIT])
