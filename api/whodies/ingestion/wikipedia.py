from __future__ import annotations

import logging

from bs4 import BeautifulSoup
from bs4.element import Tag

from whodies.core.config import settings
from whodies.ingestion.base import BaseSource, ScrapedResult
from whodies.ingestion.http import ClientAPIError, request

API_BASE = "https://en.wikipedia.org/w/api.php"
EXTRACT_LIMIT = 100_000
SECTION_LIMIT = 8_000
FULL_TEXT_LIMIT = 20_000

logger = logging.getLogger("whodies.ingestion.wikipedia")


def plot_section(soup: BeautifulSoup) -> str:
    """Join the paragraphs between the first Plot heading and the next heading."""
    header = next(
        (h for h in soup.find_all(["h2", "h3"]) if "plot" in h.get_text().lower()),
        None,
    )
    if header is None:
        return ""
    paragraphs: list[str] = []
    for sibling in header.find_next_siblings():
        if not isinstance(sibling, Tag):
            continue
        if sibling.name in {"h2", "h3"}:
            break
        if sibling.name == "p":
            paragraphs.append(sibling.get_text().strip())
    return "\n\n".join(paragraphs)


class WikipediaSource(BaseSource):
    """English Wikipedia; the plot section narrates deaths in prose."""
    source_name = "wikipedia"

    def title_variants(self, title: str, year: int | None) -> list[str]:
        variants = [f"{title} ({year} film)"] if year else []
        variants.extend([f"{title} (film)", title])
        return variants

    async def fetch_variant(self, variant: str) -> ScrapedResult | None:
        try:
            response = await request(
                API_BASE,
                params={
                    "action": "query",
                    "titles": variant,
                    "prop": "extracts",
                    "exsectionformat": "plain",
                    "format": "json",
                },
                headers=self.headers,
                timeout=settings.scrape_timeout_seconds,
                transport=self.transport,
            )
        except ClientAPIError as exc:
            logger.info("Wikipedia API returned %s for page=%r", exc.status_code, variant)
            return None
        data = response.json()
        query = data.get("query") if isinstance(data, dict) else None
        pages = query.get("pages") if isinstance(query, dict) else None
        page = next(iter(pages.values()), None) if isinstance(pages, dict) else None
        extract = page.get("extract") if isinstance(page, dict) else None
        if not isinstance(extract, str) or not extract or "missing" in page:
            logger.info("Wikipedia page not found: %r", variant)
            return None

        soup = BeautifulSoup(extract[:EXTRACT_LIMIT], "html.parser")
        full_text = soup.get_text().strip()[:FULL_TEXT_LIMIT]
        plot = plot_section(soup)
        if len(plot) > 100:
            return ScrapedResult(content=plot[:SECTION_LIMIT], full_text=full_text)
        if len(full_text) > 200:
            logger.info("Wikipedia page %r has no Plot section, using full extract", variant)
            return ScrapedResult(content=full_text[:SECTION_LIMIT], full_text=full_text)
        return None
