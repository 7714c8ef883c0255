from __future__ import annotations

import logging
import re

from whodies.core.config import settings
from whodies.ingestion.base import BaseSource, ScrapedResult
from whodies.ingestion.http import ClientAPIError, request

API_BASE = "https://listofdeaths.fandom.com/api.php"
SECTION_LIMIT = 8_000
FULL_TEXT_LIMIT = 20_000

_VICTIMS_SECTION = re.compile(r"==\s*Victims?\s*==\s*\n(.*?)(?:\n==\s*[^=]|$)", re.IGNORECASE | re.DOTALL)

logger = logging.getLogger("whodies.ingestion.fandom")


def victims_section(wikitext: str) -> str | None:
    """Return the body of the `== Victims ==` section, if the page has one."""
    match = _VICTIMS_SECTION.search(wikitext)
    if not match:
        return None
    content = match.group(1).strip()
    return content if len(content) > 20 else None


class FandomSource(BaseSource):
    """List of Deaths wiki; pages carry a bulleted victim list as raw wikitext."""
    source_name = "fandom"

    def title_variants(self, title: str, year: int | None) -> list[str]:
        variants = [f"{title} ({year})"] if year else []
        variants.extend([title, f"{title} (film)"])
        return variants

    async def fetch_variant(self, variant: str) -> ScrapedResult | None:
        try:
            response = await request(
                API_BASE,
                params={"action": "parse", "page": variant, "prop": "wikitext", "format": "json"},
                headers=self.headers,
                timeout=settings.scrape_timeout_seconds,
                transport=self.transport,
            )
        except ClientAPIError as exc:
            logger.info("Fandom API returned %s for page=%r", exc.status_code, variant)
            return None
        data = response.json()
        if not isinstance(data, dict):
            logger.info("Fandom API returned a non-object payload for page=%r", variant)
            return None
        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                error = error.get("info") or error.get("code")
            logger.info("Fandom API error for page=%r: %s", variant, error)
            return None
        parsed = data.get("parse")
        wikitext_field = parsed.get("wikitext") if isinstance(parsed, dict) else None
        wikitext = wikitext_field.get("*") if isinstance(wikitext_field, dict) else None
        if not isinstance(wikitext, str) or len(wikitext) < 50:
            return None
        full_text = wikitext[:FULL_TEXT_LIMIT]
        section = victims_section(wikitext)
        if section:
            return ScrapedResult(content=section[:SECTION_LIMIT], full_text=full_text)
        lowered = wikitext.lower()
        if "killed" in lowered or "death" in lowered:
            return ScrapedResult(content=wikitext[:SECTION_LIMIT], full_text=full_text)
        return None
