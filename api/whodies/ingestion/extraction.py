"""Turn scraped content into the final death list.

Paths, in order of preference:
- parsed victim list with no plot summary: returned as-is;
- parsed list plus plot: the model enriches every listed death;
- narrative text only: the model extracts the list from scratch;
- no content at all: an empty list (a movie where nobody dies).
"""

from __future__ import annotations

import logging

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from whodies.core.config import settings
from whodies.ingestion.base import ExtractedDeath, ScrapedContent
from whodies.ingestion.http import fixed_backoff
from whodies.ingestion.llm import GenerationError, TextGenerator, is_retryable
from whodies.ingestion.repair import parse_death_array

ENRICHMENT_PLOT_LIMIT = 4_000
EXTRACTION_TEXT_LIMIT = 6_000

logger = logging.getLogger("whodies.ingestion.extraction")


class ExtractionError(Exception):
    """Extraction failed and there was no parsed list to fall back on."""


def build_enrichment_prompt(title: str, scraped: ScrapedContent) -> str:
    death_summary = "\n".join(
        f"{index}. {death.character} - {death.cause}" for index, death in enumerate(scraped.parsed_deaths, start=1)
    )
    return f"""Here are the character deaths from the movie "{title}":

DEATH LIST:
{death_summary}

PLOT SUMMARY:
{scraped.plot_summary[:ENRICHMENT_PLOT_LIMIT]}

For EACH death listed above, provide additional details from the plot summary.
Return ONLY a valid JSON array with one object per death. Each object must have:
- character (string): exact character name from the death list
- timeOfDeath (string): when in the movie (e.g. "Opening scene", "Act 2", "Final act", "~45 minutes in"). Use "Unknown" only if truly unclear
- cause (string): how they died (from the death list)
- killedBy (string): who/what killed them. Use "N/A" for accidents/natural causes
- context (string): 1-2 sentence summary of the circumstances from the plot
- isAmbiguous (boolean): true if death is off-screen/uncertain/only mentioned

You MUST include ALL {len(scraped.parsed_deaths)} deaths. Do not skip any.
Return ONLY valid JSON. No other text."""


def build_extraction_prompt(title: str, content: str) -> str:
    return f"""Extract ALL character deaths from this text about the movie "{title}".
Return ONLY a valid JSON array of objects. Each object must have these exact fields:
- character (string): character name
- timeOfDeath (string): when they died (e.g. "Opening scene", "Act 2", "Final act")
- cause (string): how they died
- killedBy (string): who killed them (use "N/A" if not applicable)
- context (string): 1-2 sentence summary
- isAmbiguous (boolean): true if death is unclear/off-screen

Example format:
[{{"character":"John","timeOfDeath":"Act 3","cause":"Gunshot","killedBy":"Villain","context":"Shot during the final battle.","isAmbiguous":false}}]

If no deaths, return: []
Return ONLY valid JSON. No other text.

Text:
{content[:EXTRACTION_TEXT_LIMIT]}"""


def enrichment_is_truncated(enriched: list[ExtractedDeath], parsed: list[ExtractedDeath]) -> bool:
    return len(enriched) < len(parsed) * settings.enrichment_min_ratio


async def extract_deaths(
    title: str, scraped: ScrapedContent, generator: TextGenerator | None
) -> list[ExtractedDeath]:
    parsed = scraped.parsed_deaths
    has_plot = bool(scraped.plot_summary.strip())

    if not scraped.has_any_content and not parsed:
        logger.info("No content to extract deaths from; recording a zero-death movie")
        return []
    if parsed and not has_plot:
        logger.info("Using %d parsed deaths (no plot summary for enrichment)", len(parsed))
        return parsed
    if generator is None:
        logger.info("No generation service configured; using %d parsed deaths", len(parsed))
        return parsed

    enriching = bool(parsed)
    prompt = (
        build_enrichment_prompt(title, scraped)
        if enriching
        else build_extraction_prompt(title, scraped.plot_summary or scraped.wiki_content)
    )

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.llm_max_attempts),
            wait=fixed_backoff(settings.llm_backoff_seconds),
            retry=retry_if_exception(is_retryable),
            before_sleep=lambda state: logger.warning(
                "Generation attempt %d/%d failed (%s), retrying",
                state.attempt_number,
                settings.llm_max_attempts,
                state.outcome.exception() if state.outcome else "error",
            ),
            reraise=True,
        ):
            with attempt:
                logger.info(
                    "Calling %s for death %s (attempt %d/%d)",
                    generator.model,
                    "enrichment" if enriching else "extraction",
                    attempt.retry_state.attempt_number,
                    settings.llm_max_attempts,
                )
                raw = await generator.generate(prompt, timeout=settings.llm_extraction_timeout_seconds)
                logger.debug("Raw generation output (first 300 chars): %s", raw[:300])
                deaths = parse_death_array(raw)
    except Exception as exc:
        if parsed:
            logger.warning("Generation failed (%s); falling back to %d parsed deaths", exc, len(parsed))
            return parsed
        if isinstance(exc, GenerationError):
            raise ExtractionError(f"LLM extraction failed after all attempts: {exc}") from exc
        raise

    logger.info("Generation returned %d deaths", len(deaths))
    if enriching and enrichment_is_truncated(deaths, parsed):
        returned = {death.character for death in deaths}
        dropped = [death.character for death in parsed if death.character not in returned]
        logger.warning(
            "Enrichment dropped deaths (%d vs %d parsed); using parsed list. Dropped: %s",
            len(deaths),
            len(parsed),
            ", ".join(dropped),
        )
        return parsed
    return deaths
