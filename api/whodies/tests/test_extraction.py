"""Extraction fallback chain and generation retry behaviour."""

from __future__ import annotations

import json

import httpx
import pytest

from whodies.core.config import settings
from whodies.ingestion.base import ExtractedDeath, ScrapedContent
from whodies.ingestion.extraction import ExtractionError, build_enrichment_prompt, extract_deaths
from whodies.ingestion.llm import (
    GeminiClient,
    GenerationAuthError,
    GenerationRateLimitError,
    GenerationServerError,
    GenerationTimeoutError,
)
from whodies.tests.utils import FakeGenerator

PARSED = [
    ExtractedDeath(character=name, cause="Eaten by the shark", killed_by="the shark")
    for name in ("Chrissie", "Alex", "Ben", "Quint", "Pipit")
]
PLOT = "Chief Brody tries to close the beaches of Amity Island after a shark attack. " * 5


def _payload(names: list[str]) -> str:
    return json.dumps(
        [
            {
                "character": name,
                "timeOfDeath": "Act 1",
                "cause": "Eaten by the shark",
                "killedBy": "the shark",
                "context": f"{name} dies in the water.",
                "isAmbiguous": False,
            }
            for name in names
        ]
    )


@pytest.mark.asyncio
async def test_no_content_returns_empty_without_generation() -> None:
    generator = FakeGenerator("[]")
    assert await extract_deaths("Jaws", ScrapedContent(), generator) == []
    assert generator.prompts == []


@pytest.mark.asyncio
async def test_parsed_list_without_plot_skips_generation() -> None:
    generator = FakeGenerator("[]")
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list")

    assert await extract_deaths("Jaws", scraped, generator) == PARSED
    assert generator.prompts == []


@pytest.mark.asyncio
async def test_no_generator_falls_back_to_parsed_or_empty() -> None:
    with_parsed = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)
    plot_only = ScrapedContent(plot_summary=PLOT)

    assert await extract_deaths("Jaws", with_parsed, None) == PARSED
    assert await extract_deaths("Jaws", plot_only, None) == []


@pytest.mark.asyncio
async def test_enrichment_replaces_parsed_list() -> None:
    names = [death.character for death in PARSED]
    generator = FakeGenerator(_payload(names))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    deaths = await extract_deaths("Jaws", scraped, generator)

    assert [death.time_of_death for death in deaths] == ["Act 1"] * 5
    assert "You MUST include ALL 5 deaths" in generator.prompts[0]


@pytest.mark.asyncio
async def test_truncated_enrichment_keeps_parsed_list() -> None:
    generator = FakeGenerator(_payload(["Chrissie", "Alex", "Ben"]))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    assert await extract_deaths("Jaws", scraped, generator) == PARSED


@pytest.mark.asyncio
async def test_enrichment_at_threshold_is_accepted() -> None:
    generator = FakeGenerator(_payload(["Chrissie", "Alex", "Ben", "Quint"]))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    deaths = await extract_deaths("Jaws", scraped, generator)
    assert len(deaths) == 4


@pytest.mark.asyncio
async def test_full_extraction_retries_parse_failures() -> None:
    generator = FakeGenerator("I could not find any deaths, sorry", GenerationServerError("503"), _payload(["Quint"]))

    deaths = await extract_deaths("Jaws", ScrapedContent(plot_summary=PLOT), generator)

    assert [death.character for death in deaths] == ["Quint"]
    assert len(generator.prompts) == 3
    assert generator.prompts[0].startswith('Extract ALL character deaths from this text about the movie "Jaws"')


@pytest.mark.asyncio
async def test_exhausted_retries_with_parsed_list_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "llm_max_attempts", 3)
    generator = FakeGenerator(GenerationRateLimitError("429"))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    assert await extract_deaths("Jaws", scraped, generator) == PARSED
    assert len(generator.prompts) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_without_parsed_list_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "llm_max_attempts", 2)
    generator = FakeGenerator("not json")

    with pytest.raises(ExtractionError):
        await extract_deaths("Jaws", ScrapedContent(plot_summary=PLOT), generator)
    assert len(generator.prompts) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [GenerationAuthError("401"), GenerationTimeoutError("slow")])
async def test_non_retryable_errors_stop_immediately(error: Exception) -> None:
    generator = FakeGenerator(error)

    with pytest.raises(ExtractionError):
        await extract_deaths("Jaws", ScrapedContent(plot_summary=PLOT), generator)
    assert len(generator.prompts) == 1


def test_enrichment_prompt_caps_plot_length() -> None:
    scraped = ScrapedContent(parsed_deaths=list(PARSED), plot_summary="p" * 10_000)
    prompt = build_enrichment_prompt("Jaws", scraped)

    assert "p" * 4_000 in prompt
    assert "p" * 4_001 not in prompt
    assert "1. Chrissie - Eaten by the shark" in prompt


@pytest.mark.asyncio
async def test_unreadable_gemini_envelope_falls_back_to_parsed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "llm_max_attempts", 2)
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text="<html>proxy error</html>")

    generator = GeminiClient(api_key="test-key", model="gemini-test", transport=httpx.MockTransport(handler))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    assert await extract_deaths("Jaws", scraped, generator) == PARSED
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_unexpected_generator_failure_falls_back_to_parsed() -> None:
    generator = FakeGenerator(RuntimeError("client bug"))
    scraped = ScrapedContent(parsed_deaths=list(PARSED), wiki_content="* list", plot_summary=PLOT)

    assert await extract_deaths("Jaws", scraped, generator) == PARSED
    assert len(generator.prompts) == 1

    with pytest.raises(RuntimeError):
        await extract_deaths("Jaws", ScrapedContent(plot_summary=PLOT), FakeGenerator(RuntimeError("client bug")))
