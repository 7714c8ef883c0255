"""Text-generation client used for death extraction and title checks.

Only Gemini is wired up. The client talks to the REST endpoint directly and
translates HTTP outcomes into the retryable / fatal error classes below.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from whodies.core.config import settings

API_BASE = "https://generativelanguage.googleapis.com/v1beta"

logger = logging.getLogger("whodies.ingestion.llm")


class GenerationError(Exception):
    retryable = False


class GenerationRateLimitError(GenerationError):
    retryable = True


class GenerationServerError(GenerationError):
    retryable = True


class GenerationParseError(GenerationError, ValueError):
    """Model output could not be read as a death array."""
    retryable = True


class GenerationAuthError(GenerationError):
    pass


class GenerationRequestError(GenerationError):
    pass


class GenerationTimeoutError(GenerationError):
    """Retrying with the same time budget is assumed futile."""


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GenerationError) and exc.retryable


class TextGenerator(ABC):
    """Prompt in, free text out."""

    model: str

    @abstractmethod
    async def generate(self, prompt: str, *, timeout: float) -> str:
        """Return the trimmed model response for `prompt`."""


class GeminiClient(TextGenerator):
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.transport = transport

    async def generate(self, prompt: str, *, timeout: float) -> str:
        url = f"{API_BASE}/models/{self.model}:generateContent"
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.post(url, headers={"x-goog-api-key": self.api_key or ""}, json=body)
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(f"Gemini timeout after {timeout}s") from exc
        except httpx.TransportError as exc:
            raise GenerationServerError(f"Gemini connection error: {exc}") from exc

        status = response.status_code
        if status == 429:
            raise GenerationRateLimitError("Gemini rate limited (429)")
        if status >= 500:
            raise GenerationServerError(f"Gemini server error ({status})")
        if status in (401, 403):
            raise GenerationAuthError(f"Gemini rejected credentials ({status})")
        if status >= 400:
            raise GenerationRequestError(f"Gemini rejected request ({status}): {response.text[:200]}")

        try:
            payload = response.json()
            parts = ((payload.get("candidates") or [{}])[0].get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts).strip()
        except (ValueError, AttributeError, IndexError, KeyError, TypeError) as exc:
            raise GenerationParseError(f"Gemini returned an unreadable envelope: {response.text[:200]}") from exc
        if not text:
            raise GenerationParseError("Gemini returned empty response")
        return text


def get_generator() -> TextGenerator | None:
    """The configured generation service, or None when no API key is set."""
    if not settings.generation_configured:
        return None
    return GeminiClient()


async def is_real_movie_title(query: str, generator: TextGenerator | None) -> bool:
    """Best-effort yes/no check; any failure counts as a yes."""
    if generator is None:
        return True
    prompt = f"Is '{query}' a real movie title? Answer with only YES or NO."
    try:
        answer = await generator.generate(prompt, timeout=settings.llm_validation_timeout_seconds)
    except GenerationError as exc:
        logger.info("Title validation skipped for %r: %s", query, exc)
        return True
    verdict = answer.strip().upper()
    logger.info("Title validation for %r: %s", query, verdict)
    return verdict.startswith("YES")
