from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

logger = logging.getLogger("whodies.ingestion.http")


class ExternalAPIError(Exception):
    pass


class TransientAPIError(ExternalAPIError):
    """Rate limiting, 5xx, timeouts, and connection failures."""


class ClientAPIError(ExternalAPIError):
    """Non-retryable 4xx responses."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(Exception):
    """Required configuration is missing; retrying cannot help."""


def fixed_backoff(delays: Sequence[float]) -> Callable[[RetryCallState], float]:
    """Wait strategy that walks a fixed schedule, repeating the last delay."""

    def _wait(retry_state: RetryCallState) -> float:
        if not delays:
            return 0.0
        index = min(retry_state.attempt_number - 1, len(delays) - 1)
        return float(delays[index])

    return _wait


def raise_for_status(response: httpx.Response, *, label: str) -> None:
    status = response.status_code
    if status == 429 or status >= 500:
        raise TransientAPIError(f"{label} HTTP {status}")
    if status >= 400:
        raise ClientAPIError(f"{label} HTTP {status}: {response.reason_phrase}", status)


async def request(
    url: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_body: dict[str, Any] | None = None,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
    follow_redirects: bool = False,
) -> httpx.Response:
    """Issue one request, mapping transport failures onto the error taxonomy."""
    try:
        async with httpx.AsyncClient(
            timeout=timeout, transport=transport, follow_redirects=follow_redirects
        ) as client:
            response = await client.request(method, url, headers=headers, params=params, json=json_body)
    except httpx.TimeoutException as exc:
        raise TransientAPIError(f"Timeout after {timeout}s for {url}") from exc
    except httpx.TransportError as exc:
        raise TransientAPIError(f"Connection error for {url}: {exc}") from exc
    raise_for_status(response, label=url)
    return response


async def fetch_json(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    max_attempts: int = 3,
    backoff: Sequence[float] = (2.0, 4.0, 8.0),
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """GET a JSON document, retrying transient failures on a fixed schedule."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=fixed_backoff(backoff),
        retry=retry_if_exception_type(TransientAPIError),
        before_sleep=lambda state: logger.warning(
            "Retrying %s after %s (attempt %d/%d)",
            url,
            state.outcome.exception() if state.outcome else "error",
            state.attempt_number,
            max_attempts,
        ),
        reraise=True,
    ):
        with attempt:
            response = await request(url, headers=headers, params=params, timeout=timeout, transport=transport)
            return response.json()
    raise ExternalAPIError("Unreachable")
