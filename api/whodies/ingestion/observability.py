"""Per-source call metrics and circuit breaking for scrape sources."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, DefaultDict

logger = logging.getLogger("whodies.ingestion")


class CircuitOpenError(Exception):
    """Raised when a source is cooling down after repeated failures."""


@dataclass
class CircuitBreakerState:
    threshold: int = 5
    base_backoff_seconds: float = 30.0
    max_backoff_seconds: float = 600.0
    failure_streak: int = 0
    open_until: float = 0.0
    current_backoff: float = field(init=False)
    opened_count: int = 0

    def __post_init__(self) -> None:
        self.current_backoff = self.base_backoff_seconds

    def can_call(self) -> bool:
        return time.monotonic() >= self.open_until

    def remaining_cooldown(self) -> float:
        if self.can_call():
            return 0.0
        return self.open_until - time.monotonic()

    def record_success(self) -> None:
        self.failure_streak = 0
        self.open_until = 0.0
        self.current_backoff = self.base_backoff_seconds

    def record_failure(self) -> None:
        """Open the circuit once the streak hits the threshold, doubling the cooldown each time."""
        self.failure_streak += 1
        if self.failure_streak < self.threshold:
            return
        self.open_until = time.monotonic() + self.current_backoff
        self.failure_streak = 0
        self.opened_count += 1
        self.current_backoff = min(self.current_backoff * 2, self.max_backoff_seconds)

    def snapshot(self) -> dict[str, Any]:
        return {
            "failure_streak": self.failure_streak,
            "remaining_cooldown": round(self.remaining_cooldown(), 2),
            "current_backoff": self.current_backoff,
            "opened_count": self.opened_count,
        }


@dataclass
class SourceMetrics:
    attempts: int = 0
    hits: int = 0
    misses: int = 0
    errors: int = 0
    rejected: int = 0
    skipped: int = 0
    last_latency_ms: float | None = None
    last_error: str | None = None


class SourceMonitor:
    """Track scrape outcomes per source and short-circuit sources that keep erroring.

    A miss (page absent) is not a failure; only raised errors feed the circuit.
    """

    def __init__(
        self,
        *,
        circuit_threshold: int = 5,
        base_backoff_seconds: float = 30.0,
        max_backoff_seconds: float = 600.0,
    ) -> None:
        self._metrics: DefaultDict[str, SourceMetrics] = defaultdict(SourceMetrics)
        self._circuits: DefaultDict[str, CircuitBreakerState] = defaultdict(
            lambda: CircuitBreakerState(
                threshold=circuit_threshold,
                base_backoff_seconds=base_backoff_seconds,
                max_backoff_seconds=max_backoff_seconds,
            )
        )
        self._lock = asyncio.Lock()

    def allow_call(self, source: str) -> bool:
        return self._circuits[source].can_call()

    async def track(
        self,
        source: str,
        func: Callable[[], Awaitable[Any]],
        *,
        context: dict[str, Any] | None = None,
    ) -> Any:
        context = context or {}
        async with self._lock:
            circuit = self._circuits[source]
            if not circuit.can_call():
                remaining = circuit.remaining_cooldown()
                self._metrics[source].skipped += 1
                logger.warning(
                    json.dumps(
                        {
                            "event": "scrape_circuit_open",
                            "source": source,
                            "context": context,
                            "remaining_cooldown": round(remaining, 2),
                        }
                    )
                )
                raise CircuitOpenError(f"{source} circuit open for {remaining:.2f}s")
            self._metrics[source].attempts += 1

        start = time.monotonic()
        try:
            result = await func()
        except Exception as exc:
            latency_ms = (time.monotonic() - start) * 1000
            async with self._lock:
                metrics = self._metrics[source]
                metrics.errors += 1
                metrics.last_latency_ms = latency_ms
                metrics.last_error = str(exc)
                self._circuits[source].record_failure()
                payload = {
                    "event": "scrape_error",
                    "source": source,
                    "error": str(exc),
                    "latency_ms": round(latency_ms, 2),
                    "context": context,
                    "circuit": self._circuits[source].snapshot(),
                }
            logger.warning(json.dumps(payload))
            raise

        latency_ms = (time.monotonic() - start) * 1000
        async with self._lock:
            metrics = self._metrics[source]
            if result is None:
                metrics.misses += 1
            else:
                metrics.hits += 1
            metrics.last_latency_ms = latency_ms
            self._circuits[source].record_success()
        logger.debug(
            json.dumps(
                {
                    "event": "scrape_hit" if result is not None else "scrape_miss",
                    "source": source,
                    "latency_ms": round(latency_ms, 2),
                    "context": context,
                }
            )
        )
        return result

    async def record_rejection(self, source: str, *, context: dict[str, Any] | None = None) -> None:
        """Count content that was fetched but failed disambiguation."""
        async with self._lock:
            self._metrics[source].rejected += 1
        logger.info(json.dumps({"event": "scrape_rejected", "source": source, "context": context or {}}))

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {
                source: {
                    "circuit": self._circuits[source].snapshot(),
                    "attempts": metrics.attempts,
                    "hits": metrics.hits,
                    "misses": metrics.misses,
                    "errors": metrics.errors,
                    "rejected": metrics.rejected,
                    "skipped": metrics.skipped,
                    "last_latency_ms": metrics.last_latency_ms,
                    "last_error": metrics.last_error,
                }
                for source, metrics in self._metrics.items()
            }


source_monitor = SourceMonitor()
