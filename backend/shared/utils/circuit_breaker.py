"""
Circuit breaker for upstream provider calls.

Wraps live-feed fetches so a provider outage fails fast and callers fall
back to stale snapshots instead of stacking timeouts.

States:
  CLOSED    normal operation, calls pass through
  OPEN      too many consecutive failures, calls are rejected
  HALF_OPEN recovery timeout elapsed, a single probe call is let through

Only failures accepted by ``trips_on`` count. By default that is every
UpstreamError except a 4xx answer, which says the request was wrong rather
than that the provider is down.
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Coroutine, Optional, TypeVar

from shared.errors import UpstreamError
from shared.utils.logging import get_logger
from shared.utils.metrics import CIRCUIT_OPEN

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised when the circuit is open and calls are being rejected."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN. Retry after {retry_after:.0f}s.")


def is_provider_outage(exc: BaseException) -> bool:
    if isinstance(exc, UpstreamError):
        return exc.status is None or not 400 <= exc.status < 500
    return False


class CircuitBreaker:
    """
    Async circuit breaker.

    Args:
        name: Identifier for logging and the circuit gauge.
        failure_threshold: Consecutive failures before opening the circuit.
        recovery_timeout_s: Seconds to wait in OPEN state before probing.
        trips_on: Decides whether an exception counts as a failure.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_s: float = 30.0,
        trips_on: Callable[[BaseException], bool] = is_provider_outage,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout_s = recovery_timeout_s
        self._trips_on = trips_on
        self._clock = clock or time.monotonic

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._rejected_count = 0
        self._opened_at: float = 0.0
        self._probe_in_flight = False
        self._lock = asyncio.Lock()
        CIRCUIT_OPEN.labels(name=name).set(0)

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooled_down():
            return CircuitState.HALF_OPEN
        return self._state

    def _cooled_down(self) -> bool:
        return self._clock() - self._opened_at >= self.recovery_timeout_s

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "rejected_count": self._rejected_count,
            "opened_ago_s": round(self._clock() - self._opened_at, 1)
            if self._state != CircuitState.CLOSED
            else None,
        }

    async def call(
        self, func: Callable[..., Coroutine[Any, Any, T]], *args: Any, **kwargs: Any
    ) -> T:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                if not self._cooled_down() or self._probe_in_flight:
                    self._rejected_count += 1
                    retry_after = self.recovery_timeout_s - (self._clock() - self._opened_at)
                    raise CircuitBreakerOpen(self.name, max(retry_after, 1.0))
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            self._abandon_probe()
            raise
        except Exception as exc:
            await self._on_failure(exc)
            raise
        await self._on_success()
        return result

    def _abandon_probe(self) -> None:
        # A cancelled probe proves nothing; the next call may probe again.
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            self._probe_in_flight = False
            logger.info("circuit_breaker_probe_cancelled", name=self.name)

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("circuit_breaker_closed", name=self.name)
                CIRCUIT_OPEN.labels(name=self.name).set(0)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._probe_in_flight = False
            self._success_count += 1

    async def _on_failure(self, exc: Exception) -> None:
        async with self._lock:
            probing = self._state == CircuitState.HALF_OPEN
            self._probe_in_flight = False
            if not self._trips_on(exc):
                # The provider answered; a probe that gets a 4xx still proves it is up.
                if probing:
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    CIRCUIT_OPEN.labels(name=self.name).set(0)
                return

            self._failure_count += 1
            if probing:
                self._open()
                logger.warning("circuit_breaker_reopened", name=self.name, error=str(exc))
            elif self._failure_count >= self.failure_threshold and self._state == CircuitState.CLOSED:
                self._open()
                logger.warning(
                    "circuit_breaker_opened",
                    name=self.name,
                    failures=self._failure_count,
                    error=str(exc),
                )

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        CIRCUIT_OPEN.labels(name=self.name).set(1)
