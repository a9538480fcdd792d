"""Fail-fast guard around each model name.

Three consecutive failed completions open the circuit for that model;
while open, ``check()`` raises ``CircuitBreakerOpen`` (a 503 that the
client must not retry) without contacting the provider. Once the
cooldown has passed a single trial call is allowed: success closes the
circuit, failure re-opens it for another cooldown.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict

from ..exceptions import AIServiceError

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_COOLDOWN_SECONDS = 60


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(AIServiceError):
    def __init__(self, endpoint: str, retry_after: float):
        super().__init__(f"AI provider '{endpoint}' is temporarily disabled. Retry after {retry_after:.0f}s.")
        self.endpoint = endpoint
        self.retry_after = retry_after
        self.retryable = False
        self.details = {"endpoint": endpoint, "retry_after": round(retry_after)}


class CircuitBreaker:
    """Consecutive-failure counter with an open/half-open cycle."""

    def __init__(
        self,
        endpoint: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoint = endpoint
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    def _move(self, new_state: CircuitState, reason: str) -> None:
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "Circuit %s: %s -> %s (%s)", self.endpoint, self._state.name, new_state.name, reason,
            extra={"model": self.endpoint, "failures": self._failures},
        )
        self._state = new_state

    def check(self) -> None:
        with self._lock:
            if self._state is not CircuitState.OPEN:
                return
            remaining = self._opened_at + self.cooldown_seconds - self._clock()
            if remaining > 0:
                raise CircuitBreakerOpen(self.endpoint, remaining)
            self._move(CircuitState.HALF_OPEN, "cooldown expired")

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            if self._state is not CircuitState.CLOSED:
                self._move(CircuitState.CLOSED, "trial call succeeded")

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN:
                self._opened_at = self._clock()
                self._move(CircuitState.OPEN, "trial call failed")
            elif self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold:
                self._opened_at = self._clock()
                self._move(CircuitState.OPEN, f"{self._failures} consecutive failures")

    def snapshot(self) -> dict:
        with self._lock:
            return {"state": self._state.value, "failures": self._failures}


_breakers: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_breaker(endpoint: str) -> CircuitBreaker:
    """The shared breaker for *endpoint* (a model name), created on first use."""
    with _registry_lock:
        return _breakers.setdefault(endpoint, CircuitBreaker(endpoint))


def breaker_status() -> Dict[str, dict]:
    with _registry_lock:
        breakers = list(_breakers.values())
    return {breaker.endpoint: breaker.snapshot() for breaker in breakers}


def reset_all() -> None:
    with _registry_lock:
        _breakers.clear()
