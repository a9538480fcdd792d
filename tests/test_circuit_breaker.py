"""Tests for the per-model circuit breaker, driven by a fake clock."""

import pytest

from docnex.ai.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
    breaker_status,
    get_breaker,
    reset_all,
)
from docnex.exceptions import ErrorCode


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def breaker(clock):
    return CircuitBreaker("gemini/gemini-2.5-flash", failure_threshold=3, cooldown_seconds=60, clock=clock)


def _fail(breaker, times):
    for _ in range(times):
        breaker.record_failure()


class TestCircuitBreaker:

    def test_two_failures_keep_it_closed(self, breaker):
        _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        breaker.check()

    def test_third_failure_opens(self, breaker, clock):
        _fail(breaker, 3)
        assert breaker.state == CircuitState.OPEN

        clock.now += 15
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            breaker.check()
        assert exc_info.value.retry_after == pytest.approx(45)
        assert exc_info.value.details == {"endpoint": "gemini/gemini-2.5-flash", "retry_after": 45}

    def test_open_error_is_not_retryable(self, breaker):
        _fail(breaker, 3)
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            breaker.check()
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == ErrorCode.AI_SERVICE_ERROR

    def test_success_clears_the_streak(self, breaker):
        _fail(breaker, 2)
        breaker.record_success()
        _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    def test_trial_call_after_cooldown_closes_on_success(self, breaker, clock):
        _fail(breaker, 3)
        clock.now += 60
        breaker.check()
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.snapshot() == {"state": "closed", "failures": 0}

    def test_failed_trial_call_reopens_for_a_full_cooldown(self, breaker, clock):
        _fail(breaker, 3)
        clock.now += 61
        breaker.check()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        clock.now += 59
        with pytest.raises(CircuitBreakerOpen):
            breaker.check()
        clock.now += 1
        breaker.check()
        assert breaker.state == CircuitState.HALF_OPEN


class TestRegistry:

    def test_one_breaker_per_model(self):
        assert get_breaker("gemini/a") is get_breaker("gemini/a")
        assert get_breaker("gemini/a") is not get_breaker("gemini/b")

    def test_status_and_reset(self):
        get_breaker("gemini/a").record_failure()
        get_breaker("gemini/b")
        assert breaker_status() == {
            "gemini/a": {"state": "closed", "failures": 1},
            "gemini/b": {"state": "closed", "failures": 0},
        }
        reset_all()
        assert breaker_status() == {}
