"""Tests for shotcraft.core.retry — retry state machine and backoff."""

from __future__ import annotations

import asyncio

import pytest

from shotcraft.core.errors import ResponseFormatError, UpstreamRateLimitError
from shotcraft.core.retry import (
    SINGLE_ATTEMPT,
    RetryPhase,
    RetryPolicy,
    RetryState,
    run_with_retry,
)

RATE_LIMIT_POLICY = RetryPolicy(
    max_attempts=5,
    base_delay_ms=1000,
    max_delay_ms=10000,
    retry_on=(UpstreamRateLimitError,),
)


class Flaky:
    """Operation that fails ``failures`` times before returning ``"ok"``."""

    def __init__(self, failures: int, error_factory=lambda: UpstreamRateLimitError("429")):
        self.failures = failures
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return "ok"


class TestRetryPolicy:
    def test_delay_doubles_until_cap(self):
        assert [RATE_LIMIT_POLICY.delay_ms(n) for n in range(6)] == [
            1000,
            2000,
            4000,
            8000,
            10000,
            10000,
        ]

    def test_two_second_base(self):
        policy = RetryPolicy(max_attempts=3, base_delay_ms=2000, max_delay_ms=10000)
        assert [policy.delay_ms(n) for n in range(4)] == [2000, 4000, 8000, 10000]

    def test_single_attempt_retries_nothing(self):
        assert SINGLE_ATTEMPT.is_retryable(UpstreamRateLimitError("429")) is False

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryState:
    def test_retryable_with_attempts_left_backs_off(self):
        state = RetryState(RATE_LIMIT_POLICY)
        assert state.record_failure(UpstreamRateLimitError("429")) is RetryPhase.BACKING_OFF
        assert state.next_delay_ms() == 1000
        assert state.resume(1000) is RetryPhase.ATTEMPTING
        assert state.attempt == 1

    def test_non_retryable_is_terminal(self):
        state = RetryState(RATE_LIMIT_POLICY)
        assert state.record_failure(ResponseFormatError("bad")) is RetryPhase.FAILED_TERMINAL

    def test_last_attempt_is_terminal(self):
        state = RetryState(RetryPolicy(max_attempts=1, retry_on=(UpstreamRateLimitError,)))
        assert state.record_failure(UpstreamRateLimitError("429")) is RetryPhase.FAILED_TERMINAL

    def test_success_after_terminal_is_invalid(self):
        state = RetryState(SINGLE_ATTEMPT)
        state.record_failure(ResponseFormatError("bad"))
        with pytest.raises(RuntimeError):
            state.record_success()


class TestRunWithRetry:
    def test_success_first_try_never_sleeps(self, sleeper):
        op = Flaky(failures=0)
        assert asyncio.run(run_with_retry(op, RATE_LIMIT_POLICY, sleep=sleeper)) == "ok"
        assert op.calls == 1
        assert sleeper.delays == []

    def test_recovers_after_failures(self, sleeper):
        op = Flaky(failures=2)
        state = RetryState(RATE_LIMIT_POLICY)
        result = asyncio.run(run_with_retry(op, RATE_LIMIT_POLICY, sleep=sleeper, state=state))
        assert result == "ok"
        assert op.calls == 3
        assert sleeper.delays_ms == [1000, 2000]
        assert state.phase is RetryPhase.SUCCEEDED
        assert state.delays_ms == [1000, 2000]

    def test_exhaustion_makes_max_attempts_and_no_trailing_sleep(self, sleeper):
        op = Flaky(failures=100)
        with pytest.raises(UpstreamRateLimitError):
            asyncio.run(run_with_retry(op, RATE_LIMIT_POLICY, sleep=sleeper))
        assert op.calls == 5
        # One sleep between each pair of attempts, none after the last.
        assert sleeper.delays_ms == [1000, 2000, 4000, 8000]
        assert sleeper.delays == sorted(sleeper.delays)

    def test_non_retryable_error_stops_immediately(self, sleeper):
        op = Flaky(failures=100, error_factory=lambda: ResponseFormatError("bad json"))
        with pytest.raises(ResponseFormatError):
            asyncio.run(run_with_retry(op, RATE_LIMIT_POLICY, sleep=sleeper))
        assert op.calls == 1
        assert sleeper.delays == []

    def test_cap_applies_to_long_runs(self, sleeper):
        policy = RetryPolicy(
            max_attempts=8,
            base_delay_ms=2000,
            max_delay_ms=10000,
            retry_on=(UpstreamRateLimitError,),
        )
        with pytest.raises(UpstreamRateLimitError):
            asyncio.run(run_with_retry(Flaky(failures=100), policy, sleep=sleeper))
        assert max(sleeper.delays_ms) == 10000
        assert sleeper.delays == sorted(sleeper.delays)
