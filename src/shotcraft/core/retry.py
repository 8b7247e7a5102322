"""Bounded retry with exponential backoff, written as a small state machine.

A call moves through four phases::

    ATTEMPTING --success--> SUCCEEDED
    ATTEMPTING --failure--> BACKING_OFF      (retryable, attempts remain)
    ATTEMPTING --failure--> FAILED_TERMINAL  (otherwise)
    BACKING_OFF --sleep---> ATTEMPTING       (attempt + 1)

The failure transition is looked up in :data:`_FAILURE_TRANSITIONS`, keyed by
``(error is retryable, attempts remaining)``.  Backoff happens only on the
way back to ``ATTEMPTING``, so there is never a trailing sleep after the last
attempt.

Delay before the retry that follows attempt ``n`` (0-based)::

    min(base_delay_ms * 2 ** n, max_delay_ms)

Usage
-----
::

    policy = RetryPolicy(
        max_attempts=3,
        base_delay_ms=2000,
        max_delay_ms=10000,
        retry_on=(UpstreamRateLimitError,),
    )
    result = await run_with_retry(lambda: client.generate(request), policy)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class RetryPhase(str, Enum):
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"


# (retryable, attempts_remaining) -> next phase
_FAILURE_TRANSITIONS: dict[tuple[bool, bool], RetryPhase] = {
    (True, True): RetryPhase.BACKING_OFF,
    (True, False): RetryPhase.FAILED_TERMINAL,
    (False, True): RetryPhase.FAILED_TERMINAL,
    (False, False): RetryPhase.FAILED_TERMINAL,
}


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and which failures justify another attempt.

    Attributes:
        max_attempts: Total attempts including the first (>= 1).
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Cap on any single delay.
        retry_on: Exception classes that may be retried.  An empty tuple
            makes the policy single-shot.
    """

    max_attempts: int = 1
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    retry_on: tuple[type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be non-negative")

    def delay_ms(self, attempt: int) -> int:
        """Return the backoff delay that follows the failed ``attempt``."""
        return min(self.base_delay_ms * (2**attempt), self.max_delay_ms)

    def is_retryable(self, error: BaseException) -> bool:
        return bool(self.retry_on) and isinstance(error, self.retry_on)


SINGLE_ATTEMPT = RetryPolicy(max_attempts=1)


@dataclass
class RetryState:
    """Mutable per-call progress through the retry phases."""

    policy: RetryPolicy
    attempt: int = 0
    phase: RetryPhase = RetryPhase.ATTEMPTING
    last_error: BaseException | None = None
    delays_ms: list[int] = field(default_factory=list)

    @property
    def attempts_made(self) -> int:
        return self.attempt + 1

    @property
    def attempts_remaining(self) -> int:
        return self.policy.max_attempts - self.attempts_made

    def record_success(self) -> RetryPhase:
        self._expect(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.SUCCEEDED
        return self.phase

    def record_failure(self, error: BaseException) -> RetryPhase:
        """Apply the failure transition and return the new phase."""
        self._expect(RetryPhase.ATTEMPTING)
        self.last_error = error
        key = (self.policy.is_retryable(error), self.attempts_remaining > 0)
        self.phase = _FAILURE_TRANSITIONS[key]
        return self.phase

    def next_delay_ms(self) -> int:
        self._expect(RetryPhase.BACKING_OFF)
        return self.policy.delay_ms(self.attempt)

    def resume(self, delay_ms: int) -> RetryPhase:
        """Leave BACKING_OFF after sleeping ``delay_ms``."""
        self._expect(RetryPhase.BACKING_OFF)
        self.delays_ms.append(delay_ms)
        self.attempt += 1
        self.phase = RetryPhase.ATTEMPTING
        return self.phase

    def _expect(self, phase: RetryPhase) -> None:
        if self.phase is not phase:
            raise RuntimeError(f"Invalid retry transition from {self.phase.value}")


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleeper = asyncio.sleep,
    label: str = "model call",
    state: RetryState | None = None,
) -> T:
    """Run ``operation`` under ``policy``.

    Args:
        operation: Zero-argument coroutine factory.  It is called once per
            attempt and must not mutate its inputs between attempts.
        policy: Retry policy to apply.
        sleep: Async sleeper taking seconds.  Tests pass a recorder.
        label: Name used in log messages.
        state: Optional pre-built state, exposed so callers can inspect the
            attempt count and delays afterwards.

    Returns:
        The first successful result.

    Raises:
        The last error once the state machine reaches FAILED_TERMINAL.
    """
    state = state if state is not None else RetryState(policy)

    while True:
        try:
            result = await operation()
        except Exception as exc:
            phase = state.record_failure(exc)
            if phase is RetryPhase.FAILED_TERMINAL:
                logger.error(
                    f"{label} failed after {state.attempts_made} attempt(s): "
                    f"{type(exc).__name__}: {exc}"
                )
                raise

            delay_ms = state.next_delay_ms()
            logger.warning(
                f"{label} attempt {state.attempts_made}/{policy.max_attempts} failed "
                f"({type(exc).__name__}); retrying in {delay_ms} ms"
            )
            await sleep(delay_ms / 1000)
            state.resume(delay_ms)
            continue

        state.record_success()
        if state.attempt:
            logger.info(f"{label} succeeded on attempt {state.attempts_made}")
        return result
