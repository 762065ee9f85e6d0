"""Resilience primitives for calls to flaky upstream services.

- with_timeout: bound one await; the callee is not cancelled by default
- with_retry: exponential backoff with ±25 % jitter, built on tenacity
- CircuitBreaker: stop calling an upstream that keeps failing

All durations are in seconds.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from app.core.constants import (
    BACKOFF_JITTER,
    DEFAULT_ATTEMPT_TIMEOUT,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_INITIAL_DELAY,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RESET_TIMEOUT,
)
from app.core.errors import CircuitOpenError, OperationTimeoutError, is_retryable_error
from app.core.logger import logger

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


class RetryPolicy(BaseModel):
    """How hard ``with_retry`` tries before giving up."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    initial_delay: float = Field(default=DEFAULT_INITIAL_DELAY, gt=0)
    max_delay: float = Field(default=DEFAULT_MAX_DELAY, gt=0)
    backoff_factor: float = Field(default=DEFAULT_BACKOFF_FACTOR, gt=1)
    timeout: float = Field(default=DEFAULT_ATTEMPT_TIMEOUT, ge=0, description="Per attempt; 0 disables")
    on_retry: Callable[[int, BaseException], Any] | None = None


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    rng: Callable[[], float] = random.random,
) -> float:
    """Jittered delay before retrying after the 0-indexed ``attempt``."""
    try:
        base = min(policy.initial_delay * policy.backoff_factor ** attempt, policy.max_delay)
    except OverflowError:
        base = policy.max_delay
    jitter = base * BACKOFF_JITTER * (2 * rng() - 1)
    return max(0.0, base + jitter)


async def sleep(seconds: float) -> None:
    await asyncio.sleep(max(0.0, seconds))


def _discard_outcome(task: asyncio.Future) -> None:
    # Mark a late result/exception as retrieved so asyncio doesn't warn about it.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Discarded failure of timed-out operation: {exc!r}")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    cancel_on_timeout: bool = False,
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    On timeout raises ``OperationTimeoutError`` promptly. The underlying task
    keeps running in the background unless ``cancel_on_timeout`` is set; its
    eventual outcome is discarded.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    if cancel_on_timeout:
        task.cancel()
    task.add_done_callback(_discard_outcome)
    raise OperationTimeoutError(timeout)


class _JitteredBackoff(wait_base):
    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        return compute_backoff_delay(retry_state.attempt_number - 1, self.policy)


def _before_sleep(policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        attempt = retry_state.attempt_number
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(f"Retry {attempt}/{policy.max_retries} in {delay:.2f}s: {error}")
        if policy.on_retry:
            policy.on_retry(attempt, error)

    return before_sleep


async def with_retry(operation: Operation[T], policy: RetryPolicy | None = None) -> T:
    """Run ``operation`` until it succeeds, fails non-retryably, or runs out of attempts.

    ``operation`` is a zero-argument factory called fresh for every attempt.
    At most ``max_retries + 1`` attempts run, strictly one after another; the
    error of the last attempt is the one raised.
    """
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=_JitteredBackoff(policy),
        retry=retry_if_exception(is_retryable_error),
        before_sleep=_before_sleep(policy),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            if policy.timeout > 0:
                return await with_timeout(operation(), policy.timeout)
            return await operation()


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreakerSnapshot(NamedTuple):
    state: CircuitState
    failure_count: int
    last_failure_time: float | None


class CircuitBreaker(Generic[T]):
    """Guards one upstream call site.

    Closed: calls go through ``with_retry``; every exhausted call counts as a
    failure and reaching ``failure_threshold`` opens the circuit. Open: calls
    are rejected with ``CircuitOpenError`` until ``reset_timeout`` has passed
    since the last failure. Half-open: one probe runs with the same retry
    policy; success closes the circuit, failure re-opens it. Any success
    resets the failure count.

    State changes happen between awaits, so they are atomic on the event
    loop. Callers that arrive while a half-open probe is running are
    rejected rather than piling onto a recovering upstream.
    """

    def __init__(
        self,
        operation: Operation[T] | None = None,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        reset_timeout: float = DEFAULT_RESET_TIMEOUT,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "",
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")

        self._operation = operation
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.retry_policy = retry_policy
        self.name = name
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    async def execute(self, operation: Operation[T] | None = None) -> T:
        """Run the bound operation (or ``operation`` for this call) through the breaker."""
        operation = operation or self._operation
        if operation is None:
            raise ValueError("CircuitBreaker has no operation to execute")

        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_time or 0.0)
            if elapsed < self.reset_timeout:
                raise CircuitOpenError(self.reset_timeout - elapsed, self.name)
            self._state = CircuitState.HALF_OPEN
            logger.info(f"Circuit '{self.name}' half-open — probing upstream")

        is_probe = self._state == CircuitState.HALF_OPEN
        if is_probe:
            if self._probe_in_flight:
                raise CircuitOpenError(0.0, self.name, probing=True)
            self._probe_in_flight = True

        try:
            result = await with_retry(operation, self.retry_policy)
        except Exception:
            self._record_failure()
            raise
        finally:
            if is_probe:
                self._probe_in_flight = False

        self._record_success()
        return result

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()
        if self._state != CircuitState.OPEN and self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(f"Circuit '{self.name}' opened after {self._failure_count} failures")

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit '{self.name}' closed — upstream recovered")
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def get_state(self) -> CircuitBreakerSnapshot:
        return CircuitBreakerSnapshot(self._state, self._failure_count, self._last_failure_time)

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._probe_in_flight = False
