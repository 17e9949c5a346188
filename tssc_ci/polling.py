"""Bounded, jittered polling shared by every CI adaptor.

Every wait in the package goes through :func:`run_until`. A step reports
what happened through a :data:`RetryDecision` instead of raising to ask for
another attempt:

- ``Done(value)`` ends the poll with ``value``;
- ``KeepWaiting(...)`` schedules another attempt after a backoff delay;
- ``GiveUp(...)`` stops immediately.

Retryable exceptions raised by a step (see :func:`tssc_ci.errors.is_retryable`)
are absorbed as ``KeepWaiting``; anything else propagates unchanged.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tssc_ci.errors import (
    ExhaustedError,
    PollTimeoutError,
    RateLimitError,
    is_retryable,
)

log = logging.getLogger(__name__)

PIPELINE_TIMEOUT = 35 * 60


@dataclass(frozen=True, kw_only=True)
class RetryPolicy:
    """Parameters of one retry site.

    Delays follow ``min(max_delay, min_delay * factor ** (n - 1))`` and are
    scaled by a random factor within ``1 +/- jitter``, never exceeding
    ``max_delay``. ``max_attempts=None`` bounds the poll by ``timeout`` only.
    """

    max_attempts: int | None = 10
    min_delay: float = 2.0
    max_delay: float = 15.0
    factor: float = 1.5
    timeout: float = 600.0
    jitter: float = 0.2

    @classmethod
    def fixed(
        cls,
        interval: float,
        *,
        timeout: float,
        max_attempts: int | None = None,
    ) -> "RetryPolicy":
        """Policy polling at a constant interval without jitter."""
        return cls(
            max_attempts=max_attempts,
            min_delay=interval,
            max_delay=interval,
            factor=1.0,
            timeout=timeout,
            jitter=0.0,
        )

    def backoff(self, attempt: int) -> float:
        """Delay after the given 1-based attempt, before jitter."""
        return min(self.max_delay, self.min_delay * self.factor ** (attempt - 1))

    def delay(self, attempt: int) -> float:
        delay = self.backoff(attempt)
        if self.jitter:
            delay *= random.uniform(1 - self.jitter, 1 + self.jitter)
        return min(self.max_delay, delay)


DEFAULT_POLICY = RetryPolicy()


@dataclass(frozen=True)
class Done[T]:
    """The poll is over and produced ``value``."""

    value: T


@dataclass(frozen=True)
class KeepWaiting[T]:
    """Try again later; ``last`` is remembered for timeout reporting."""

    reason: str = ""
    last: T | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class GiveUp:
    """Stop polling now, raising ``error`` if given."""

    reason: str
    error: BaseException | None = None


type RetryDecision[T] = Done[T] | KeepWaiting[T] | GiveUp

type RetryObserver = Callable[[BaseException | None, int], object]


def _notify(
    on_retry: RetryObserver | None, error: BaseException | None, attempt: int
) -> None:
    if on_retry is None:
        return
    try:
        on_retry(error, attempt)
    except Exception:
        # Observers are diagnostics only.
        log.debug("on_retry observer failed", exc_info=True)


async def run_until[T](
    step: Callable[[], Awaitable[RetryDecision[T]]],
    policy: RetryPolicy = DEFAULT_POLICY,
    *,
    context: str = "poll",
    on_retry: RetryObserver | None = None,
) -> T:
    """Run ``step`` until it returns ``Done``.

    Args:
        step: Coroutine function returning a retry decision
        policy: Attempts, delays and wall-clock budget
        context: Description used in log lines and errors
        on_retry: Observer called with (error, attempt) before each delay

    Returns:
        The value carried by the first ``Done`` decision

    Raises:
        PollTimeoutError: If the wall-clock budget is exceeded
        ExhaustedError: If ``max_attempts`` is reached or the step gives up
            without an error of its own

    """
    loop = asyncio.get_event_loop()
    started = loop.time()
    deadline = started + policy.timeout
    attempt = 0
    last: T | None = None

    while True:
        attempt += 1
        try:
            decision = await step()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            decision = KeepWaiting(reason=str(exc), error=exc)

        if isinstance(decision, Done):
            return decision.value

        if isinstance(decision, GiveUp):
            log.info("%s: giving up (%s)", context, decision.reason)
            if decision.error is not None:
                raise decision.error
            raise ExhaustedError(
                f"{context}: gave up after {attempt} attempt(s): {decision.reason}",
                attempts=attempt,
                last_value=last,
            )

        if decision.last is not None:
            last = decision.last
        _notify(on_retry, decision.error, attempt)

        if policy.max_attempts is not None and attempt >= policy.max_attempts:
            raise ExhaustedError(
                f"{context}: no result after {attempt} attempt(s): {decision.reason}",
                attempts=attempt,
                last_value=last,
                last_error=decision.error,
            )

        now = loop.time()
        if now >= deadline:
            elapsed = now - started
            raise PollTimeoutError(
                f"{context}: timed out after {elapsed:.1f}s "
                f"({attempt} attempt(s)): {decision.reason}",
                context=context,
                elapsed=elapsed,
                attempts=attempt,
                last_value=last,
                last_error=decision.error,
            )

        delay = policy.delay(attempt)
        if (
            isinstance(decision.error, RateLimitError)
            and decision.error.retry_after is not None
        ):
            delay = decision.error.retry_after
        log.debug(
            "%s: attempt %d not done (%s), retrying in %.2fs",
            context,
            attempt,
            decision.reason,
            delay,
        )
        await asyncio.sleep(min(delay, deadline - now))


async def poll[T](
    attempt: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    policy: RetryPolicy = DEFAULT_POLICY,
    *,
    context: str = "poll",
    on_retry: RetryObserver | None = None,
) -> T:
    """Call ``attempt`` until ``predicate`` holds for its result.

    The predicate only sees successful results. A predicate that raises is
    treated like one that returned False.
    """

    async def step() -> RetryDecision[T]:
        value = await attempt()
        try:
            satisfied = predicate(value)
        except Exception as exc:
            return KeepWaiting(
                reason=f"predicate failed: {exc}", last=value, error=exc
            )
        if satisfied:
            return Done(value)
        return KeepWaiting(reason="condition not met", last=value)

    return await run_until(step, policy, context=context, on_retry=on_retry)
