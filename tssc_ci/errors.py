"""Error taxonomy shared by all CI adaptors."""

from collections.abc import Collection
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import aiohttp


class CIError(RuntimeError):
    """Base class for errors raised by CI adaptors."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ConfigError(CIError):
    """Missing or invalid configuration, including integration secrets."""


class NotFoundError(CIError):
    """Unknown job, pipeline, run or resource."""


class AuthError(CIError):
    """Credentials were rejected by the remote API."""


class RateLimitError(CIError):
    """The remote API asked us to slow down."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.retry_after = retry_after


class TransientError(CIError):
    """Server-side or transport failure that is expected to clear up."""


class InvalidRequestError(CIError):
    """The remote API rejected the request itself (4xx other than auth/404/429)."""


class ExhaustedError(CIError):
    """The retry kernel ran out of attempts."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_value: Any = None,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_value = last_value
        self.last_error = last_error


class PollTimeoutError(CIError, TimeoutError):
    """Wall-clock budget of a poll was exceeded.

    ``last_value`` holds whatever the last successful attempt returned, e.g.
    the last observed Run, so callers can report partial progress.
    """

    def __init__(
        self,
        message: str,
        *,
        context: str,
        elapsed: float,
        attempts: int,
        last_value: Any = None,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.context = context
        self.elapsed = elapsed
        self.attempts = attempts
        self.last_value = last_value
        self.last_error = last_error


class AccountingError(CIError):
    """Cancellation results did not add up to the number of candidates."""


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def error_for_status(
    status: int, message: str, *, retry_after: float | None = None
) -> CIError:
    """Map an HTTP status code onto the error taxonomy."""
    if status in (401, 403):
        return AuthError(message, status=status)
    if status == 404:
        return NotFoundError(message, status=status)
    if status == 429:
        return RateLimitError(message, status=status, retry_after=retry_after)
    if status >= 500:
        return TransientError(message, status=status)
    return InvalidRequestError(message, status=status)


async def raise_for_status(
    response: aiohttp.ClientResponse,
    action: str,
    expected: Collection[int] = (200,),
) -> None:
    """Raise the classified error unless the response status is expected."""
    if response.status in expected:
        return
    text = await response.text()
    raise error_for_status(
        response.status,
        f"Failed to {action}: {response.status} {text}",
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
    )


def is_retryable(exc: BaseException) -> bool:
    """Whether the retry kernel should absorb the error and try again."""
    if isinstance(exc, PollTimeoutError):
        return False
    return isinstance(
        exc,
        TransientError
        | RateLimitError
        | aiohttp.ClientConnectionError
        | aiohttp.ServerTimeoutError
        | aiohttp.ClientPayloadError
        | TimeoutError,
    )
