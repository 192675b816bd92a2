"""
Retry helpers shared by routes, services and adapters.

Two flavours:

* ``with_connection_retry`` re-runs a database operation when the failure
  looks like a lost or exhausted connection, with a capped exponential delay.
* ``retry_with_backoff`` re-runs a call to an external API when the failure
  looks transient (rate limiting, overload, 5xx, timeouts).
"""

import asyncio
import errno
import logging
import random
import re
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONNECTION_ERROR_PATTERNS = [
    re.compile(p)
    for p in (
        r"connection.*pool",
        r"timeout.*connection",
        r"failed.*connect",
        r"econnrefused",
        r"etimedout",
        r"connection.*terminated",
        r"too.*many.*connections",
        r"timed out",
        r"could not acquire",
        r"query.*timeout",
    )
]

_CONNECTION_EXCEPTIONS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
    ConnectionError,
    TimeoutError,
)

TRANSIENT_API_MARKERS = (
    "rate_limit",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "overloaded",
    "connection",
    "timeout",
    "timed out",
)

MAX_CONNECTION_DELAY = 5.0


class ConnectionRetryError(Exception):
    """A database operation kept failing with connection errors."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Database connection failed after {attempts} attempts: {last_error}")


def is_connection_error(exc: BaseException | None) -> bool:
    """Return True when *exc* looks like a lost, refused or exhausted DB connection."""
    if exc is None:
        return False
    if isinstance(exc, _CONNECTION_EXCEPTIONS):
        return True
    if isinstance(exc, OSError) and exc.errno in (errno.ECONNREFUSED, errno.ETIMEDOUT):
        return True
    message = str(exc).lower()
    return any(p.search(message) for p in CONNECTION_ERROR_PATTERNS)


def connection_retry_delay(attempt: int) -> float:
    """Seconds to wait before retry number *attempt* (1-based)."""
    delay = 0.25 * (1.5 ** min(attempt, 6)) * (0.5 + random.random())
    return min(delay, MAX_CONNECTION_DELAY)


async def with_connection_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
) -> T:
    """
    Await ``operation()`` and retry it on connection errors.

    Non-connection errors propagate immediately. After *max_retries* failed
    attempts a ConnectionRetryError wraps the last error.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            attempt += 1
            if not is_connection_error(e):
                raise
            if attempt >= max_retries:
                logger.error("Database connection retries exhausted after %d attempts: %s", attempt, e)
                raise ConnectionRetryError(attempt, e) from e
            delay = connection_retry_delay(attempt)
            logger.warning(
                "Database connection error (attempt %d/%d), retrying in %.2fs: %s",
                attempt, max_retries, delay, e,
            )
            await asyncio.sleep(delay)


def is_transient_api_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_API_MARKERS)


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> T:
    """Retry an async API call with exponential backoff and jitter."""
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if not is_transient_api_error(e) or attempt == max_retries:
                raise
            delay = base_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.warning(
                "Transient API error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1, max_retries, delay, e,
            )
            await asyncio.sleep(delay)
