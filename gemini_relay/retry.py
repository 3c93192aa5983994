"""Retry logic with exponential backoff and jitter for backend calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from google.genai import errors as genai_errors

from .errors import RelayError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_DELAY = 0.5
DEFAULT_MAX_DELAY = 10.0

# Last-resort vocabulary for errors that carry no structured status. This is a
# heuristic: an unrelated message containing one of these words is retried too.
TRANSIENT_PATTERNS = (
    "429",
    "rate limit",
    "resource exhausted",
    "unavailable",
    "temporarily",
    "timeout",
    "deadline exceeded",
    "connection reset",
    "eof",
)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds

    @classmethod
    def from_config(cls, config: Any) -> "RetryPolicy":
        """Build a policy from a config exposing max_retries/initial_backoff/max_backoff."""
        return cls(
            max_attempts=config.max_retries + 1,
            initial_delay=config.initial_backoff,
            max_delay=config.max_backoff,
        )

    @property
    def attempts(self) -> int:
        return self.max_attempts if self.max_attempts > 0 else 1


class TransientError(Exception):
    """
    Marker for failures that should always be retried.

    Operations passed to ``execute_with_retry`` may raise it (or a subclass)
    when they detect a transient condition the classifier cannot see, such as
    a response that came back empty while the backend was warming up.
    """


def compute_backoff(
    policy: RetryPolicy,
    attempt: int,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay in seconds before retry number ``attempt`` (0-indexed).

    ``min(max_delay, initial_delay * 2**attempt)`` scaled by a jitter factor
    drawn uniformly from [0.5, 1.5].
    """
    base = policy.initial_delay if policy.initial_delay > 0 else DEFAULT_INITIAL_DELAY
    cap = policy.max_delay if policy.max_delay > 0 else DEFAULT_MAX_DELAY
    # Large exponents would overflow the float multiply; the cap applies long before
    delay = min(cap, base * (2 ** min(attempt, 62)))
    return delay * (0.5 + rand())


def is_retryable_error(error: BaseException) -> bool:
    """
    Determine if an error is transient and should be retried.

    Structured signals are checked first (cancellation, relay errors, network
    exceptions, backend status codes); message matching is only a fallback.

    Args:
        error: Exception to check

    Returns:
        True if error is transient, False otherwise
    """
    if error is None:
        return False

    # The caller gave up; retrying is wasted work
    if isinstance(error, asyncio.CancelledError):
        return False

    # Validation and not-found errors are definitive
    if isinstance(error, RelayError):
        return False

    if isinstance(error, TransientError):
        return True

    # Network-level failures
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    # Backend status codes
    if isinstance(error, genai_errors.APIError):
        code = error.code or 0
        return code == 429 or 500 <= code <= 599

    message = str(error).lower()
    return any(pattern in message for pattern in TRANSIENT_PATTERNS)


def _raise_if_cancelling() -> None:
    task = asyncio.current_task()
    if task is not None and task.cancelling():
        raise asyncio.CancelledError()


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    op_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await ``operation()`` with bounded exponential-backoff retries.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        policy: Retry policy (attempt budget and delays)
        is_retryable: Classifier, defaults to ``is_retryable_error``
        op_name: Operation name used in log messages
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result from the first successful attempt

    Raises:
        Exception: The operation's error when it is not retryable or the final
            attempt fails. ``asyncio.CancelledError`` when the awaiting task is
            cancelled, including during a backoff sleep.
    """
    classify = is_retryable or is_retryable_error
    max_attempts = policy.attempts

    for attempt in range(max_attempts):
        if attempt > 0:
            _raise_if_cancelling()

        try:
            result = await operation()
        except Exception as e:
            if not classify(e) or attempt == max_attempts - 1:
                raise
            last_error = e
        else:
            if attempt > 0:
                logger.info("%s succeeded after %d attempt(s)", op_name, attempt + 1)
            return result

        delay = compute_backoff(policy, attempt)
        logger.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.2fs",
            op_name,
            attempt + 1,
            max_attempts,
            last_error,
            delay,
        )
        await sleep(delay)

    raise RuntimeError(f"{op_name}: retry attempts exhausted")
