"""Bounded retry policy for racing browser interactions."""
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from pricing_import.errors.exceptions import InvalidConfiguration

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_PATTERNS: Tuple[str, ...] = (
    r"Execution context was destroyed",
    r"Target page, context or browser has been closed",
    r"Timeout",
)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "page_operation_retry",
        attempt=retry_state.attempt_number,
        error=str(error).splitlines()[0] if error else None,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Retries an operation only when its error message looks transient.

    Attributes:
        max_attempts: Total attempts including the first one
        retryable_patterns: Regexes matched case-insensitively against the error message
        wait_seconds: Pause between attempts
    """

    max_attempts: int = 3
    retryable_patterns: Tuple[str, ...] = DEFAULT_RETRYABLE_PATTERNS
    wait_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidConfiguration(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.wait_seconds < 0:
            raise InvalidConfiguration(f"wait_seconds must be >= 0, got {self.wait_seconds}")

    def is_retryable(self, error: BaseException) -> bool:
        message = str(error)
        return any(re.search(pattern, message, re.IGNORECASE) for pattern in self.retryable_patterns)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await ``operation()``, retrying retryable failures.

        Non-retryable errors propagate immediately; the last error propagates
        once attempts are exhausted.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception(self.is_retryable),
            wait=wait_fixed(self.wait_seconds),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await operation()
        raise AssertionError("unreachable")  # pragma: no cover
