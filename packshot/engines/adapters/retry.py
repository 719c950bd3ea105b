"""
Retry loop shared by the external service adapters.

Up to `max_attempts` independent attempts; before attempt n+1 the caller
blocks for `base_delay * n` seconds. The wait is interruptible through a
CancellationToken.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from packshot.core.exceptions import PipelineCancelledError, ServiceError
from packshot.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Lets a caller abort a running invocation, including backoff waits."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self, stage: Optional[str] = None):
        if self.cancelled:
            raise PipelineCancelledError(stage=stage)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def delay_after(self, attempt: int) -> float:
        """Backoff before the attempt following `attempt` (1-based)."""
        return self.base_delay * attempt


class RetryExhausted(Exception):
    """Every attempt failed; carries the last ServiceError."""

    def __init__(self, last_error: ServiceError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"{last_error.message} (after {attempts} attempts)")


def call_with_retries(
    operation: Callable[[], T],
    policy: RetryPolicy,
    service: str,
    token: Optional[CancellationToken] = None,
) -> T:
    """
    Run `operation` until it succeeds or the policy is exhausted.

    Only ServiceError is retried, and only when it is marked retryable.
    Raises RetryExhausted when giving up, PipelineCancelledError if the
    token fires.
    """
    token = token or CancellationToken()
    last_error: Optional[ServiceError] = None
    attempt = 0

    for attempt in range(1, policy.max_attempts + 1):
        token.raise_if_cancelled()
        logger.info(f"{service}_attempt", attempt=attempt, max_attempts=policy.max_attempts)

        try:
            return operation()
        except ServiceError as e:
            last_error = e
            logger.warning(
                f"{service}_attempt_failed",
                attempt=attempt,
                error=e.message,
                http_status=e.http_status,
                retryable=e.retryable
            )
            if not e.retryable:
                break

        if attempt < policy.max_attempts:
            if token.wait(policy.delay_after(attempt)):
                raise PipelineCancelledError(f"Cancelled while waiting to retry {service}")

    raise RetryExhausted(last_error, attempt)
