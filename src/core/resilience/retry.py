"""
Retry executor with status-aware handling.

Uses the client error hierarchy to make retry decisions:
- Rate limited (429) and server errors (>=500): retry with backoff
- Any other status, or no status at all: fail immediately
- Cancelled context: stop immediately, also during the backoff wait
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from core.context import OperationContext
from core.errors.classifiers import classify
from core.errors.exceptions import ClientError, UnknownError
from core.types import BackoffKind

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 0.5

Operation = Callable[[], Awaitable[ClientError | None]]


def backoff_delay(
    base_delay: float,
    max_delay: float,
    kind: BackoffKind,
    attempt: int,
) -> float:
    """
    Delay in seconds to wait after a failed attempt.

    Args:
        base_delay: Base delay; non-positive values fall back to 0.5s
        max_delay: Upper bound; 0 or less means unbounded
        kind: Growth strategy
        attempt: 1-based attempt that just failed

    Returns:
        Delay in seconds
    """
    if base_delay <= 0:
        base_delay = DEFAULT_BASE_DELAY
    attempt = max(attempt, 1)

    if kind is BackoffKind.LINEAR:
        delay = attempt * base_delay
    elif kind is BackoffKind.EXPONENTIAL:
        delay = (2 ** (attempt - 1)) * base_delay
    else:
        delay = base_delay

    if max_delay > 0:
        delay = min(delay, max_delay)
    return delay


def _coerce_backoff(value: Any) -> BackoffKind:
    if isinstance(value, BackoffKind):
        return value
    try:
        return BackoffKind(str(value).lower())
    except ValueError as e:
        valid = ", ".join(k.value for k in BackoffKind)
        raise ValueError(f"backoff must be one of {valid}, got '{value}'") from e


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior. Read once per process."""

    max_attempts: int = 1
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = 0.0
    backoff: BackoffKind = BackoffKind.FIXED

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        object.__setattr__(self, "max_attempts", int(self.max_attempts))
        object.__setattr__(self, "base_delay", float(self.base_delay))
        object.__setattr__(self, "max_delay", float(self.max_delay))
        object.__setattr__(self, "backoff", _coerce_backoff(self.backoff))

    @property
    def effective_attempts(self) -> int:
        return max(self.max_attempts, 1)

    def get_delay(self, attempt: int) -> float:
        return backoff_delay(self.base_delay, self.max_delay, self.backoff, attempt)


DEFAULT_RETRY = RetryPolicy()


def _log_retry_attempt(
    operation: str,
    attempt: int,
    policy: RetryPolicy,
    delay: float,
    error: ClientError,
) -> None:
    logger.warning(
        "Retryable error for %s, will retry",
        operation,
        extra={
            "operation": operation,
            "attempt": attempt,
            "max_attempts": policy.effective_attempts,
            "error_category": error.kind.value,
            "status_code": error.status_code,
            "delay_seconds": round(delay, 2),
            "delay_source": policy.backoff.value,
            "error_message": str(error)[:200],
        },
    )


def _log_retry_failure(
    operation: str,
    attempt: int,
    policy: RetryPolicy,
    error: ClientError,
) -> None:
    extra = {
        "operation": operation,
        "attempt": attempt,
        "max_attempts": policy.effective_attempts,
        "error_category": error.kind.value,
        "status_code": error.status_code,
        "error_message": str(error)[:200],
    }
    if not error.is_retryable:
        logger.debug("Permanent error for %s, not retrying", operation, extra=extra)
        return
    logger.warning("Max retries exhausted for %s", operation, extra=extra)


class RetryExecutor:
    """
    Runs one remote call with bounded attempts and backoff.

    The operation returns None on success or a ClientError on failure;
    it never raises for expected failures. execute() returns the final
    error (or None) together with the number of attempts used.
    """

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or DEFAULT_RETRY

    async def execute(
        self,
        ctx: OperationContext,
        op: Operation | None,
        operation: str = "remote_call",
    ) -> tuple[ClientError | None, int]:
        if op is None:
            return UnknownError("operation cannot be None"), 1

        max_attempts = self.policy.effective_attempts
        for attempt in range(1, max_attempts + 1):
            if ctx.done():
                return classify(ctx.error()), attempt

            error = await op()
            if error is None:
                if attempt > 1:
                    logger.info(
                        "Retry succeeded for %s after %d attempts",
                        operation,
                        attempt,
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "total_attempts": max_attempts,
                        },
                    )
                return None, attempt

            if attempt == max_attempts or not error.is_retryable:
                _log_retry_failure(operation, attempt, self.policy, error)
                return error, attempt

            delay = self.policy.get_delay(attempt)
            _log_retry_attempt(operation, attempt, self.policy, delay, error)

            if not await ctx.sleep(delay):
                return classify(ctx.error()), attempt

        # Unreachable: the loop always returns on its last attempt
        return UnknownError("retry loop exited without a result"), max_attempts


__all__ = [
    "DEFAULT_RETRY",
    "Operation",
    "RetryExecutor",
    "RetryPolicy",
    "backoff_delay",
]
