"""
Resilience patterns module.

Components:
    - RetryPolicy: Attempt bound and backoff configuration
    - RetryExecutor: Runs one remote call with cancellation-aware backoff
    - backoff_delay: Fixed / linear / exponential delay computation
"""

from .retry import (
    DEFAULT_RETRY,
    RetryExecutor,
    RetryPolicy,
    backoff_delay,
)

__all__ = [
    "DEFAULT_RETRY",
    "RetryExecutor",
    "RetryPolicy",
    "backoff_delay",
]
