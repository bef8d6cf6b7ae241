"""
Tests for status-aware retry with backoff.

Review checklist:
    [x] Attempts never exceed max_attempts
    [x] Non-retryable errors short-circuit
    [x] Backoff is monotonic and capped
    [x] Cancellation during the backoff wait stops immediately
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.context import OperationContext
from core.errors.exceptions import (
    GenericError,
    InterruptedOperationError,
    StructuredError,
    UnknownError,
)
from core.resilience.retry import (
    DEFAULT_RETRY,
    RetryExecutor,
    RetryPolicy,
    backoff_delay,
)
from core.types import BackoffKind


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_default_values(self):
        """Test default configuration values."""
        assert DEFAULT_RETRY.max_attempts == 1
        assert DEFAULT_RETRY.base_delay == 0.5
        assert DEFAULT_RETRY.max_delay == 0.0
        assert DEFAULT_RETRY.backoff is BackoffKind.FIXED

    def test_type_conversion_from_strings(self):
        """Test that policy handles string inputs (e.g., from YAML)."""
        policy = RetryPolicy(
            max_attempts="3", base_delay="0.25", max_delay="10", backoff="Exponential"
        )
        assert policy.max_attempts == 3
        assert policy.base_delay == 0.25
        assert policy.max_delay == 10.0
        assert policy.backoff is BackoffKind.EXPONENTIAL

    def test_invalid_backoff(self):
        """Unknown backoff names are rejected."""
        with pytest.raises(ValueError, match="backoff must be one of"):
            RetryPolicy(backoff="random")

    def test_effective_attempts_at_least_one(self):
        """Zero or negative attempts still make one call."""
        assert RetryPolicy(max_attempts=0).effective_attempts == 1
        assert RetryPolicy(max_attempts=-3).effective_attempts == 1

    def test_frozen(self):
        """Policies are immutable."""
        with pytest.raises(AttributeError):
            DEFAULT_RETRY.max_attempts = 5


class TestBackoffDelay:
    """Tests for backoff_delay()."""

    def test_fixed(self):
        """Fixed backoff always waits base_delay."""
        assert [backoff_delay(1.0, 0, BackoffKind.FIXED, n) for n in (1, 2, 3)] == [1.0, 1.0, 1.0]

    def test_linear(self):
        """Linear backoff grows by base_delay per attempt."""
        assert [backoff_delay(1.0, 0, BackoffKind.LINEAR, n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_exponential(self):
        """Exponential backoff doubles per attempt."""
        assert [backoff_delay(1.0, 0, BackoffKind.EXPONENTIAL, n) for n in (1, 2, 3, 4)] == [
            1.0,
            2.0,
            4.0,
            8.0,
        ]

    def test_cap(self):
        """max_delay caps the computed delay."""
        assert backoff_delay(1.0, 5.0, BackoffKind.EXPONENTIAL, 10) == 5.0

    def test_non_positive_base_uses_default(self):
        """A base delay of 0 falls back to 0.5s."""
        assert backoff_delay(0, 0, BackoffKind.FIXED, 1) == 0.5

    @pytest.mark.parametrize("kind", list(BackoffKind))
    def test_monotonic_and_bounded(self, kind):
        """Delays never decrease and never exceed the cap."""
        delays = [backoff_delay(0.3, 4.0, kind, n) for n in range(1, 12)]
        assert delays == sorted(delays)
        assert all(0 < d <= 4.0 for d in delays)


class TestRetryExecutor:
    """Tests for RetryExecutor.execute()."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """A successful op is called once."""
        op = AsyncMock(return_value=None)
        err, attempts = await RetryExecutor(RetryPolicy(max_attempts=3)).execute(
            OperationContext(), op
        )
        assert err is None
        assert attempts == 1
        assert op.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        """Retryable errors are retried until success."""
        op = AsyncMock(side_effect=[GenericError("x", 503), GenericError("x", 429), None])
        policy = RetryPolicy(max_attempts=5, base_delay=0.001)
        err, attempts = await RetryExecutor(policy).execute(OperationContext(), op)
        assert err is None
        assert attempts == 3
        assert op.await_count == 3

    @pytest.mark.asyncio
    async def test_attempts_bounded(self):
        """A persistently failing op is called exactly max_attempts times."""
        failure = GenericError("x", 500)
        op = AsyncMock(return_value=failure)
        policy = RetryPolicy(max_attempts=4, base_delay=0.001)
        err, attempts = await RetryExecutor(policy).execute(OperationContext(), op)
        assert err is failure
        assert attempts == 4
        assert op.await_count == 4

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        """max_attempts=1 never retries."""
        op = AsyncMock(return_value=GenericError("x", 500))
        err, attempts = await RetryExecutor().execute(OperationContext(), op)
        assert attempts == 1
        assert op.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [
            GenericError("x", 400),
            GenericError("x", 404),
            StructuredError(title="bad", status=422),
            UnknownError("connection reset"),
        ],
    )
    async def test_non_retryable_short_circuits(self, failure):
        """Permanent errors return after one attempt without sleeping."""
        op = AsyncMock(return_value=failure)
        ctx = OperationContext()
        ctx.sleep = AsyncMock(return_value=True)
        err, attempts = await RetryExecutor(RetryPolicy(max_attempts=5)).execute(ctx, op)
        assert err is failure
        assert attempts == 1
        ctx.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sleeps_with_backoff_between_attempts(self):
        """The executor waits policy.get_delay(attempt) between attempts."""
        op = AsyncMock(return_value=GenericError("x", 500))
        ctx = OperationContext()
        ctx.sleep = AsyncMock(return_value=True)
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, backoff="linear")
        await RetryExecutor(policy).execute(ctx, op)
        assert [c.args[0] for c in ctx.sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        """Cancelling during the wait returns Interrupted with no further call."""
        ctx = OperationContext()
        op = AsyncMock(return_value=GenericError("x", 503))
        asyncio.get_running_loop().call_later(0.01, ctx.cancel)
        policy = RetryPolicy(max_attempts=5, base_delay=30.0)
        err, attempts = await asyncio.wait_for(
            RetryExecutor(policy).execute(ctx, op), timeout=2
        )
        assert isinstance(err, InterruptedOperationError)
        assert attempts == 1
        assert op.await_count == 1

    @pytest.mark.asyncio
    async def test_done_context_makes_no_call(self):
        """An already cancelled context never invokes the op."""
        ctx = OperationContext()
        ctx.cancel()
        op = AsyncMock(return_value=None)
        err, attempts = await RetryExecutor().execute(ctx, op)
        assert isinstance(err, InterruptedOperationError)
        op.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_operation(self):
        """A missing op is an UnknownError."""
        err, attempts = await RetryExecutor().execute(OperationContext(), None)
        assert isinstance(err, UnknownError)
        assert attempts == 1
