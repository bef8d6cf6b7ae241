"""
Tests for the cancellable operation context.
"""

import asyncio

import pytest

from core.context import OperationContext
from core.errors.exceptions import ContextCancelled, ContextDeadlineExceeded


class TestOperationContext:
    """Test cancellation, deadlines and parent/child propagation."""

    def test_initial_state(self):
        """A fresh context is not done and has no error."""
        ctx = OperationContext()
        assert ctx.done() is False
        assert ctx.error() is None

    def test_cancel(self):
        """cancel() marks the context done with ContextCancelled."""
        ctx = OperationContext()
        ctx.cancel()
        assert ctx.done() is True
        assert isinstance(ctx.error(), ContextCancelled)

    def test_cancel_is_idempotent(self):
        """A second cancel keeps the first error."""
        ctx = OperationContext()
        ctx.cancel()
        first = ctx.error()
        ctx.cancel()
        assert ctx.error() is first

    @pytest.mark.asyncio
    async def test_deadline_expires(self):
        """A timeout ends the context with ContextDeadlineExceeded."""
        ctx = OperationContext(timeout=0.01)
        await asyncio.wait_for(ctx.wait(), timeout=1)
        assert isinstance(ctx.error(), ContextDeadlineExceeded)

    @pytest.mark.asyncio
    async def test_zero_timeout_disables_deadline(self):
        """A timeout of 0 never expires."""
        ctx = OperationContext().with_timeout(0)
        await asyncio.sleep(0.02)
        assert ctx.done() is False

    @pytest.mark.asyncio
    async def test_parent_cancel_propagates(self):
        """Cancelling a parent ends its children with the same error."""
        parent = OperationContext()
        child = parent.with_timeout(10)
        parent.cancel()
        assert child.done() is True
        assert child.error() is parent.error()

    @pytest.mark.asyncio
    async def test_parent_cancel_reaches_every_child(self):
        """Every sibling is ended, not only the first one."""
        parent = OperationContext()
        children = [parent.with_timeout(None) for _ in range(4)]
        parent.cancel()
        assert [c.done() for c in children] == [True, True, True, True]
        assert all(c.error() is parent.error() for c in children)

    @pytest.mark.asyncio
    async def test_parent_deadline_reaches_grandchildren(self):
        """A parent deadline ends nested descendants."""
        parent = OperationContext(timeout=0.01)
        children = [parent.with_timeout(None) for _ in range(3)]
        grandchildren = [child.with_timeout(None) for child in children for _ in range(2)]
        await asyncio.wait_for(parent.wait(), timeout=1)
        assert all(c.done() for c in children + grandchildren)
        assert all(isinstance(c.error(), ContextDeadlineExceeded) for c in grandchildren)

    @pytest.mark.asyncio
    async def test_finished_child_detaches_from_parent(self):
        """A cancelled child no longer sits in its parent's child list."""
        parent = OperationContext()
        first = parent.with_timeout(None)
        second = parent.with_timeout(None)
        first.cancel()
        parent.cancel()
        assert isinstance(first.error(), ContextCancelled)
        assert second.done() is True
        assert parent._children == []

    @pytest.mark.asyncio
    async def test_child_cancel_does_not_affect_parent(self):
        """Children end independently of the parent."""
        parent = OperationContext()
        child = parent.with_timeout(10)
        child.cancel()
        assert parent.done() is False

    def test_child_of_done_parent_starts_done(self):
        """A child created under a finished parent is immediately done."""
        parent = OperationContext()
        parent.cancel()
        child = parent.with_timeout(None)
        assert child.done() is True
        assert isinstance(child.error(), ContextCancelled)


class TestSleep:
    """Test the cancellation-aware sleep."""

    @pytest.mark.asyncio
    async def test_full_delay_returns_true(self):
        """sleep() returns True when the delay elapses."""
        ctx = OperationContext()
        assert await ctx.sleep(0.01) is True

    @pytest.mark.asyncio
    async def test_non_positive_delay(self):
        """A zero delay returns immediately."""
        assert await OperationContext().sleep(0) is True

    @pytest.mark.asyncio
    async def test_already_done_returns_false(self):
        """sleep() on a finished context returns False."""
        ctx = OperationContext()
        ctx.cancel()
        assert await ctx.sleep(10) is False

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep(self):
        """Cancelling during sleep returns False promptly."""
        ctx = OperationContext()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, ctx.cancel)
        started = loop.time()
        assert await ctx.sleep(10) is False
        assert loop.time() - started < 1
