"""Cancellable operation context threaded through every fetch layer."""

import asyncio
import logging

from core.errors.exceptions import ContextCancelled, ContextDeadlineExceeded

logger = logging.getLogger(__name__)


class OperationContext:
    """
    Cancellation and deadline signal for one command invocation.

    A context is done once cancel() is called, its deadline passes, or its
    parent becomes done. Children created with with_timeout() observe the
    parent. Cancellation is cooperative: the fetch loop checks done() at
    iteration boundaries and sleep() returns early when the context ends.

    Usage:
        ctx = OperationContext()
        setup_shutdown_signal_handlers(ctx.cancel)
        child = ctx.with_timeout(30)
        if not await child.sleep(delay):
            return classify(child.error())
    """

    def __init__(self, parent: "OperationContext | None" = None, timeout: float | None = None):
        self._done = asyncio.Event()
        self._error: Exception | None = None
        self._children: list[OperationContext] = []
        self._timer: asyncio.TimerHandle | None = None
        self._parent = parent

        if parent is not None:
            if parent.done():
                self._finish(parent.error())
            else:
                parent._children.append(self)

        if timeout is not None and timeout > 0 and not self.done():
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(timeout, self._expire)

    def _finish(self, error: Exception | None) -> None:
        if self._done.is_set():
            return
        self._error = error
        self._done.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for child in list(self._children):
            child._finish(error)
        self._children.clear()
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)

    def _expire(self) -> None:
        logger.debug("Operation deadline exceeded")
        self._finish(ContextDeadlineExceeded())

    def cancel(self) -> None:
        """Cancel this context and every child. Idempotent."""
        if not self._done.is_set():
            logger.debug("Operation context cancelled")
        self._finish(ContextCancelled())

    def done(self) -> bool:
        return self._done.is_set()

    def error(self) -> Exception | None:
        """ContextCancelled or ContextDeadlineExceeded once done, else None."""
        return self._error

    async def wait(self) -> None:
        """Block until the context is done."""
        await self._done.wait()

    async def sleep(self, delay: float) -> bool:
        """
        Wait for delay seconds unless the context ends first.

        Returns:
            True if the full delay elapsed, False if the context ended
        """
        if self.done():
            return False
        if delay <= 0:
            return True
        try:
            await asyncio.wait_for(self._done.wait(), timeout=delay)
        except TimeoutError:
            return True
        return False

    def with_timeout(self, timeout: float | None) -> "OperationContext":
        """Child context that also ends after timeout seconds (None/0 disables)."""
        return OperationContext(parent=self, timeout=timeout)


__all__ = ["OperationContext"]
