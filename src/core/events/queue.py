"""
Bounded single-producer / single-consumer event queue.

Used for progress notifications and for streaming fetched items. A full
queue makes the producer wait (backpressure) until the consumer frees a
slot, the queue is closed, or the operation context ends.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from core.context import OperationContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 1


class QueueClosedError(Exception):
    """Publish attempted on (or raced with) a closed queue."""

    def __init__(self, message: str = "event queue closed"):
        super().__init__(message)


class BoundedEventQueue(Generic[T]):
    """
    Fixed-capacity queue with one producer and one consumer.

    close() is run-once: the first call marks the queue closed, tries a
    non-blocking send of the terminal event built by terminal_factory and
    wakes the consumer. The terminal event is dropped when the queue is
    full at that moment. Later calls do nothing.

    Consumers iterate with ``async for event in queue``; iteration ends once
    the queue is closed and every buffered event has been read.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        terminal_factory: Callable[[Exception | None], T] | None = None,
    ):
        if capacity <= 0:
            capacity = DEFAULT_CAPACITY
        self.capacity = capacity
        self._terminal_factory = terminal_factory
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)
        self._closed_event = asyncio.Event()
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    async def publish(self, ctx: OperationContext, event: T) -> None:
        """
        Deliver event, waiting while the queue is full.

        Raises:
            QueueClosedError: queue already closed, or closed while waiting
            ContextCancelled / ContextDeadlineExceeded: ctx ended while waiting
        """
        if self.closed:
            raise QueueClosedError()
        if ctx.done():
            raise ctx.error()

        try:
            self._queue.put_nowait(event)
            return
        except asyncio.QueueFull:
            pass

        put_task = asyncio.ensure_future(self._queue.put(event))
        closed_task = asyncio.ensure_future(self._closed_event.wait())
        ctx_task = asyncio.ensure_future(ctx.wait())
        waiters = {put_task, closed_task, ctx_task}
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in waiters if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if put_task.done() and not put_task.cancelled():
            return
        if closed_task.done() and not closed_task.cancelled():
            raise QueueClosedError()
        raise ctx.error()

    def close(self, final_err: Exception | None = None) -> None:
        """Close the queue once, best-effort sending the terminal event."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        if self._terminal_factory is not None:
            try:
                self._queue.put_nowait(self._terminal_factory(final_err))
            except asyncio.QueueFull:
                logger.debug("Terminal event dropped, queue full at close")

        self._closed_event.set()

    async def get(self) -> T | None:
        """Next buffered event, or None once closed and drained."""
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed_event.is_set():
                return None

            get_task = asyncio.ensure_future(self._queue.get())
            closed_task = asyncio.ensure_future(self._closed_event.wait())
            try:
                await asyncio.wait(
                    {get_task, closed_task}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                pending = [t for t in (get_task, closed_task) if not t.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

            if get_task.done() and not get_task.cancelled():
                return get_task.result()

    def __aiter__(self) -> "BoundedEventQueue[T]":
        return self

    async def __anext__(self) -> T:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


__all__ = [
    "BoundedEventQueue",
    "DEFAULT_CAPACITY",
    "QueueClosedError",
]
