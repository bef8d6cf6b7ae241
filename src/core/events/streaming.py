"""Item streaming: deliver fetched items to a consumer instead of buffering."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from core.context import OperationContext
from core.events.queue import DEFAULT_CAPACITY, BoundedEventQueue

T = TypeVar("T")


@dataclass(frozen=True)
class StreamItem(Generic[T]):
    data: T | None = None
    err: Exception | None = None
    done: bool = False


def _terminal_item(err: Exception | None) -> StreamItem[Any]:
    return StreamItem(done=True, err=err)


class StreamQueue(BoundedEventQueue[StreamItem[Any]]):
    """Bounded queue of StreamItems ending with a done item."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        super().__init__(capacity=capacity, terminal_factory=_terminal_item)


def is_streaming(queue: StreamQueue | None) -> bool:
    return queue is not None


async def emit(ctx: OperationContext, queue: StreamQueue | None, data: Any) -> None:
    """
    Publish one item to the stream consumer.

    A missing queue makes this a no-op. Delivery failures (closed queue,
    ended context) propagate so the fetch can stop with a partial result.
    """
    if queue is None:
        return
    await queue.publish(ctx, StreamItem(data=data))


async def emit_or_collect(
    ctx: OperationContext,
    queue: StreamQueue | None,
    item: T,
    items: list[T],
) -> list[T]:
    """
    Emit item when streaming, otherwise append it to items.

    Streamed items are not also accumulated.

    Returns:
        The (possibly extended) items list
    """
    if queue is None:
        items.append(item)
        return items
    await emit(ctx, queue, item)
    return items


__all__ = [
    "StreamItem",
    "StreamQueue",
    "emit",
    "emit_or_collect",
    "is_streaming",
]
