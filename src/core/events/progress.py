"""Progress notifications published while a command runs."""

import logging
from dataclasses import dataclass

from core.context import OperationContext
from core.events.queue import DEFAULT_CAPACITY, BoundedEventQueue, QueueClosedError
from core.errors.exceptions import ContextCancelled, ContextDeadlineExceeded
from core.types import Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage = Stage.FETCH
    message: str = ""
    done: bool = False
    err: Exception | None = None


def _terminal_event(err: Exception | None) -> ProgressEvent:
    return ProgressEvent(done=True, err=err)


class ProgressQueue(BoundedEventQueue[ProgressEvent]):
    """Bounded queue of ProgressEvents ending with a done event."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        super().__init__(capacity=capacity, terminal_factory=_terminal_event)


async def publish(
    ctx: OperationContext, queue: ProgressQueue | None, event: ProgressEvent
) -> None:
    """Publish to queue; absent queues and delivery failures are ignored."""
    if queue is None:
        return
    try:
        await queue.publish(ctx, event)
    except (QueueClosedError, ContextCancelled, ContextDeadlineExceeded) as e:
        logger.debug(
            "Progress event not delivered",
            extra={"stage": event.stage.value, "error_message": str(e)},
        )


async def report_stage(ctx: OperationContext, queue: ProgressQueue | None, stage: Stage) -> None:
    await publish(ctx, queue, ProgressEvent(stage=stage))


async def report_message(
    ctx: OperationContext, queue: ProgressQueue | None, stage: Stage, message: str
) -> None:
    await publish(ctx, queue, ProgressEvent(stage=stage, message=message))


async def report_error(
    ctx: OperationContext,
    queue: ProgressQueue | None,
    stage: Stage,
    err: Exception | None,
) -> None:
    if err is None:
        return
    await publish(ctx, queue, ProgressEvent(stage=stage, message=str(err), err=err))


__all__ = [
    "ProgressEvent",
    "ProgressQueue",
    "publish",
    "report_error",
    "report_message",
    "report_stage",
]
