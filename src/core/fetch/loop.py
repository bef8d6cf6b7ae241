"""
Paged fetch loop shared by cursor, calendar-day, batch and time-window
strategies.

The loop drives a page operation until the continuation function says
stop, accumulating (or streaming) items and applying the partial-result
policy from core.fetch.aggregator.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from core.context import OperationContext
from core.errors.classifiers import classify
from core.errors.exceptions import (
    ClientError,
    ContextCancelled,
    ContextDeadlineExceeded,
    PartialError,
)
from core.events.progress import ProgressQueue, report_error, report_message
from core.events.queue import QueueClosedError
from core.events.streaming import StreamQueue, emit_or_collect, is_streaming
from core.fetch.aggregator import finalize_meta, resolve_cancellation, resolve_failure
from core.fetch.models import FetchResult, PageResult, ResponseMeta
from core.logging.utilities import log_with_context
from core.types import Stage

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")

EMIT_ERRORS = (QueueClosedError, ContextCancelled, ContextDeadlineExceeded)


class ErrorPolicy(Enum):
    """What a failure after the first page does to the loop."""

    STOP = "stop"
    SKIP = "skip"


@dataclass(frozen=True)
class FetchProgress:
    """Running totals handed to the progress message builder."""

    pages_processed: int
    items_collected: int


CallPage = Callable[[S], Awaitable[PageResult[T]]]
HasNext = Callable[[S, PageResult[T] | None], S | None]
Describe = Callable[[S, FetchProgress], str | None]
OnSkip = Callable[[S, ClientError], T | None]


class PagedFetchLoop(Generic[S, T]):
    """
    Sequential page driver.

    Args:
        call_page: Fetches one page for a state; raises ClientError on
            failure (already routed through the RetryExecutor)
        has_next: Next state from the current state and page, or None to stop.
            Receives None for the page when a failure was skipped.
        progress: Optional progress queue
        stream: Optional stream queue; items are emitted instead of collected
        describe: Builds the progress message for a state
        on_error: STOP ends the loop at the first later failure; SKIP keeps
            the first error and continues with the next state
        on_skip: Placeholder item recorded for a skipped state
        allow_partial: When False every failure is fatal
        operation: Name used in logs
    """

    def __init__(
        self,
        call_page: CallPage,
        has_next: HasNext,
        *,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
        describe: Describe | None = None,
        on_error: ErrorPolicy = ErrorPolicy.STOP,
        on_skip: OnSkip | None = None,
        allow_partial: bool = True,
        operation: str = "fetch",
    ):
        self.call_page = call_page
        self.has_next = has_next
        self.progress = progress
        self.stream = stream
        self.describe = describe
        self.on_error = on_error
        self.on_skip = on_skip
        self.allow_partial = allow_partial
        self.operation = operation

    async def run(self, ctx: OperationContext, initial_state: S) -> FetchResult[T]:
        started = time.monotonic()
        state = initial_state
        pages = 0
        collected = 0
        items: list[T] = []
        last_meta: ResponseMeta | None = None
        partial: PartialError | None = None
        streaming = is_streaming(self.stream)

        while True:
            if ctx.done():
                partial = resolve_cancellation(ctx, pages, streaming, self.allow_partial)
                logger.debug(
                    "Fetch interrupted",
                    extra={"operation": self.operation, "page_count": pages},
                )
                break

            if self.describe is not None:
                message = self.describe(state, FetchProgress(pages, collected))
                if message:
                    await report_message(ctx, self.progress, Stage.FETCH, message)

            try:
                page = await self.call_page(state)
            except ClientError as e:
                failure = resolve_failure(e, pages, self.allow_partial)
                if self.on_error is ErrorPolicy.STOP:
                    partial = failure
                    await report_error(ctx, self.progress, Stage.FETCH, e)
                    logger.warning(
                        "Fetch stopped early, returning partial data",
                        extra={
                            "operation": self.operation,
                            "page_count": pages,
                            "error_category": e.kind.value,
                            "error_message": str(e)[:200],
                        },
                    )
                    break

                if partial is None:
                    partial = failure
                    await report_error(ctx, self.progress, Stage.FETCH, e)
                log_with_context(
                    logger,
                    logging.DEBUG,
                    "Skipping failed page",
                    operation=self.operation,
                    page=pages + 1,
                    error_category=e.kind.value,
                )
                if self.on_skip is not None:
                    placeholder = self.on_skip(state, e)
                    if placeholder is not None:
                        try:
                            items = await emit_or_collect(ctx, self.stream, placeholder, items)
                        except EMIT_ERRORS as emit_err:
                            return self._emit_failure(items, last_meta, started, pages, emit_err)
                        collected += 1
                pages += 1
                next_state = self.has_next(state, None)
            else:
                last_meta = page.meta
                pages += 1
                for item in page.items:
                    try:
                        items = await emit_or_collect(ctx, self.stream, item, items)
                    except EMIT_ERRORS as emit_err:
                        return self._emit_failure(items, last_meta, started, pages, emit_err)
                    collected += 1
                log_with_context(
                    logger,
                    logging.DEBUG,
                    "Fetched page",
                    operation=self.operation,
                    page=pages,
                    batch_size=len(page.items),
                    items_collected=collected,
                )
                next_state = self.has_next(state, page)

            if next_state is None:
                break
            state = next_state

        return FetchResult(
            items=items,
            meta=finalize_meta(last_meta, started, pages),
            partial_error=partial,
        )

    def _emit_failure(
        self,
        items: list[T],
        last_meta: ResponseMeta | None,
        started: float,
        pages: int,
        error: Exception,
    ) -> FetchResult[T]:
        logger.warning(
            "Stream consumer stopped accepting items",
            extra={"operation": self.operation, "error_message": str(error)},
        )
        return FetchResult(
            items=items,
            meta=finalize_meta(last_meta, started, pages),
            partial_error=PartialError(classify(error)),
        )


async def run_paged(
    ctx: OperationContext,
    initial_state: S,
    call_page: CallPage,
    has_next: HasNext,
    **options,
) -> FetchResult[T]:
    """Build a PagedFetchLoop with options and run it from initial_state."""
    return await PagedFetchLoop(call_page, has_next, **options).run(ctx, initial_state)


__all__ = [
    "ErrorPolicy",
    "FetchProgress",
    "PagedFetchLoop",
    "run_paged",
]
