"""
Continuation strategies built on PagedFetchLoop.

- Cursor pagination: follow server continuation tokens
- Calendar-day iteration: one snapshot request per day, inclusive range
- Fixed-size batching: static identifier list split into chunks
- Time-window pagination: walk backwards from an end time using the
  server-reported scan position
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

from core.context import OperationContext
from core.errors.exceptions import ClientError, UsageError
from core.fetch.loop import ErrorPolicy, FetchProgress, PagedFetchLoop
from core.fetch.models import FetchResult, PageResult

T = TypeVar("T")
ID = TypeVar("ID")

# =============================================================================
# Cursor pagination
# =============================================================================


@dataclass(frozen=True)
class CursorState:
    token: str | None = None
    page: int = 1


async def fetch_cursor_pages(
    ctx: OperationContext,
    call_page: Callable[[str | None], Awaitable[PageResult[T]]],
    *,
    max_pages: int | None = None,
    describe: Callable[[int, int], str | None] | None = None,
    **options: Any,
) -> FetchResult[T]:
    """
    Follow continuation tokens until the server stops returning one.

    Stops on an empty token, an empty page, or after max_pages pages
    (None or a negative value means unlimited).

    Args:
        call_page: Fetch one page for a token (None for the first page)
        describe: Progress message from (page number, items so far)
    """

    def has_next(state: CursorState, page: PageResult[T] | None) -> CursorState | None:
        if page is None or not page.next_token or not page.items:
            return None
        if max_pages is not None and 0 < max_pages <= state.page:
            return None
        return CursorState(page.next_token, state.page + 1)

    def describe_state(state: CursorState, totals: FetchProgress) -> str | None:
        if describe is None:
            return None
        return describe(state.page, totals.items_collected)

    async def call(state: CursorState) -> PageResult[T]:
        return await call_page(state.token)

    loop = PagedFetchLoop(call, has_next, describe=describe_state, **options)
    return await loop.run(ctx, CursorState())


# =============================================================================
# Calendar-day iteration
# =============================================================================


@dataclass
class DaySnapshot(Generic[T]):
    """State of a resource as of one day; exists is False for empty days."""

    time: datetime
    data: T | None
    exists: bool

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "data": self.data, "exists": self.exists}


def _utc_date(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def count_days(from_time: datetime, to_time: datetime) -> int:
    """Calendar days touched by [from_time, to_time], 0 when reversed."""
    if from_time > to_time:
        return 0
    return (_utc_date(to_time) - _utc_date(from_time)).days + 1


async def fetch_days(
    ctx: OperationContext,
    from_time: datetime,
    to_time: datetime,
    call_day: Callable[[datetime], Awaitable[PageResult[T]]],
    *,
    meaningful: Callable[[T], bool] = bool,
    describe: Callable[[datetime, int, int], str | None] | None = None,
    max_days: int | None = None,
    on_error: ErrorPolicy = ErrorPolicy.SKIP,
    **options: Any,
) -> FetchResult[DaySnapshot[T]]:
    """
    Request one snapshot per calendar day from from_time to to_time inclusive.

    Days advance in 24 hour steps from from_time; the last request is made
    as of to_time itself so the number of snapshots equals count_days().

    Every day yields exactly one DaySnapshot, in ascending order. A day
    whose response is empty or has no meaningful field is recorded with
    exists=False. With the default SKIP policy a failing day after the
    first is also recorded as exists=False and iteration continues; the
    first such error becomes the partial error.

    Raises:
        UsageError: window spans more than max_days days
    """
    total = count_days(from_time, to_time)
    if total == 0:
        return FetchResult()
    if max_days is not None and max_days > 0 and total > max_days:
        raise UsageError(
            f"time window spans {total} days, more than the maximum of {max_days}; "
            "narrow --start/--end or raise history.max-days"
        )

    def day_at(index: int) -> datetime:
        # the final day is clamped so it never lands after to_time
        return min(from_time + timedelta(days=index), to_time)

    async def call(index: int) -> PageResult[DaySnapshot[T]]:
        day = day_at(index)
        page = await call_day(day)
        data = page.items[0] if page.items else None
        exists = data is not None and meaningful(data)
        return PageResult(
            items=[DaySnapshot(time=day, data=data, exists=exists)],
            meta=page.meta,
        )

    def has_next(index: int, page: PageResult[DaySnapshot[T]] | None) -> int | None:
        if index + 1 >= total:
            return None
        return index + 1

    def on_skip(index: int, error: ClientError) -> DaySnapshot[T]:
        return DaySnapshot(time=day_at(index), data=None, exists=False)

    def describe_state(index: int, totals: FetchProgress) -> str | None:
        if describe is None:
            return None
        return describe(day_at(index), index + 1, total)

    loop = PagedFetchLoop(
        call,
        has_next,
        describe=describe_state,
        on_error=on_error,
        on_skip=on_skip,
        **options,
    )
    return await loop.run(ctx, 0)


# =============================================================================
# Fixed-size batching
# =============================================================================


def split_batches(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into contiguous chunks of at most size elements."""
    if size <= 0:
        return []
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def fetch_batches(
    ctx: OperationContext,
    ids: Sequence[ID],
    size: int,
    call_batch: Callable[[list[ID]], Awaitable[PageResult[T]]],
    *,
    describe: Callable[[int, int, list[ID]], str | None] | None = None,
    **options: Any,
) -> FetchResult[T]:
    """
    Fetch a static identifier list in left-to-right chunks of size.

    Args:
        describe: Progress message from (1-based batch index, batch count, batch)
    """
    batches = split_batches(ids, size)
    if not batches:
        return FetchResult()

    async def call(index: int) -> PageResult[T]:
        return await call_batch(batches[index])

    def has_next(index: int, page: PageResult[T] | None) -> int | None:
        if index + 1 >= len(batches):
            return None
        return index + 1

    def describe_state(index: int, totals: FetchProgress) -> str | None:
        if describe is None:
            return None
        return describe(index + 1, len(batches), batches[index])

    loop = PagedFetchLoop(call, has_next, describe=describe_state, **options)
    return await loop.run(ctx, 0)


# =============================================================================
# Time-window pagination
# =============================================================================

DEFAULT_WINDOW_PAGE_LIMIT = 100


async def fetch_time_window(
    ctx: OperationContext,
    from_time: datetime,
    to_time: datetime,
    call_window: Callable[[datetime], Awaitable[PageResult[T]]],
    *,
    page_limit: int = DEFAULT_WINDOW_PAGE_LIMIT,
    describe: Callable[[datetime, int], str | None] | None = None,
    **options: Any,
) -> FetchResult[T]:
    """
    Walk an event timeline backwards from to_time towards from_time.

    call_window(end) fetches events in [from_time, end]. The page's
    extra["scanned_to"] tells how far back the server got; the next
    window ends there. Stops on an empty or short page (fewer than
    page_limit items) or when scanned_to is missing or not after from_time.

    Args:
        describe: Progress message from (current window end, 1-based page)
    """

    def has_next(end: datetime, page: PageResult[T] | None) -> datetime | None:
        if page is None or not page.items or len(page.items) < page_limit:
            return None
        scanned_to = page.extra.get("scanned_to")
        if scanned_to is None or scanned_to <= from_time:
            return None
        # scanned_to must move the window end backwards
        if scanned_to >= end:
            return None
        return scanned_to

    def describe_state(end: datetime, totals: FetchProgress) -> str | None:
        if describe is None:
            return None
        return describe(end, totals.pages_processed + 1)

    loop = PagedFetchLoop(call_window, has_next, describe=describe_state, **options)
    return await loop.run(ctx, to_time)


__all__ = [
    "CursorState",
    "DEFAULT_WINDOW_PAGE_LIMIT",
    "DaySnapshot",
    "count_days",
    "fetch_batches",
    "fetch_cursor_pages",
    "fetch_days",
    "fetch_time_window",
    "split_batches",
]
