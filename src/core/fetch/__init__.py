"""
Paged fetch module.

Provides the shared fetch loop, its continuation strategies and the
partial-result policy.
"""

from core.fetch.aggregator import finalize_meta, resolve_cancellation, resolve_failure
from core.fetch.loop import ErrorPolicy, FetchProgress, PagedFetchLoop, run_paged
from core.fetch.models import FetchResult, PageResult, ResponseMeta
from core.fetch.strategies import (
    DaySnapshot,
    count_days,
    fetch_batches,
    fetch_cursor_pages,
    fetch_days,
    fetch_time_window,
    split_batches,
)

__all__ = [
    # Models
    "FetchResult",
    "PageResult",
    "ResponseMeta",
    # Loop
    "ErrorPolicy",
    "FetchProgress",
    "PagedFetchLoop",
    "run_paged",
    # Policy
    "finalize_meta",
    "resolve_cancellation",
    "resolve_failure",
    # Strategies
    "DaySnapshot",
    "count_days",
    "fetch_batches",
    "fetch_cursor_pages",
    "fetch_days",
    "fetch_time_window",
    "split_batches",
]
