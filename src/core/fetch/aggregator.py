"""
Partial-result policy shared by every fetch strategy.

The very first page/batch failure is always fatal because there is no data
to salvage. Any failure after at least one success degrades to a partial
result that keeps the data already fetched.
"""

import time

from core.context import OperationContext
from core.errors.classifiers import classify
from core.errors.exceptions import ClientError, PartialError
from core.fetch.models import ResponseMeta


def resolve_failure(
    error: ClientError, pages_processed: int, allow_partial: bool = True
) -> PartialError:
    """
    Decide whether a page failure is fatal.

    Raises:
        ClientError: the original error when no page succeeded yet or
            partial results are disabled for this fetch

    Returns:
        The error wrapped as a PartialError
    """
    if pages_processed == 0 or not allow_partial:
        raise error
    return PartialError(error)


def resolve_cancellation(
    ctx: OperationContext,
    pages_processed: int,
    streaming: bool = False,
    allow_partial: bool = True,
) -> PartialError:
    """
    Decide what an ended context means for the fetch.

    A stream consumer may already have rendered items even before the
    first page finished, so streaming fetches always degrade to partial.

    Raises:
        ClientError: the classified cancellation/deadline error when
            nothing was fetched yet
    """
    error = classify(ctx.error())
    if allow_partial and (pages_processed > 0 or streaming):
        return PartialError(error)
    raise error


def finalize_meta(
    meta: ResponseMeta | None, started: float, pages_processed: int
) -> ResponseMeta | None:
    """Stamp whole-fetch wall clock latency and page count onto meta."""
    if meta is None:
        return None
    meta.latency = time.monotonic() - started
    meta.page_count = pages_processed
    return meta


__all__ = [
    "finalize_meta",
    "resolve_cancellation",
    "resolve_failure",
]
