"""
History service.

Three fetch shapes over the same loop:
- Host timeline: time-window pagination walking back from the end time
- Certificate observations: cursor pagination, streamable
- Web property snapshots: one request per calendar day
"""

import logging
from datetime import datetime
from typing import Any

from cencli.client import CensysClient
from cencli.models import ObservationRange, WebProperty, webproperty_has_meaningful_data
from core.context import OperationContext
from core.errors import UsageError
from core.events import ProgressQueue, StreamQueue
from core.fetch import DaySnapshot, FetchResult, PageResult, fetch_cursor_pages, fetch_days
from core.fetch.strategies import DEFAULT_WINDOW_PAGE_LIMIT, fetch_time_window

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT = "%Y-%m-%d"


def _check_window(from_time: datetime, to_time: datetime) -> None:
    if from_time > to_time:
        raise UsageError(
            f"start time {from_time.strftime(TIMESTAMP_FORMAT)} is after "
            f"end time {to_time.strftime(TIMESTAMP_FORMAT)}"
        )


class HistoryService:
    def __init__(self, client: CensysClient, max_days: int | None = None):
        self.client = client
        self.max_days = max_days

    async def get_host_history(
        self,
        ctx: OperationContext,
        host_id: str,
        from_time: datetime,
        to_time: datetime,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[dict[str, Any]]:
        """Timeline events for a host between from_time and to_time, newest first."""
        _check_window(from_time, to_time)
        date_range = f"{from_time.strftime(TIMESTAMP_FORMAT)} to {to_time.strftime(TIMESTAMP_FORMAT)}"

        async def call_window(end: datetime) -> PageResult[dict[str, Any]]:
            res = await self.client.host_timeline(ctx, host_id, from_time, end)
            return PageResult(
                items=res.data.resources(),
                meta=res.meta,
                extra={"scanned_to": res.data.scanned_to},
            )

        def describe(end: datetime, page: int) -> str:
            if page == 1:
                return f"Fetching host timeline for {host_id} ({date_range})..."
            return (
                f"Fetching host timeline for {host_id} "
                f"(page {page}, scanning back to {end.strftime(TIMESTAMP_FORMAT)})..."
            )

        return await fetch_time_window(
            ctx,
            from_time,
            to_time,
            call_window,
            page_limit=DEFAULT_WINDOW_PAGE_LIMIT,
            describe=describe,
            progress=progress,
            stream=stream,
            operation="host_history",
        )

    async def get_certificate_history(
        self,
        ctx: OperationContext,
        certificate_id: str,
        from_time: datetime,
        to_time: datetime,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[ObservationRange]:
        """Host observation ranges that presented the certificate."""
        _check_window(from_time, to_time)
        date_range = f"{from_time.strftime(DATE_FORMAT)} to {to_time.strftime(DATE_FORMAT)}"

        async def call_page(token: str | None) -> PageResult[ObservationRange]:
            res = await self.client.host_observations_with_certificate(
                ctx,
                certificate_id,
                start_time=from_time,
                end_time=to_time,
                page_token=token,
            )
            return PageResult(
                items=res.data.ranges,
                meta=res.meta,
                next_token=res.data.next_page_token,
            )

        def describe(page: int, collected: int) -> str:
            if page == 1:
                return f"Fetching certificate observations for {certificate_id} ({date_range})..."
            return (
                f"Fetching certificate observations for {certificate_id} "
                f"({date_range}, page {page}, {collected} observations so far)..."
            )

        return await fetch_cursor_pages(
            ctx,
            call_page,
            describe=describe,
            progress=progress,
            stream=stream,
            operation="certificate_history",
        )

    async def get_web_property_history(
        self,
        ctx: OperationContext,
        webproperty_id: str,
        from_time: datetime,
        to_time: datetime,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[DaySnapshot[WebProperty]]:
        """
        One snapshot per day in [from_time, to_time].

        Days where the web property has nothing beyond hostname and port
        are recorded with exists=False. Failing days after the first are
        recorded the same way and reported as a partial error.

        Raises:
            UsageError: window is reversed or longer than max_days
        """
        _check_window(from_time, to_time)

        async def call_day(day: datetime) -> PageResult[WebProperty]:
            res = await self.client.get_web_properties(ctx, [webproperty_id], at_time=day)
            return PageResult(items=res.data[:1], meta=res.meta)

        def describe(day: datetime, index: int, total: int) -> str:
            return (
                f"Fetching web property history for {webproperty_id} "
                f"(day {index}/{total}: {day.strftime(DATE_FORMAT)})..."
            )

        return await fetch_days(
            ctx,
            from_time,
            to_time,
            call_day,
            meaningful=webproperty_has_meaningful_data,
            describe=describe,
            max_days=self.max_days,
            progress=progress,
            stream=stream,
            operation="webproperty_history",
        )


__all__ = ["HistoryService"]
