"""View service: fetch assets by identifier in fixed-size batches."""

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any

from cencli.client import CensysClient, ClientResult
from cencli.models import Certificate, Host, WebProperty
from core.context import OperationContext
from core.events import ProgressQueue, StreamQueue
from core.fetch import FetchResult, PageResult, fetch_batches

# Per-request identifier ceilings of the asset endpoints
MAX_HOSTS_PER_REQUEST = 100
MAX_CERTIFICATES_PER_REQUEST = 1000
MAX_WEBPROPERTIES_PER_REQUEST = 100


def _describer(singular: str, plural: str) -> Callable[[int, int, list[str]], str]:
    def describe(index: int, total: int, batch: list[str]) -> str:
        if total > 1:
            return f"Fetching {plural} batch {index}/{total} ({len(batch)} {plural})..."
        label = singular if len(batch) == 1 else plural
        return f"Fetching {len(batch)} {label}..."

    return describe


class ViewService:
    def __init__(self, client: CensysClient):
        self.client = client

    async def _fetch(
        self,
        ctx: OperationContext,
        ids: Sequence[str],
        size: int,
        call: Callable[[list[str]], Awaitable[ClientResult[list[Any]]]],
        describe: Callable[[int, int, list[str]], str],
        operation: str,
        progress: ProgressQueue | None,
        stream: StreamQueue | None,
    ) -> FetchResult[Any]:
        async def call_batch(batch: list[str]) -> PageResult[Any]:
            res = await call(batch)
            return PageResult(items=res.data, meta=res.meta)

        return await fetch_batches(
            ctx,
            ids,
            size,
            call_batch,
            describe=describe,
            progress=progress,
            stream=stream,
            operation=operation,
        )

    async def get_hosts(
        self,
        ctx: OperationContext,
        host_ids: Sequence[str],
        at_time: datetime | None = None,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[Host]:
        return await self._fetch(
            ctx,
            host_ids,
            MAX_HOSTS_PER_REQUEST,
            lambda batch: self.client.get_hosts(ctx, batch, at_time),
            _describer("host", "hosts"),
            "get_hosts",
            progress,
            stream,
        )

    async def get_certificates(
        self,
        ctx: OperationContext,
        certificate_ids: Sequence[str],
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[Certificate]:
        return await self._fetch(
            ctx,
            certificate_ids,
            MAX_CERTIFICATES_PER_REQUEST,
            lambda batch: self.client.get_certificates(ctx, batch),
            _describer("certificate", "certificates"),
            "get_certificates",
            progress,
            stream,
        )

    async def get_web_properties(
        self,
        ctx: OperationContext,
        webproperty_ids: Sequence[str],
        at_time: datetime | None = None,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[WebProperty]:
        return await self._fetch(
            ctx,
            webproperty_ids,
            MAX_WEBPROPERTIES_PER_REQUEST,
            lambda batch: self.client.get_web_properties(ctx, batch, at_time),
            _describer("web property", "web properties"),
            "get_web_properties",
            progress,
            stream,
        )


__all__ = [
    "MAX_CERTIFICATES_PER_REQUEST",
    "MAX_HOSTS_PER_REQUEST",
    "MAX_WEBPROPERTIES_PER_REQUEST",
    "ViewService",
]
