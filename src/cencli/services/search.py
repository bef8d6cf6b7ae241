"""Search service: cursor-paginated queries over global data or a collection."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from cencli.client import CensysClient
from core.context import OperationContext
from core.errors import PartialError, UsageError
from core.events import ProgressQueue, StreamQueue
from core.fetch import PageResult, ResponseMeta, fetch_cursor_pages

logger = logging.getLogger(__name__)


class InvalidPaginationParamsError(UsageError):
    default_title = "Invalid Pagination Params"


@dataclass
class SearchParams:
    """
    Attributes:
        query: Query language expression
        collection_id: Search within a collection instead of global data
        fields: Restrict returned fields
        page_size: Hits per page (None uses the API default)
        max_pages: Page limit (None or negative means unlimited)
    """

    query: str
    collection_id: str | None = None
    fields: Sequence[str] | None = None
    page_size: int | None = None
    max_pages: int | None = None


@dataclass
class SearchResult:
    hits: list[dict[str, Any]] = field(default_factory=list)
    total_hits: int = 0
    meta: ResponseMeta | None = None
    partial_error: PartialError | None = None


class SearchService:
    def __init__(self, client: CensysClient):
        self.client = client

    async def search(
        self,
        ctx: OperationContext,
        params: SearchParams,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> SearchResult:
        """
        Run a search, following continuation tokens up to max_pages.

        Raises:
            InvalidPaginationParamsError: page_size or max_pages is 0
            ClientError: the first page failed
        """
        if params.page_size is not None and params.page_size <= 0:
            raise InvalidPaginationParamsError("page size must be greater than 0")
        if params.max_pages == 0:
            raise InvalidPaginationParamsError("max pages must be greater than 0")

        max_pages = params.max_pages if params.max_pages and params.max_pages > 0 else None
        total_hits = 0

        async def call_page(token: str | None) -> PageResult[dict[str, Any]]:
            nonlocal total_hits
            if params.collection_id:
                res = await self.client.search_collection(
                    ctx,
                    params.collection_id,
                    params.query,
                    fields=params.fields,
                    page_size=params.page_size,
                    page_token=token,
                )
            else:
                res = await self.client.search(
                    ctx,
                    params.query,
                    fields=params.fields,
                    page_size=params.page_size,
                    page_token=token,
                )
            total_hits = int(res.data.total_hits)
            return PageResult(
                items=res.data.hits,
                meta=res.meta,
                next_token=res.data.next_page_token,
                extra={"total_hits": total_hits},
            )

        def describe(page: int, collected: int) -> str | None:
            if page == 1:
                return None
            if max_pages is not None:
                return f"Fetching search results (page {page}/{max_pages}, {collected} hits collected)..."
            return f"Fetching search results (page {page}, {collected} hits collected)..."

        result = await fetch_cursor_pages(
            ctx,
            call_page,
            max_pages=max_pages,
            describe=describe,
            progress=progress,
            stream=stream,
            operation="search",
        )
        logger.debug(
            "Search complete",
            extra={
                "operation": "search",
                "items_collected": len(result.items),
                "page_count": result.meta.page_count if result.meta else 0,
            },
        )
        return SearchResult(
            hits=result.items,
            total_hits=total_hits,
            meta=result.meta,
            partial_error=result.partial_error,
        )


__all__ = [
    "InvalidPaginationParamsError",
    "SearchParams",
    "SearchResult",
    "SearchService",
]
