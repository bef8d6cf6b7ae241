"""Bucketed counts of a field over the hosts matching a query."""

import logging
from dataclasses import dataclass

from cencli.client import CensysClient
from cencli.models import AggregateBucket
from core.context import OperationContext
from core.errors import UsageError
from core.fetch import ResponseMeta

logger = logging.getLogger(__name__)

DEFAULT_NUM_BUCKETS = 25
MIN_NUM_BUCKETS = 1
MAX_NUM_BUCKETS = 10000


@dataclass
class AggregateParams:
    query: str
    field: str
    num_buckets: int = DEFAULT_NUM_BUCKETS
    collection_id: str | None = None
    count_by_level: str | None = None
    filter_by_query: bool | None = None


@dataclass
class AggregateResult:
    buckets: list[AggregateBucket]
    meta: ResponseMeta


class AggregateService:
    """
    One aggregation request, global or scoped to a collection.

    Raises:
        UsageError: empty query or field, or num_buckets outside 1..10000
    """

    def __init__(self, client: CensysClient):
        self.client = client

    @staticmethod
    def validate(params: AggregateParams) -> None:
        if not params.query.strip():
            raise UsageError("query must not be empty")
        if not params.field.strip():
            raise UsageError("field must not be empty")
        if not MIN_NUM_BUCKETS <= params.num_buckets <= MAX_NUM_BUCKETS:
            raise UsageError(
                f"num-buckets must be between {MIN_NUM_BUCKETS} and {MAX_NUM_BUCKETS}"
            )

    async def aggregate(self, ctx: OperationContext, params: AggregateParams) -> AggregateResult:
        self.validate(params)
        kwargs = {
            "count_by_level": params.count_by_level,
            "filter_by_query": params.filter_by_query,
        }
        if params.collection_id:
            logger.debug("Aggregating collection", extra={"collection_id": params.collection_id})
            res = await self.client.aggregate_collection(
                ctx,
                params.collection_id,
                params.query,
                params.field,
                params.num_buckets,
                **kwargs,
            )
        else:
            res = await self.client.aggregate(
                ctx, params.query, params.field, params.num_buckets, **kwargs
            )
        return AggregateResult(buckets=res.data.buckets, meta=res.meta)


__all__ = [
    "DEFAULT_NUM_BUCKETS",
    "MAX_NUM_BUCKETS",
    "MIN_NUM_BUCKETS",
    "AggregateParams",
    "AggregateResult",
    "AggregateService",
]
