"""
Platform API client.

Every method performs exactly one logical remote call through
RetryExecutor and returns a ClientResult whose meta records the attempts
the executor used. Failures are raised as classified ClientErrors; the
page closures built by the services rely on that contract.
"""

import logging
import platform
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from cencli import __version__
from cencli.models import (
    AggregateResponse,
    Certificate,
    Host,
    HostTimelinePage,
    MembersPage,
    ObservationsPage,
    OrganizationCredits,
    OrganizationDetails,
    SearchPage,
    UserCredits,
    WebProperty,
)
from config.config import CliConfig
from core.context import OperationContext
from core.errors import ClientError, ClientNotConfiguredError, UnknownError, classify
from core.fetch.models import ResponseMeta
from core.http.transport import AiohttpTransport, ApiResponse
from core.resilience.retry import RetryExecutor, RetryPolicy
from core.types import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def build_user_agent() -> str:
    """User-Agent sent with every request: cencli/<version> (<python>; <platform>)."""
    return (
        f"cencli/{__version__} "
        f"(python {platform.python_version()}; {platform.system().lower()}/{platform.machine()})"
    )


def format_timestamp(value: datetime) -> str:
    """RFC 3339 UTC timestamp with second precision."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class ClientResult(Generic[T]):
    data: T
    meta: ResponseMeta


def _unwrap_envelope(data: Any) -> Any:
    if isinstance(data, dict) and "result" in data:
        return data["result"]
    return data


def _resources(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [item.get("resource", item) for item in data if isinstance(item, dict)]


class CensysClient:
    """
    Async client for the platform API.

    Args:
        transport: Performs single HTTP round trips
        retry_policy: Policy applied to every call
    """

    def __init__(self, transport: Transport, retry_policy: RetryPolicy | None = None):
        self.transport = transport
        self.executor = RetryExecutor(retry_policy)

    async def __aenter__(self) -> "CensysClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    async def _call(
        self,
        ctx: OperationContext,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        operation: str,
    ) -> ClientResult[Any]:
        """
        Run one request through the retry executor.

        Raises:
            ClientError: classified failure after the final attempt
        """
        response: ApiResponse | None = None

        async def attempt() -> ClientError | None:
            nonlocal response
            try:
                response = await self.transport.request(
                    method, path, params=params, json_body=json_body
                )
            except Exception as e:
                return classify(e)
            return None

        error, attempts = await self.executor.execute(ctx, attempt, operation=operation)
        if error is not None:
            raise error
        if response is None:
            raise UnknownError(f"{operation}: no response received")

        meta = ResponseMeta.from_exchange(
            method=response.method,
            url=response.url,
            status_code=response.status,
            latency=response.latency,
            attempts=attempts,
            request_headers=response.request_headers,
            response_headers=response.response_headers,
        )
        return ClientResult(data=_unwrap_envelope(response.data), meta=meta)

    @staticmethod
    def _parse(model: type[M], data: Any, operation: str) -> M:
        try:
            return model.model_validate(data if data is not None else {})
        except ValidationError as e:
            raise UnknownError(
                f"unexpected response for {operation}: {e.error_count()} validation error(s)"
            ) from e

    @classmethod
    def _parse_list(cls, model: type[M], data: Any, operation: str) -> list[M]:
        return [cls._parse(model, item, operation) for item in _resources(data)]

    # -------------------------------------------------------------------------
    # Global data: assets
    # -------------------------------------------------------------------------

    async def get_hosts(
        self,
        ctx: OperationContext,
        host_ids: Sequence[str],
        at_time: datetime | None = None,
    ) -> ClientResult[list[Host]]:
        body: dict[str, Any] = {"host_ids": list(host_ids)}
        if at_time is not None:
            body["at_time"] = format_timestamp(at_time)
        res = await self._call(
            ctx, "POST", "/v3/global/asset/host", json_body=body, operation="get_hosts"
        )
        return ClientResult(self._parse_list(Host, res.data, "get_hosts"), res.meta)

    async def get_certificates(
        self, ctx: OperationContext, certificate_ids: Sequence[str]
    ) -> ClientResult[list[Certificate]]:
        res = await self._call(
            ctx,
            "POST",
            "/v3/global/asset/certificate",
            json_body={"certificate_ids": list(certificate_ids)},
            operation="get_certificates",
        )
        return ClientResult(
            self._parse_list(Certificate, res.data, "get_certificates"), res.meta
        )

    async def get_web_properties(
        self,
        ctx: OperationContext,
        webproperty_ids: Sequence[str],
        at_time: datetime | None = None,
    ) -> ClientResult[list[WebProperty]]:
        body: dict[str, Any] = {"webproperty_ids": list(webproperty_ids)}
        if at_time is not None:
            body["at_time"] = format_timestamp(at_time)
        res = await self._call(
            ctx,
            "POST",
            "/v3/global/asset/webproperty",
            json_body=body,
            operation="get_web_properties",
        )
        return ClientResult(
            self._parse_list(WebProperty, res.data, "get_web_properties"), res.meta
        )

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @staticmethod
    def _search_body(
        query: str,
        fields: Sequence[str] | None,
        page_size: int | None,
        page_token: str | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"query": query}
        if fields:
            body["fields"] = list(fields)
        if page_size is not None:
            body["page_size"] = page_size
        if page_token:
            body["page_token"] = page_token
        return body

    async def search(
        self,
        ctx: OperationContext,
        query: str,
        fields: Sequence[str] | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ClientResult[SearchPage]:
        res = await self._call(
            ctx,
            "POST",
            "/v3/global/search/query",
            json_body=self._search_body(query, fields, page_size, page_token),
            operation="search",
        )
        return ClientResult(self._parse(SearchPage, res.data, "search"), res.meta)

    async def search_collection(
        self,
        ctx: OperationContext,
        collection_id: str,
        query: str,
        fields: Sequence[str] | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ClientResult[SearchPage]:
        res = await self._call(
            ctx,
            "POST",
            f"/v3/collections/{collection_id}/search/query",
            json_body=self._search_body(query, fields, page_size, page_token),
            operation="search_collection",
        )
        return ClientResult(self._parse(SearchPage, res.data, "search_collection"), res.meta)

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    @staticmethod
    def _aggregate_body(
        query: str,
        field: str,
        num_buckets: int,
        count_by_level: str | None,
        filter_by_query: bool | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "query": query,
            "field": field,
            "number_of_buckets": num_buckets,
        }
        if count_by_level:
            body["count_by_level"] = count_by_level
        if filter_by_query is not None:
            body["filter_by_query"] = filter_by_query
        return body

    async def aggregate(
        self,
        ctx: OperationContext,
        query: str,
        field: str,
        num_buckets: int,
        count_by_level: str | None = None,
        filter_by_query: bool | None = None,
    ) -> ClientResult[AggregateResponse]:
        res = await self._call(
            ctx,
            "POST",
            "/v3/global/search/aggregate",
            json_body=self._aggregate_body(
                query, field, num_buckets, count_by_level, filter_by_query
            ),
            operation="aggregate",
        )
        return ClientResult(self._parse(AggregateResponse, res.data, "aggregate"), res.meta)

    async def aggregate_collection(
        self,
        ctx: OperationContext,
        collection_id: str,
        query: str,
        field: str,
        num_buckets: int,
        count_by_level: str | None = None,
        filter_by_query: bool | None = None,
    ) -> ClientResult[AggregateResponse]:
        res = await self._call(
            ctx,
            "POST",
            f"/v3/collections/{collection_id}/search/aggregate",
            json_body=self._aggregate_body(
                query, field, num_buckets, count_by_level, filter_by_query
            ),
            operation="aggregate_collection",
        )
        return ClientResult(
            self._parse(AggregateResponse, res.data, "aggregate_collection"), res.meta
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def host_timeline(
        self,
        ctx: OperationContext,
        host_id: str,
        from_time: datetime,
        to_time: datetime,
    ) -> ClientResult[HostTimelinePage]:
        # The timeline is read newest first: start_time is the later bound.
        res = await self._call(
            ctx,
            "GET",
            f"/v3/global/asset/host/{host_id}/timeline",
            params={
                "start_time": format_timestamp(to_time),
                "end_time": format_timestamp(from_time),
            },
            operation="host_timeline",
        )
        return ClientResult(self._parse(HostTimelinePage, res.data, "host_timeline"), res.meta)

    async def host_observations_with_certificate(
        self,
        ctx: OperationContext,
        certificate_id: str,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        port: int | None = None,
        protocol: str | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ClientResult[ObservationsPage]:
        params = {
            "start_time": format_timestamp(start_time) if start_time else None,
            "end_time": format_timestamp(end_time) if end_time else None,
            "port": port,
            "protocol": protocol,
            "page_size": page_size,
            "page_token": page_token,
        }
        res = await self._call(
            ctx,
            "GET",
            f"/v3/threat-hunting/certificate/{certificate_id}/observations",
            params=params,
            operation="host_observations_with_certificate",
        )
        return ClientResult(
            self._parse(ObservationsPage, res.data, "host_observations_with_certificate"),
            res.meta,
        )

    # -------------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------------

    async def get_organization_details(
        self, ctx: OperationContext, org_id: str
    ) -> ClientResult[OrganizationDetails]:
        res = await self._call(
            ctx,
            "GET",
            f"/v3/accounts/organizations/{org_id}",
            operation="get_organization_details",
        )
        return ClientResult(
            self._parse(OrganizationDetails, res.data, "get_organization_details"), res.meta
        )

    async def list_organization_members(
        self,
        ctx: OperationContext,
        org_id: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ClientResult[MembersPage]:
        res = await self._call(
            ctx,
            "GET",
            f"/v3/accounts/organizations/{org_id}/members",
            params={"page_size": page_size, "page_token": page_token},
            operation="list_organization_members",
        )
        return ClientResult(
            self._parse(MembersPage, res.data, "list_organization_members"), res.meta
        )

    # -------------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------------

    async def get_organization_credits(
        self, ctx: OperationContext, org_id: str
    ) -> ClientResult[OrganizationCredits]:
        res = await self._call(
            ctx,
            "GET",
            f"/v3/accounts/organizations/{org_id}/credits",
            operation="get_organization_credits",
        )
        return ClientResult(
            self._parse(OrganizationCredits, res.data, "get_organization_credits"), res.meta
        )

    async def get_user_credits(self, ctx: OperationContext) -> ClientResult[UserCredits]:
        res = await self._call(
            ctx, "GET", "/v3/accounts/users/credits", operation="get_user_credits"
        )
        return ClientResult(self._parse(UserCredits, res.data, "get_user_credits"), res.meta)


TransportFactory = Callable[[CliConfig], Transport]


def create_transport(config: CliConfig) -> AiohttpTransport:
    return AiohttpTransport(
        config.api.base_url,
        config.api.token,
        org_id=config.api.org_id or None,
        timeout=config.http_timeout,
        user_agent=build_user_agent(),
    )


def create_client(
    config: CliConfig, transport_factory: TransportFactory = create_transport
) -> CensysClient:
    """
    Build a client from configuration.

    Raises:
        ClientNotConfiguredError: no API token configured
    """
    if not config.api.token:
        raise ClientNotConfiguredError(
            "No API token configured. Set CENSYS_API_TOKEN or api.token in the config file."
        )
    logger.debug(
        "Creating API client",
        extra={"http_url": config.api.base_url, "max_attempts": config.retry.max_attempts},
    )
    return CensysClient(transport_factory(config), config.retry)


__all__ = [
    "CensysClient",
    "ClientResult",
    "build_user_agent",
    "create_client",
    "create_transport",
    "format_timestamp",
]
