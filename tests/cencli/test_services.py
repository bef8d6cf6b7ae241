"""
Tests for the command services.

Services are driven with a mocked CensysClient; each test checks the
fetch shape (batches, cursor pages, time windows, days) and how failures
surface as partial results.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from cencli.client import ClientResult
from cencli.models import (
    AggregateBucket,
    AggregateResponse,
    Host,
    HostTimelinePage,
    MembersPage,
    ObservationsPage,
    OrganizationCredits,
    OrganizationDetails,
    OrganizationMember,
    Pagination,
    SearchPage,
    UserCredits,
    WebProperty,
)
from cencli.services import (
    AggregateParams,
    AggregateService,
    CreditsService,
    HistoryService,
    InvalidPaginationParamsError,
    OrganizationsService,
    SearchParams,
    SearchService,
    ViewService,
)
from cencli.services.view import MAX_CERTIFICATES_PER_REQUEST, MAX_HOSTS_PER_REQUEST
from core.context import OperationContext
from core.errors import GenericError, PartialError, UsageError
from core.events import ProgressQueue, StreamQueue
from core.fetch import ResponseMeta


def _meta():
    return ResponseMeta(method="POST", url="https://api.example.com", status_code=200)


def _result(data):
    return ClientResult(data=data, meta=_meta())


def _dt(day, hour=0):
    return datetime(2025, 1, day, hour, tzinfo=UTC)


async def _messages(progress: ProgressQueue):
    progress.close()
    return [event.message async for event in progress if event.message and event.err is None]


# =============================================================================
# View
# =============================================================================


class TestViewService:
    @pytest.mark.asyncio
    async def test_hosts_batched_by_100(self):
        client = MagicMock()

        async def get_hosts(ctx, ids, at_time=None):
            return _result([Host(ip=i) for i in ids])

        client.get_hosts = AsyncMock(side_effect=get_hosts)
        ids = [f"10.0.{i // 256}.{i % 256}" for i in range(250)]

        result = await ViewService(client).get_hosts(OperationContext(), ids)

        sizes = [len(call.args[1]) for call in client.get_hosts.await_args_list]
        assert sizes == [MAX_HOSTS_PER_REQUEST, MAX_HOSTS_PER_REQUEST, 50]
        assert [h.ip for h in result.items] == ids
        assert result.meta.page_count == 3

    @pytest.mark.asyncio
    async def test_at_time_forwarded(self):
        client = MagicMock()
        client.get_web_properties = AsyncMock(return_value=_result([]))
        at = _dt(1)

        await ViewService(client).get_web_properties(OperationContext(), ["a.com:443"], at)

        client.get_web_properties.assert_awaited_once()
        assert client.get_web_properties.await_args.args[2] == at

    @pytest.mark.asyncio
    async def test_certificates_batched_by_1000(self):
        client = MagicMock()
        client.get_certificates = AsyncMock(return_value=_result([]))
        ids = ["a" * 64] * (MAX_CERTIFICATES_PER_REQUEST + 1)

        await ViewService(client).get_certificates(OperationContext(), ids)

        assert client.get_certificates.await_count == 2

    @pytest.mark.asyncio
    async def test_progress_messages(self):
        client = MagicMock()
        client.get_hosts = AsyncMock(return_value=_result([]))
        progress = ProgressQueue(capacity=10)

        await ViewService(client).get_hosts(OperationContext(), ["1.1.1.1"], progress=progress)

        assert await _messages(progress) == ["Fetching 1 host..."]

    @pytest.mark.asyncio
    async def test_second_batch_failure_is_partial(self):
        client = MagicMock()
        client.get_hosts = AsyncMock(
            side_effect=[_result([Host(ip="1.1.1.1")]), GenericError("boom", 500)]
        )
        ids = ["1.1.1.1"] * 150

        result = await ViewService(client).get_hosts(OperationContext(), ids)

        assert [h.ip for h in result.items] == ["1.1.1.1"]
        assert isinstance(result.partial_error, PartialError)


# =============================================================================
# Search
# =============================================================================


def _search_client(*pages):
    client = MagicMock()
    client.search = AsyncMock(side_effect=[_result(page) for page in pages])
    client.search_collection = AsyncMock(side_effect=[_result(page) for page in pages])
    return client


class TestSearchService:
    @pytest.mark.asyncio
    async def test_follows_pages_up_to_max(self):
        client = _search_client(
            SearchPage(hits=[{"n": 1}], total_hits=3, next_page_token="a"),
            SearchPage(hits=[{"n": 2}], total_hits=3, next_page_token="b"),
            SearchPage(hits=[{"n": 3}], total_hits=3),
        )

        result = await SearchService(client).search(
            OperationContext(), SearchParams(query="*", max_pages=2)
        )

        assert result.hits == [{"n": 1}, {"n": 2}]
        assert result.total_hits == 3
        tokens = [call.kwargs["page_token"] for call in client.search.await_args_list]
        assert tokens == [None, "a"]

    @pytest.mark.asyncio
    async def test_unlimited_pages(self):
        client = _search_client(
            SearchPage(hits=[{"n": 1}], next_page_token="a"),
            SearchPage(hits=[{"n": 2}]),
        )

        result = await SearchService(client).search(
            OperationContext(), SearchParams(query="*", max_pages=-1)
        )

        assert len(result.hits) == 2

    @pytest.mark.asyncio
    async def test_collection_search(self):
        client = _search_client(SearchPage(hits=[{"n": 1}]))

        await SearchService(client).search(
            OperationContext(), SearchParams(query="*", collection_id="col")
        )

        client.search_collection.assert_awaited_once()
        assert client.search_collection.await_args.args[1] == "col"
        client.search.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params,message",
        [
            (SearchParams(query="*", page_size=0), "page size must be greater than 0"),
            (SearchParams(query="*", max_pages=0), "max pages must be greater than 0"),
        ],
    )
    async def test_invalid_pagination(self, params, message):
        with pytest.raises(InvalidPaginationParamsError, match=message):
            await SearchService(MagicMock()).search(OperationContext(), params)

    @pytest.mark.asyncio
    async def test_progress_from_second_page(self):
        client = _search_client(
            SearchPage(hits=[{"n": 1}, {"n": 2}], next_page_token="a"),
            SearchPage(hits=[{"n": 3}]),
        )
        progress = ProgressQueue(capacity=10)

        await SearchService(client).search(
            OperationContext(), SearchParams(query="*", max_pages=5), progress=progress
        )

        assert await _messages(progress) == [
            "Fetching search results (page 2/5, 2 hits collected)..."
        ]

    @pytest.mark.asyncio
    async def test_first_page_failure_raises(self):
        client = MagicMock()
        client.search = AsyncMock(side_effect=GenericError("boom", 500))

        with pytest.raises(GenericError):
            await SearchService(client).search(OperationContext(), SearchParams(query="*"))

    @pytest.mark.asyncio
    async def test_streaming_hits(self):
        client = _search_client(SearchPage(hits=[{"n": 1}]))
        stream = StreamQueue(capacity=4)

        result = await SearchService(client).search(
            OperationContext(), SearchParams(query="*"), stream=stream
        )

        assert result.hits == []
        assert (await stream.get()).data == {"n": 1}


# =============================================================================
# History
# =============================================================================


class TestHostHistory:
    @pytest.mark.asyncio
    async def test_walks_back_through_windows(self):
        full_page = HostTimelinePage(
            events=[{"resource": {"n": i}} for i in range(100)], scanned_to=_dt(4)
        )
        last_page = HostTimelinePage(events=[{"resource": {"n": 100}}], scanned_to=_dt(1))
        client = MagicMock()
        client.host_timeline = AsyncMock(side_effect=[_result(full_page), _result(last_page)])

        result = await HistoryService(client).get_host_history(
            OperationContext(), "1.1.1.1", _dt(1), _dt(8)
        )

        ends = [call.args[3] for call in client.host_timeline.await_args_list]
        assert ends == [_dt(8), _dt(4)]
        assert len(result.items) == 101
        assert result.items[-1] == {"n": 100}

    @pytest.mark.asyncio
    async def test_naive_scan_position_continues_paging(self):
        full_page = HostTimelinePage.model_validate(
            {"events": [{"resource": {"n": i}} for i in range(100)], "scanned_to": "2025-01-04T00:00:00"}
        )
        last_page = HostTimelinePage.model_validate(
            {"events": [{"resource": {"n": 100}}], "scanned_to": "2025-01-01T00:00:00"}
        )
        client = MagicMock()
        client.host_timeline = AsyncMock(side_effect=[_result(full_page), _result(last_page)])

        result = await HistoryService(client).get_host_history(
            OperationContext(), "1.1.1.1", _dt(1), _dt(8)
        )

        ends = [call.args[3] for call in client.host_timeline.await_args_list]
        assert ends == [_dt(8), _dt(4)]
        assert len(result.items) == 101

    @pytest.mark.asyncio
    async def test_reversed_window(self):
        with pytest.raises(UsageError, match="is after end time"):
            await HistoryService(MagicMock()).get_host_history(
                OperationContext(), "1.1.1.1", _dt(5), _dt(1)
            )


class TestCertificateHistory:
    @pytest.mark.asyncio
    async def test_cursor_pages_and_messages(self):
        client = MagicMock()
        client.host_observations_with_certificate = AsyncMock(
            side_effect=[
                _result(ObservationsPage(ranges=[{"ip": "1.1.1.1"}], next_page_token="n")),
                _result(ObservationsPage(ranges=[{"ip": "2.2.2.2"}])),
            ]
        )
        progress = ProgressQueue(capacity=10)

        result = await HistoryService(client).get_certificate_history(
            OperationContext(), "ab" * 32, _dt(1), _dt(3), progress=progress
        )

        assert [r.ip for r in result.items] == ["1.1.1.1", "2.2.2.2"]
        cert = "ab" * 32
        assert await _messages(progress) == [
            f"Fetching certificate observations for {cert} (2025-01-01 to 2025-01-03)...",
            f"Fetching certificate observations for {cert} "
            "(2025-01-01 to 2025-01-03, page 2, 1 observations so far)...",
        ]


class TestWebPropertyHistory:
    @pytest.mark.asyncio
    async def test_one_snapshot_per_day(self):
        client = MagicMock()
        client.get_web_properties = AsyncMock(
            side_effect=[
                _result([WebProperty(hostname="a.com", port=443, endpoints=[{"path": "/"}])]),
                _result([WebProperty(hostname="a.com", port=443)]),
                _result([]),
            ]
        )

        result = await HistoryService(client).get_web_property_history(
            OperationContext(), "a.com:443", _dt(1), _dt(3)
        )

        assert [s.time for s in result.items] == [_dt(1), _dt(2), _dt(3)]
        assert [s.exists for s in result.items] == [True, False, False]
        at_times = [call.kwargs["at_time"] for call in client.get_web_properties.await_args_list]
        assert at_times == [_dt(1), _dt(2), _dt(3)]

    @pytest.mark.asyncio
    async def test_failed_day_recorded_and_continues(self):
        client = MagicMock()
        client.get_web_properties = AsyncMock(
            side_effect=[
                _result([WebProperty(hostname="a.com", port=443, labels=["x"])]),
                GenericError("boom", 503),
                _result([WebProperty(hostname="a.com", port=443, labels=["x"])]),
            ]
        )

        result = await HistoryService(client).get_web_property_history(
            OperationContext(), "a.com:443", _dt(1), _dt(3)
        )

        assert len(result.items) == 3
        assert [s.exists for s in result.items] == [True, False, True]
        assert result.partial_error is not None

    @pytest.mark.asyncio
    async def test_max_days(self):
        with pytest.raises(UsageError, match="maximum of 2"):
            await HistoryService(MagicMock(), max_days=2).get_web_property_history(
                OperationContext(), "a.com:443", _dt(1), _dt(5)
            )


# =============================================================================
# Organizations
# =============================================================================


class TestOrganizationsService:
    @pytest.mark.asyncio
    async def test_details_uses_default_org(self):
        client = MagicMock()
        client.get_organization_details = AsyncMock(
            return_value=_result(OrganizationDetails(uid="org-1", name="Acme"))
        )

        result = await OrganizationsService(client, "org-1").get_details(OperationContext())

        assert client.get_organization_details.await_args.args[1] == "org-1"
        assert result.data.name == "Acme"

    @pytest.mark.asyncio
    async def test_missing_org_id(self):
        with pytest.raises(UsageError, match="organization ID is required"):
            await OrganizationsService(MagicMock()).get_details(OperationContext())

    @pytest.mark.asyncio
    async def test_members_all_pages(self):
        client = MagicMock()
        client.list_organization_members = AsyncMock(
            side_effect=[
                _result(
                    MembersPage(
                        members=[OrganizationMember(uid="u1")],
                        pagination=Pagination(next_page_token="n"),
                    )
                ),
                _result(MembersPage(members=[OrganizationMember(uid="u2")])),
            ]
        )

        result = await OrganizationsService(client, "org-1").list_members(OperationContext())

        assert [m.id for m in result.items] == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_members_later_failure_is_fatal(self):
        client = MagicMock()
        client.list_organization_members = AsyncMock(
            side_effect=[
                _result(
                    MembersPage(
                        members=[OrganizationMember(uid="u1")],
                        pagination=Pagination(next_page_token="n"),
                    )
                ),
                GenericError("boom", 500),
            ]
        )

        with pytest.raises(GenericError):
            await OrganizationsService(client, "org-1").list_members(OperationContext())


# =============================================================================
# Credits
# =============================================================================


class TestCreditsService:
    @pytest.mark.asyncio
    async def test_user_credits(self):
        client = MagicMock()
        client.get_user_credits = AsyncMock(return_value=_result(UserCredits(balance=42)))

        result = await CreditsService(client).get_user_credits(OperationContext())

        assert result.data.balance == 42
        assert result.meta.status_code == 200

    @pytest.mark.asyncio
    async def test_organization_credits_explicit_org_wins(self):
        client = MagicMock()
        client.get_organization_credits = AsyncMock(
            return_value=_result(OrganizationCredits(balance=100))
        )

        result = await CreditsService(client, "org-default").get_organization_credits(
            OperationContext(), "org-2"
        )

        assert client.get_organization_credits.await_args.args[1] == "org-2"
        assert result.data.balance == 100

    @pytest.mark.asyncio
    async def test_organization_credits_need_an_org(self):
        client = MagicMock()
        client.get_organization_credits = AsyncMock()

        with pytest.raises(UsageError, match="organization ID is required"):
            await CreditsService(client).get_organization_credits(OperationContext())
        client.get_organization_credits.assert_not_awaited()


# =============================================================================
# Aggregate
# =============================================================================


class TestAggregateService:
    @pytest.mark.asyncio
    async def test_global_aggregate(self):
        client = MagicMock()
        client.aggregate = AsyncMock(
            return_value=_result(AggregateResponse(buckets=[AggregateBucket(key="443", count=9)]))
        )
        client.aggregate_collection = AsyncMock()

        result = await AggregateService(client).aggregate(
            OperationContext(),
            AggregateParams(query="*", field="host.services.port", filter_by_query=True),
        )

        assert client.aggregate.await_args.args[1:] == ("*", "host.services.port", 25)
        assert client.aggregate.await_args.kwargs == {
            "count_by_level": None,
            "filter_by_query": True,
        }
        client.aggregate_collection.assert_not_awaited()
        assert [(b.key, b.count) for b in result.buckets] == [("443", 9)]

    @pytest.mark.asyncio
    async def test_collection_aggregate(self):
        client = MagicMock()
        client.aggregate = AsyncMock()
        client.aggregate_collection = AsyncMock(return_value=_result(AggregateResponse()))

        result = await AggregateService(client).aggregate(
            OperationContext(),
            AggregateParams(query="*", field="host.ip", num_buckets=3, collection_id="col-1"),
        )

        assert client.aggregate_collection.await_args.args[1:] == ("col-1", "*", "host.ip", 3)
        client.aggregate.assert_not_awaited()
        assert result.buckets == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("num_buckets", [0, -1, 10001])
    async def test_bucket_count_out_of_range(self, num_buckets):
        client = MagicMock()
        client.aggregate = AsyncMock()

        with pytest.raises(UsageError, match="num-buckets"):
            await AggregateService(client).aggregate(
                OperationContext(),
                AggregateParams(query="*", field="host.ip", num_buckets=num_buckets),
            )
        client.aggregate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bucket_count_bounds_accepted(self):
        client = MagicMock()
        client.aggregate = AsyncMock(return_value=_result(AggregateResponse()))

        for num_buckets in (1, 10000):
            await AggregateService(client).aggregate(
                OperationContext(),
                AggregateParams(query="*", field="host.ip", num_buckets=num_buckets),
            )

        assert client.aggregate.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_field_rejected(self):
        with pytest.raises(UsageError, match="field"):
            await AggregateService(MagicMock()).aggregate(
                OperationContext(), AggregateParams(query="*", field="  ")
            )
