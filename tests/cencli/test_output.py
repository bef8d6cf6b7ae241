"""
Tests for command output rendering and the queue consumers.
"""

import io
import json
from datetime import UTC, datetime

import pytest

from cencli.models import OrganizationDetails
from cencli.output import (
    consume_progress,
    consume_stream,
    print_error,
    print_meta,
    print_partial_error,
    render,
    to_json,
)
from core.context import OperationContext
from core.errors import GenericError, PartialError, UsageError
from core.events import ProgressQueue, StreamQueue
from core.events.progress import report_error, report_message
from core.events.streaming import emit
from core.fetch import ResponseMeta
from core.types import Stage


class TestRender:
    """Test JSON and NDJSON rendering."""

    def test_json_is_indented(self):
        """json output is one indented document."""
        out = io.StringIO()
        render([{"a": 1}], "json", out)
        assert out.getvalue() == '[\n  {\n    "a": 1\n  }\n]\n'

    def test_ndjson_one_line_per_item(self):
        """ndjson writes one compact line per list element."""
        out = io.StringIO()
        render([{"a": 1}, {"a": 2}], "ndjson", out)
        assert out.getvalue().splitlines() == ['{"a": 1}', '{"a": 2}']

    def test_ndjson_single_object(self):
        """Non-list data is a single ndjson line."""
        out = io.StringIO()
        render({"a": 1}, "ndjson", out)
        assert out.getvalue() == '{"a": 1}\n'

    def test_models_and_datetimes(self):
        """Pydantic models render by alias and UTC datetimes get a Z suffix."""
        details = OrganizationDetails(
            uid="org-1", name="Acme", created_at=datetime(2025, 1, 1, tzinfo=UTC)
        )
        rendered = json.loads(to_json(details))
        assert rendered["uid"] == "org-1"
        assert rendered["name"] == "Acme"
        assert rendered["created_at"] == "2025-01-01T00:00:00Z"

    def test_non_ascii_kept(self):
        """Non-ASCII text is written as is."""
        assert to_json({"name": "café"}) == '{"name": "café"}'


class TestErrorOutput:
    """Test error and metadata output on stderr."""

    def test_print_error(self):
        """Errors are written as [Title] then the message."""
        err = io.StringIO()
        print_error(UsageError("bad flag"), err)
        assert err.getvalue() == "[Usage Error]\nbad flag\n"

    def test_print_partial_error(self):
        """Partial errors carry the partial data title."""
        err = io.StringIO()
        print_partial_error(PartialError(GenericError("boom", 500)), err)
        assert err.getvalue().startswith("[Error Returned from Censys API (partial data)]\n")

    def test_print_partial_error_none(self):
        """No partial error writes nothing."""
        err = io.StringIO()
        print_partial_error(None, err)
        assert err.getvalue() == ""

    def test_print_meta(self):
        """Metadata is wrapped under a meta key."""
        err = io.StringIO()
        print_meta(ResponseMeta(method="GET", url="https://x", status_code=200, page_count=2), err)
        rendered = json.loads(err.getvalue())
        assert rendered["meta"]["status_code"] == 200
        assert rendered["meta"]["page_count"] == 2

    def test_print_meta_none(self):
        """Missing metadata writes nothing."""
        err = io.StringIO()
        print_meta(None, err)
        assert err.getvalue() == ""


class TestConsumeProgress:
    """Test the progress consumer."""

    @pytest.mark.asyncio
    async def test_echoes_messages(self):
        """Messages are echoed and the done event is counted."""
        ctx = OperationContext()
        queue = ProgressQueue(capacity=10)
        await report_message(ctx, queue, Stage.FETCH, "page 1")
        await report_message(ctx, queue, Stage.FETCH, "page 2")
        queue.close()

        err = io.StringIO()
        count = await consume_progress(queue, err)

        assert count == 3
        assert err.getvalue() == "page 1\npage 2\n"

    @pytest.mark.asyncio
    async def test_quiet(self):
        """show=False drains without writing."""
        ctx = OperationContext()
        queue = ProgressQueue(capacity=10)
        await report_message(ctx, queue, Stage.FETCH, "page 1")
        queue.close()

        err = io.StringIO()
        assert await consume_progress(queue, err, show=False) == 2
        assert err.getvalue() == ""

    @pytest.mark.asyncio
    async def test_error_events_not_echoed(self):
        """Error events are logged, not echoed as progress."""
        ctx = OperationContext()
        queue = ProgressQueue(capacity=10)
        await report_error(ctx, queue, Stage.FETCH, GenericError("boom", 500))
        queue.close()

        err = io.StringIO()
        await consume_progress(queue, err)
        assert err.getvalue() == ""


class TestConsumeStream:
    """Test the stream consumer."""

    @pytest.mark.asyncio
    async def test_writes_ndjson(self):
        """Each streamed item becomes one line."""
        ctx = OperationContext()
        queue = StreamQueue(capacity=10)
        await emit(ctx, queue, {"n": 1})
        await emit(ctx, queue, {"n": 2})
        queue.close()

        out = io.StringIO()
        written = await consume_stream(queue, out)

        assert written == 2
        assert out.getvalue().splitlines() == ['{"n": 1}', '{"n": 2}']

    @pytest.mark.asyncio
    async def test_closed_with_error(self):
        """A queue closed with an error still ends the consumer."""
        queue = StreamQueue(capacity=2)
        queue.close(GenericError("boom", 500))

        out = io.StringIO()
        assert await consume_stream(queue, out) == 0
