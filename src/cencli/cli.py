"""cencli command-line entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import re
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TextIO

from dotenv import load_dotenv

from cencli import __version__
from cencli.client import CensysClient, create_client
from cencli.identifiers import AssetType, classify_identifier, classify_identifiers
from cencli.output import (
    consume_progress,
    consume_stream,
    print_error,
    print_meta,
    print_partial_error,
    render,
)
from cencli.services import (
    AggregateParams,
    AggregateService,
    CreditsService,
    HistoryService,
    OrganizationsService,
    SearchParams,
    SearchService,
    ViewService,
)
from cencli.services.aggregate import DEFAULT_NUM_BUCKETS, MAX_NUM_BUCKETS, MIN_NUM_BUCKETS
from cencli.signals import setup_shutdown_signal_handlers
from config.config import CliConfig, load_config
from core.context import OperationContext
from core.errors import (
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
    EXIT_USAGE_ERROR,
    CliError,
    PartialError,
    UsageError,
    exit_code_for,
)
from core.events import ProgressQueue, StreamQueue, report_stage
from core.fetch import ResponseMeta
from core.logging import generate_operation_id, log_exception, setup_logging
from core.types import Stage

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = timedelta(days=7)

_WINDOW_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "y": timedelta(days=365),
}
_WINDOW_PART = re.compile(r"(\d+)([smhdwy])")


class InvalidTimeWindowError(UsageError):
    default_title = "Invalid Time Window"


# =============================================================================
# Argument parsing helpers
# =============================================================================


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp or a plain YYYY-MM-DD date.

    Values without a timezone are taken as UTC.

    Raises:
        InvalidTimeWindowError: value is not a timestamp
    """
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidTimeWindowError(
            f"invalid timestamp '{value}': expected RFC 3339 (2025-01-01T00:00:00Z) or YYYY-MM-DD"
        ) from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_window_duration(value: str) -> timedelta:
    """Parse a human duration such as 2h, 7d, 1w, 1y or 1d12h."""
    text = value.strip().lower()
    parts = _WINDOW_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise InvalidTimeWindowError(
            f"invalid duration '{value}': use a number with a unit s, m, h, d, w or y (e.g. 7d)"
        )
    total = sum((int(n) * _WINDOW_UNITS[u] for n, u in parts), timedelta())
    if total <= timedelta():
        raise InvalidTimeWindowError(f"duration must be greater than 0, got '{value}'")
    return total


def resolve_time_window(
    start: datetime | None,
    end: datetime | None,
    duration: timedelta | None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Resolve --start/--end/--duration into a concrete window.

    - start and end: used as is (duration ignored)
    - start only: end = start + duration
    - end only: start = end - duration
    - neither: the window ends now
    duration defaults to 7 days.
    """
    duration = duration or DEFAULT_HISTORY_WINDOW
    if start is not None and end is not None:
        if end < start:
            raise InvalidTimeWindowError("end time must be after start time")
        return start, end
    if start is not None:
        return start, start + duration
    if end is None:
        end = now or datetime.now(UTC)
    return end - duration, end


def _split_values(values: list[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result


def _global_options() -> argparse.ArgumentParser:
    # Shared by the root parser and every subcommand; SUPPRESS keeps a
    # subcommand from resetting a value given before it.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=argparse.SUPPRESS,
        help="Path to config file (default: ~/.config/cencli/config.yaml)",
    )
    common.add_argument(
        "--output-format",
        "-O",
        choices=["json", "ndjson"],
        default=argparse.SUPPRESS,
        help="Output format (default: json)",
    )
    common.add_argument(
        "--streaming",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Write results as NDJSON while they are fetched",
    )
    common.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Suppress progress messages",
    )
    common.add_argument(
        "--debug",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Debug logging and response metadata on stderr",
    )
    common.add_argument(
        "--no-spinner",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Do not display progress messages",
    )
    common.add_argument(
        "--timeout",
        default=argparse.SUPPRESS,
        help="Overall command timeout, e.g. 30s or 2m (0 disables)",
    )
    common.add_argument(
        "--org-id",
        default=argparse.SUPPRESS,
        help="Organization ID to use (default: CENSYS_ORG_ID)",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _global_options()
    parser = argparse.ArgumentParser(
        prog="cencli",
        description="Query the Censys platform from the command line",
        parents=[common],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # View hosts
    cencli view 8.8.8.8 1.1.1.1

    # Search, following up to 5 pages
    cencli search 'host.services.port: 443' --max-pages 5

    # Host timeline for the last two weeks
    cencli history 8.8.8.8 --duration 14d

    # Web property snapshots streamed as NDJSON
    cencli history example.com:443 --duration 3d --streaming

    # Organization members
    cencli org members --org-id <uuid>

    # Top 10 ports across hosts running nginx
    cencli aggregate "host.services.software.product: nginx" host.services.port -n 10

    # Credit balances
    cencli credits
    cencli org credits --org-id <uuid>
        """,
    )
    parser.add_argument("--version", action="version", version=f"cencli {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # View command
    parser_view = subparsers.add_parser(
        "view", parents=[common], help="Fetch hosts, certificates or web properties by ID"
    )
    parser_view.add_argument(
        "ids", nargs="+", help="Asset identifiers (space or comma separated, one asset type)"
    )
    parser_view.add_argument(
        "--at-time", type=str, default=None, help="Fetch assets as of this time (RFC 3339)"
    )
    parser_view.set_defaults(handler=run_view, streamable=True, command_parser=parser_view)

    # Search command
    parser_search = subparsers.add_parser("search", parents=[common], help="Run a search query")
    parser_search.add_argument("query", help="Search query")
    parser_search.add_argument(
        "--collection-id", default=None, help="Search within a collection"
    )
    parser_search.add_argument(
        "--fields", action="append", default=[], help="Fields to return (repeat or comma separate)"
    )
    parser_search.add_argument(
        "--page-size", type=int, default=None, help="Hits per page (default: search.page-size)"
    )
    parser_search.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum pages to fetch, -1 for all (default: search.max-pages)",
    )
    parser_search.set_defaults(handler=run_search, streamable=True, command_parser=parser_search)

    # History command
    parser_history = subparsers.add_parser(
        "history", parents=[common], help="Fetch the history of one asset"
    )
    parser_history.add_argument("id", help="Host IP, certificate fingerprint or hostname:port")
    parser_history.add_argument(
        "--type",
        choices=[t.value for t in AssetType],
        default=None,
        help="Asset type (default: inferred from the identifier)",
    )
    parser_history.add_argument("--start", "-s", default=None, help="Start time (RFC 3339)")
    parser_history.add_argument("--end", "-e", default=None, help="End time (RFC 3339)")
    parser_history.add_argument(
        "--duration", "-d", default=None, help="Time window, e.g. 2h, 7d, 1w (default: 7d)"
    )
    parser_history.set_defaults(
        handler=run_history, streamable=True, command_parser=parser_history
    )

    # Org command
    parser_org = subparsers.add_parser("org", parents=[common], help="Organization commands")
    org_subparsers = parser_org.add_subparsers(dest="org_command", help="Organization commands")
    parser_details = org_subparsers.add_parser(
        "details", parents=[common], help="Show organization details"
    )
    parser_details.set_defaults(
        handler=run_org_details, streamable=False, command_parser=parser_details
    )
    parser_members = org_subparsers.add_parser(
        "members", parents=[common], help="List organization members"
    )
    parser_members.add_argument("--page-size", type=int, default=None, help="Members per page")
    parser_members.set_defaults(
        handler=run_org_members, streamable=True, command_parser=parser_members
    )
    parser_org_credits = org_subparsers.add_parser(
        "credits", parents=[common], help="Show organization credit balance"
    )
    parser_org_credits.set_defaults(
        handler=run_org_credits, streamable=False, command_parser=parser_org_credits
    )
    parser_org.set_defaults(command_parser=parser_org)

    # Credits command
    parser_credits = subparsers.add_parser(
        "credits", parents=[common], help="Show your free user credit balance"
    )
    parser_credits.set_defaults(
        handler=run_credits, streamable=False, command_parser=parser_credits
    )

    # Aggregate command
    parser_aggregate = subparsers.add_parser(
        "aggregate", parents=[common], help="Count values of a field across matching assets"
    )
    parser_aggregate.add_argument("query", help="Search query")
    parser_aggregate.add_argument("field", help="Field to bucket, e.g. host.services.port")
    parser_aggregate.add_argument(
        "--collection-id", "-c", default=None, help="Aggregate within a collection"
    )
    parser_aggregate.add_argument(
        "--num-buckets",
        "-n",
        type=int,
        default=DEFAULT_NUM_BUCKETS,
        help=(
            f"Number of buckets ({MIN_NUM_BUCKETS}-{MAX_NUM_BUCKETS}, "
            f"default: {DEFAULT_NUM_BUCKETS})"
        ),
    )
    parser_aggregate.add_argument(
        "--count-by-level",
        "-l",
        default=None,
        help="Document level counted per bucket, e.g. host, service or protocol",
    )
    parser_aggregate.add_argument(
        "--filter-by-query",
        "-f",
        action="store_true",
        default=None,
        help="Limit buckets to values that match the query",
    )
    parser_aggregate.set_defaults(
        handler=run_aggregate, streamable=False, command_parser=parser_aggregate
    )


    return parser


def config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map global flags that were given on the command line to config keys."""
    overrides: dict[str, Any] = {}
    for flag, key in (
        ("output_format", "output-format"),
        ("streaming", "streaming"),
        ("quiet", "quiet"),
        ("debug", "debug"),
        ("no_spinner", "no-spinner"),
        ("timeout", "timeout"),
    ):
        if hasattr(args, flag):
            overrides[key] = getattr(args, flag)
    if getattr(args, "org_id", None):
        overrides["api"] = {"org-id": args.org_id}
    return overrides


# =============================================================================
# Command handlers
# =============================================================================


@dataclass
class CommandOutput:
    data: Any
    meta: ResponseMeta | None = None
    partial_error: PartialError | None = None


Handler = Callable[..., Awaitable[CommandOutput]]


async def run_view(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    asset_type, ids = classify_identifiers(_split_values(args.ids))
    at_time = parse_timestamp(args.at_time) if args.at_time else None
    service = ViewService(client)

    if asset_type is AssetType.HOST:
        result = await service.get_hosts(ctx, ids, at_time, progress=progress, stream=stream)
    elif asset_type is AssetType.CERTIFICATE:
        if at_time is not None:
            raise UsageError("--at-time is not supported for certificates")
        result = await service.get_certificates(ctx, ids, progress=progress, stream=stream)
    else:
        result = await service.get_web_properties(
            ctx, ids, at_time, progress=progress, stream=stream
        )
    return CommandOutput(result.items, result.meta, result.partial_error)


async def run_search(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    params = SearchParams(
        query=args.query,
        collection_id=args.collection_id,
        fields=_split_values(args.fields) or None,
        page_size=args.page_size if args.page_size is not None else config.search.page_size,
        max_pages=args.max_pages if args.max_pages is not None else config.search.max_pages,
    )
    result = await SearchService(client).search(ctx, params, progress=progress, stream=stream)
    logger.info(
        "Search returned %d of %d total hits",
        len(result.hits),
        result.total_hits,
        extra={"operation": "search", "items_collected": len(result.hits)},
    )
    return CommandOutput(result.hits, result.meta, result.partial_error)


async def run_history(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    asset_type = AssetType(args.type) if args.type else classify_identifier(args.id)
    start, end = resolve_time_window(
        parse_timestamp(args.start) if args.start else None,
        parse_timestamp(args.end) if args.end else None,
        parse_window_duration(args.duration) if args.duration else None,
    )
    logger.debug(
        "Time window %s to %s",
        start.isoformat(),
        end.isoformat(),
        extra={"operation": f"{asset_type.value}_history"},
    )
    service = HistoryService(client, max_days=config.history.max_days or None)

    if asset_type is AssetType.HOST:
        result = await service.get_host_history(
            ctx, args.id, start, end, progress=progress, stream=stream
        )
    elif asset_type is AssetType.CERTIFICATE:
        result = await service.get_certificate_history(
            ctx, args.id, start, end, progress=progress, stream=stream
        )
    else:
        result = await service.get_web_property_history(
            ctx, args.id, start, end, progress=progress, stream=stream
        )
    return CommandOutput(result.items, result.meta, result.partial_error)


async def run_org_details(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    result = await OrganizationsService(client, config.api.org_id).get_details(ctx)
    return CommandOutput(result.data, result.meta)


async def run_org_members(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    result = await OrganizationsService(client, config.api.org_id).list_members(
        ctx, page_size=args.page_size, progress=progress, stream=stream
    )
    return CommandOutput(result.items, result.meta, result.partial_error)


async def run_org_credits(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    result = await CreditsService(client, config.api.org_id).get_organization_credits(ctx)
    return CommandOutput(result.data, result.meta)


async def run_credits(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    result = await CreditsService(client).get_user_credits(ctx)
    return CommandOutput(result.data, result.meta)


async def run_aggregate(
    ctx: OperationContext,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    progress: ProgressQueue | None,
    stream: StreamQueue | None,
) -> CommandOutput:
    params = AggregateParams(
        query=args.query,
        field=args.field,
        num_buckets=args.num_buckets,
        collection_id=args.collection_id,
        count_by_level=args.count_by_level,
        filter_by_query=args.filter_by_query,
    )
    result = await AggregateService(client).aggregate(ctx, params)
    logger.info(
        "Aggregation returned %d buckets",
        len(result.buckets),
        extra={"operation": "aggregate", "items_collected": len(result.buckets)},
    )
    return CommandOutput(result.buckets, result.meta)



# =============================================================================
# Execution
# =============================================================================


ClientFactory = Callable[[CliConfig], CensysClient]


async def run_with_consumers(
    ctx: OperationContext,
    handler: Handler,
    client: CensysClient,
    args: argparse.Namespace,
    config: CliConfig,
    *,
    streaming: bool,
    out: TextIO,
    err: TextIO,
) -> CommandOutput:
    """
    Run a handler with its progress (and optionally stream) consumer tasks.

    Both queues are closed exactly once when the handler finishes, with
    the handler's error if it raised, and their consumers are drained.
    """
    progress = ProgressQueue()
    show_progress = not (config.quiet or config.no_spinner)
    progress_task = asyncio.create_task(consume_progress(progress, err, show=show_progress))

    stream: StreamQueue | None = None
    stream_task: asyncio.Task | None = None
    if streaming:
        stream = StreamQueue()
        stream_task = asyncio.create_task(consume_stream(stream, out))

    final_error: Exception | None = None
    try:
        await report_stage(ctx, progress, Stage.PREPARE)
        return await handler(ctx, client, args, config, progress, stream)
    except Exception as e:
        final_error = e
        raise
    finally:
        if stream is not None and stream_task is not None:
            stream.close(final_error)
            await stream_task
        progress.close(final_error)
        await progress_task


async def execute(
    args: argparse.Namespace,
    config: CliConfig,
    client_factory: ClientFactory = create_client,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Run the selected command and return its exit code."""
    out = out or sys.stdout
    err = err or sys.stderr

    root = OperationContext()
    remove_handlers = setup_shutdown_signal_handlers(root.cancel)
    ctx = root.with_timeout(config.timeout)
    streaming = config.streaming and getattr(args, "streamable", False)

    try:
        async with client_factory(config) as client:
            output = await run_with_consumers(
                ctx,
                args.handler,
                client,
                args,
                config,
                streaming=streaming,
                out=out,
                err=err,
            )
    except CliError as e:
        log_exception(logger, e, "Command failed", level=logging.DEBUG)
        print_error(e, err)
        if e.should_print_usage and getattr(args, "command_parser", None) is not None:
            args.command_parser.print_usage(err)
        return exit_code_for(e)
    finally:
        remove_handlers()
        root.cancel()

    if not streaming:
        render(output.data, config.output_format, out)
    if config.debug:
        print_meta(output.meta, err)
    if output.partial_error is not None:
        print_partial_error(output.partial_error, err)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    # Load environment variables from .env file before any config access
    load_dotenv(Path.cwd() / ".env")

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command or not hasattr(args, "handler"):
        (getattr(args, "command_parser", None) or parser).print_help(sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        config = load_config(getattr(args, "config", None), config_overrides(args))
    except CliError as e:
        print_error(e)
        return exit_code_for(e)

    setup_logging(
        console_level=logging.DEBUG if config.debug else logging.WARNING,
        command=args.command,
        operation_id=generate_operation_id(),
    )
    logger.debug(
        "Starting command",
        extra={
            "operation": args.command,
            "config_path": str(config.config_path) if config.config_path else None,
        },
    )

    try:
        return asyncio.run(execute(args, config))
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        log_exception(logger, e, "Unexpected error")
        return exit_code_for(e)


__all__ = [
    "CommandOutput",
    "InvalidTimeWindowError",
    "build_parser",
    "config_overrides",
    "execute",
    "main",
    "parse_timestamp",
    "parse_window_duration",
    "resolve_time_window",
]
