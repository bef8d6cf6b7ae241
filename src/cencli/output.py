"""
Command output: JSON / NDJSON rendering and the queue consumers.

Data is written to stdout. Progress messages, response metadata and
errors are written to stderr so that stdout stays machine readable.
"""

import json
import logging
import sys
from typing import Any, TextIO

from core.errors import CliError, PartialError
from core.events import ProgressQueue, StreamQueue
from core.fetch import ResponseMeta
from core.utils import json_serializer

logger = logging.getLogger(__name__)

OUTPUT_JSON = "json"
OUTPUT_NDJSON = "ndjson"


def to_json(data: Any, indent: int | None = None) -> str:
    return json.dumps(data, indent=indent, default=json_serializer, ensure_ascii=False)


def render(data: Any, output_format: str = OUTPUT_JSON, out: TextIO | None = None) -> None:
    """
    Write data to out.

    json: one indented document. ndjson: one compact line per list
    element, or a single line for anything that is not a list.
    """
    out = out or sys.stdout
    if output_format == OUTPUT_NDJSON:
        rows = data if isinstance(data, list) else [data]
        for row in rows:
            out.write(to_json(row) + "\n")
    else:
        out.write(to_json(data, indent=2) + "\n")
    out.flush()


def print_error(error: CliError, err: TextIO | None = None) -> None:
    """Write "[Title]" followed by the message to stderr."""
    err = err or sys.stderr
    err.write(f"[{error.title}]\n{error.message}\n")
    err.flush()


def print_partial_error(error: PartialError | None, err: TextIO | None = None) -> None:
    if error is None:
        return
    print_error(error, err)


def print_meta(meta: ResponseMeta | None, err: TextIO | None = None) -> None:
    if meta is None:
        return
    err = err or sys.stderr
    err.write(to_json({"meta": meta.to_dict()}, indent=2) + "\n")
    err.flush()


async def consume_progress(
    queue: ProgressQueue, err: TextIO | None = None, show: bool = True
) -> int:
    """
    Drain progress events until the queue closes.

    Messages are echoed to err when show is set; every event is logged at
    debug level. Returns the number of events read.
    """
    err = err or sys.stderr
    count = 0
    async for event in queue:
        count += 1
        if event.done:
            break
        logger.debug(
            "Progress",
            extra={"error_message": str(event.err)} if event.err is not None else None,
        )
        if show and event.message and event.err is None:
            err.write(event.message + "\n")
            err.flush()
    return count


async def consume_stream(queue: StreamQueue, out: TextIO | None = None) -> int:
    """Write each streamed item as one NDJSON line until the queue closes."""
    out = out or sys.stdout
    written = 0
    async for item in queue:
        if item.done:
            break
        out.write(to_json(item.data) + "\n")
        out.flush()
        written += 1
    logger.debug("Stream consumer finished", extra={"items_collected": written})
    return written


__all__ = [
    "OUTPUT_JSON",
    "OUTPUT_NDJSON",
    "consume_progress",
    "consume_stream",
    "print_error",
    "print_meta",
    "print_partial_error",
    "render",
    "to_json",
]
