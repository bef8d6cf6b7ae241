"""
Event delivery module.

Provides a bounded, backpressure-respecting queue and its two uses:
progress notifications and item streaming. Functions accept an optional
queue; passing None turns every call into a no-op.
"""

from core.events.progress import (
    ProgressEvent,
    ProgressQueue,
    report_error,
    report_message,
    report_stage,
)
from core.events.queue import BoundedEventQueue, QueueClosedError
from core.events.streaming import (
    StreamItem,
    StreamQueue,
    emit,
    emit_or_collect,
    is_streaming,
)

__all__ = [
    # Queue
    "BoundedEventQueue",
    "QueueClosedError",
    # Progress
    "ProgressEvent",
    "ProgressQueue",
    "report_stage",
    "report_message",
    "report_error",
    # Streaming
    "StreamItem",
    "StreamQueue",
    "emit",
    "emit_or_collect",
    "is_streaming",
]
