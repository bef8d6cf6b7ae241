"""
Core library: Reusable, transport-agnostic fetch engine.

This package contains the machinery every data-fetching command is built
on, independent of the remote API being queried.

Modules:
    errors      - Client error hierarchy and failure classification
    resilience  - Retry executor with fixed/linear/exponential backoff
    events      - Bounded single-producer queue for progress and streaming
    fetch       - Paged fetch loop, continuation strategies, partial results
    http        - aiohttp transport raising classifiable payload errors
    logging     - Structured JSON/console logging with context variables
    context     - Cancellable operation context with optional deadline

Design Principles:
    - Remote calls are opaque, injectable operations
    - First failure is fatal, later failures degrade to partial results
    - Async-first, one producer per queue
"""

from .types import BackoffKind, ErrorKind, Stage, Transport

__version__ = "0.1.0"

__all__ = [
    "BackoffKind",
    "ErrorKind",
    "Stage",
    "Transport",
]
