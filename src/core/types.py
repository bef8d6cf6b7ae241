"""
Core types and protocols used across modules.

This module provides base enums and protocol definitions that are shared
across the core library so the fetch engine, transport and CLI agree on
the same vocabulary.
"""

from enum import Enum
from typing import Any, Protocol


class ErrorKind(Enum):
    """
    Tag identifying which variant of the client error hierarchy an error is.

    Categories:
        STRUCTURED: API returned a structured problem payload
                    (title/detail/status/instance/field errors)
        UNAUTHORIZED: API rejected the credentials (code/status/message/reason)
        GENERIC: Any other non-success HTTP response (message/status/body)
        CANCELLED: The operation context was cancelled
        DEADLINE_EXCEEDED: The operation context ran out of time
        UNKNOWN: Unclassified failure, never retried
    """

    STRUCTURED = "structured"
    UNAUTHORIZED = "unauthorized"
    GENERIC = "generic"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    UNKNOWN = "unknown"


class Stage(Enum):
    """Phase of a command reported through progress events."""

    PREPARE = "prepare"
    FETCH = "fetch"
    PROCESS = "process"
    RENDER = "render"


class BackoffKind(Enum):
    """Delay growth between retry attempts."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class Transport(Protocol):
    """
    Protocol for performing one remote round trip.

    Implementations raise the payload exceptions from core.errors.payloads
    on non-success responses so the classifier can categorize them.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Perform a request and return an ApiResponse.

        Args:
            method: HTTP method
            path: Path relative to the configured base URL
            params: Query string parameters
            json_body: JSON request body

        Returns:
            ApiResponse carrying decoded data and exchange metadata
        """
        ...

    async def close(self) -> None:
        ...


__all__ = [
    "BackoffKind",
    "ErrorKind",
    "Stage",
    "Transport",
]
