"""
Data models for paged fetch operations.

Defines:
- ResponseMeta: sanitized metadata of the last successful exchange
- PageResult: what one page/batch call hands back to the fetch loop
- FetchResult: accumulated items plus metadata and an optional partial error
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar
from urllib.parse import urlsplit, urlunsplit

from core.errors.exceptions import PartialError

T = TypeVar("T")

REDACTED = "********"

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "x-auth-token",
        "proxy-authorization",
    }
)


def sanitize_url(url: str) -> str:
    """Strip userinfo (user:password@) from a URL."""
    if not url:
        return ""
    parts = urlsplit(url)
    if parts.username is None and parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def sanitize_headers(
    request_headers: Mapping[str, str] | None = None,
    response_headers: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Merge request/response headers under req-/res- prefixes.

    Values of credential-bearing headers are replaced with a fixed mask;
    the header names keep their original case.
    """
    headers: dict[str, str] = {}
    for prefix, source in (("req-", request_headers), ("res-", response_headers)):
        if not source:
            continue
        for name, value in source.items():
            if name.lower() in SENSITIVE_HEADERS:
                value = REDACTED
            key = prefix + name
            if key in headers:
                headers[key] = f"{headers[key]}, {value}"
            else:
                headers[key] = value
    return headers


@dataclass
class ResponseMeta:
    """
    Metadata about a fetch, rendered alongside its data.

    Attributes:
        method: HTTP method of the last successful request
        url: Request URL without credentials
        status_code: HTTP status of the last successful response
        latency: Seconds; wall clock of the whole fetch once finalized
        attempts: Attempts used by the last successful call
        page_count: Pages/batches processed
        headers: Sanitized req-/res- headers
    """

    method: str = ""
    url: str = ""
    status_code: int = 0
    latency: float = 0.0
    attempts: int = 1
    page_count: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def retry_count(self) -> int:
        return max(self.attempts - 1, 0)

    @classmethod
    def from_exchange(
        cls,
        method: str,
        url: str,
        status_code: int,
        latency: float,
        attempts: int = 1,
        request_headers: Mapping[str, str] | None = None,
        response_headers: Mapping[str, str] | None = None,
    ) -> "ResponseMeta":
        return cls(
            method=method,
            url=sanitize_url(url),
            status_code=status_code,
            latency=latency,
            attempts=attempts,
            headers=sanitize_headers(request_headers, response_headers),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "status_code": self.status_code,
            "latency_ms": round(self.latency * 1000, 3),
            "attempts": self.attempts,
            "retry_count": self.retry_count,
            "page_count": self.page_count,
            "headers": dict(self.headers),
        }


@dataclass
class PageResult(Generic[T]):
    """
    One page or batch as returned to the fetch loop.

    Attributes:
        items: Items contributed by this page
        meta: Metadata of the exchange that produced it
        next_token: Server continuation token, if any
        extra: Per-page values strategies need (total hits, scanned_to, ...)
    """

    items: list[T] = field(default_factory=list)
    meta: ResponseMeta | None = None
    next_token: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class FetchResult(Generic[T]):
    """
    Outcome of a complete fetch.

    partial_error is set only when the fetch stopped early after at least
    one successful page (or while streaming). A first-page failure never
    produces a FetchResult.
    """

    items: list[T] = field(default_factory=list)
    meta: ResponseMeta | None = None
    partial_error: PartialError | None = None

    @property
    def is_partial(self) -> bool:
        return self.partial_error is not None


__all__ = [
    "FetchResult",
    "PageResult",
    "REDACTED",
    "ResponseMeta",
    "SENSITIVE_HEADERS",
    "sanitize_headers",
    "sanitize_url",
]
