"""
Async HTTP transport using aiohttp.

Performs exactly one round trip per call; retries belong to the
RetryExecutor. Non-success responses are raised as payload exceptions
(structured problem, authentication failure or bare transport error) so
the classifier can categorize them.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from core.errors.payloads import ProblemDocument, payload_error
from core.logging.context import get_log_context

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "cencli"
SLOW_REQUEST_SECONDS = 2.0


@dataclass
class ApiResponse:
    """Decoded response body plus exchange metadata."""

    data: Any
    method: str
    url: str
    status: int
    latency: float
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)


def _clean_params(params: dict[str, Any] | None) -> dict[str, str] | None:
    if not params:
        return None
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            cleaned[key] = ",".join(str(v) for v in value)
        else:
            cleaned[key] = str(value)
    return cleaned or None


def _decode(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


class AiohttpTransport:
    """Bearer-token HTTP transport for the platform API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        org_id: str | None = None,
        timeout: float | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else ""

        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"base_url must start with http:// or https://, got: {self.base_url!r}"
            )

        self.org_id = org_id or None
        self.timeout = timeout if timeout and timeout > 0 else None
        self.user_agent = user_agent
        self._auth_header = f"Bearer {token}"
        self._session = session
        self._owns_session = session is None
        self._closed = False

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("AiohttpTransport is closed, cannot create new session")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "Accept": "application/json",
                    "User-Agent": self.user_agent,
                },
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        self._closed = True
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None

    def _headers(self, has_body: bool) -> dict[str, str]:
        headers = {
            "Authorization": self._auth_header,
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> ApiResponse:
        session = await self._ensure_session()
        url = f"{self.base_url}/{path.lstrip('/')}"

        query = dict(params or {})
        if self.org_id and "organization_id" not in query:
            query["organization_id"] = self.org_id

        headers = self._headers(json_body is not None)
        ctx = {k: v for k, v in get_log_context().items() if v}

        logger.debug(
            "API request starting",
            extra={**ctx, "api_endpoint": path, "api_method": method, "http_url": url},
        )

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        try:
            async with session.request(
                method,
                url,
                params=_clean_params(query),
                json=json_body,
                headers=headers,
            ) as response:
                body = await response.text()
                duration = loop.time() - start_time
                response_headers = dict(response.headers)

                if not 200 <= response.status < 300:
                    logger.debug(
                        "API request failed",
                        extra={
                            **ctx,
                            "api_endpoint": path,
                            "api_method": method,
                            "http_status": response.status,
                            "duration_ms": round(duration * 1000, 3),
                        },
                    )
                    document = ProblemDocument(
                        status=response.status,
                        body=body,
                        payload=_as_dict(_decode(body)),
                        headers=response_headers,
                    )
                    raise payload_error("API error occurred", document)

                log_level = logging.INFO if duration > SLOW_REQUEST_SECONDS else logging.DEBUG
                log_msg = "Slow API request" if duration > SLOW_REQUEST_SECONDS else "API request succeeded"
                logger.log(
                    log_level,
                    log_msg,
                    extra={
                        **ctx,
                        "api_endpoint": path,
                        "api_method": method,
                        "http_status": response.status,
                        "duration_ms": round(duration * 1000, 3),
                    },
                )

                return ApiResponse(
                    data=_decode(body),
                    method=method,
                    url=str(response.url),
                    status=response.status,
                    latency=duration,
                    request_headers=headers,
                    response_headers=response_headers,
                )

        except TimeoutError:
            logger.debug(
                "API request timeout",
                extra={**ctx, "api_endpoint": path, "api_method": method},
            )
            raise

        except aiohttp.ClientError as e:
            logger.debug(
                "API connection error",
                extra={
                    **ctx,
                    "api_endpoint": path,
                    "api_method": method,
                    "error_message": str(e),
                },
            )
            raise


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


__all__ = [
    "AiohttpTransport",
    "ApiResponse",
]
