"""HTTP transport for the fetch engine."""

from core.http.transport import AiohttpTransport, ApiResponse

__all__ = ["AiohttpTransport", "ApiResponse"]
