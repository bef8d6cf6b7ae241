"""
Exceptions raised by the transport layer for non-success responses.

These carry the raw payload of a failed exchange. They are never shown to
users directly: classify() turns them into the ClientError hierarchy.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FieldErrorDetail:
    """One entry of the `errors` array in a structured problem payload."""

    location: str | None = None
    message: str | None = None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.location is not None:
            data["location"] = self.location
        if self.message is not None:
            data["message"] = self.message
        if self.value is not None:
            data["value"] = self.value
        return data


class ApiErrorModel(Exception):
    """Structured problem document returned by the API."""

    def __init__(
        self,
        title: str | None = None,
        detail: str | None = None,
        status: int | None = None,
        type: str | None = None,
        instance: str | None = None,
        errors: list[FieldErrorDetail] | None = None,
    ):
        self.title = title
        self.detail = detail
        self.status = status
        self.type = type
        self.instance = instance
        self.errors = errors or []
        super().__init__(detail or title or "API error")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ApiErrorModel":
        errors = [
            FieldErrorDetail(
                location=item.get("location"),
                message=item.get("message"),
                value=item.get("value"),
            )
            for item in payload.get("errors") or []
            if isinstance(item, dict)
        ]
        status = payload.get("status")
        if isinstance(status, str) and status.isdigit():
            status = int(status)
        elif not isinstance(status, int):
            status = None
        return cls(
            title=payload.get("title"),
            detail=payload.get("detail"),
            status=status,
            type=payload.get("type"),
            instance=payload.get("instance"),
            errors=errors,
        )


class AuthenticationFailure(Exception):
    """Authentication rejection payload (HTTP 401 `error` object)."""

    def __init__(
        self,
        code: int | None = None,
        status: str | None = None,
        message: str | None = None,
        reason: str | None = None,
    ):
        self.code = code
        self.status = status
        self.message = message
        self.reason = reason
        super().__init__(message or "authentication failed")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthenticationFailure":
        error = payload.get("error") or {}
        code = error.get("code")
        return cls(
            code=int(code) if isinstance(code, int) else None,
            status=error.get("status"),
            message=error.get("message"),
            reason=error.get("reason"),
        )


class TransportError(Exception):
    """Any other non-success HTTP response."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(f"{message} (status code: {status_code})")


@dataclass
class ProblemDocument:
    """Intermediate view used when deciding which payload exception to raise."""

    status: int
    body: str
    payload: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def is_structured(self) -> bool:
        if not self.payload:
            return False
        return any(key in self.payload for key in ("title", "detail")) and (
            "status" in self.payload or "errors" in self.payload
        )

    def is_authentication_failure(self) -> bool:
        return (
            self.status == 401
            and bool(self.payload)
            and isinstance(self.payload.get("error"), dict)
        )


def payload_error(message: str, document: ProblemDocument) -> Exception:
    """Pick the payload exception matching a failed response."""
    if document.is_structured():
        return ApiErrorModel.from_payload(document.payload)
    if document.is_authentication_failure():
        return AuthenticationFailure.from_payload(document.payload)
    return TransportError(message, document.status, document.body)


__all__ = [
    "ApiErrorModel",
    "AuthenticationFailure",
    "FieldErrorDetail",
    "ProblemDocument",
    "TransportError",
    "payload_error",
]
