"""
Unified exception hierarchy for cencli.

Provides typed, user-presentable exceptions with a title, an exit code and,
for errors coming back from the remote API, a status code that drives the
retry decision.
"""

import json
from http import HTTPStatus
from typing import Any

from core.errors.payloads import FieldErrorDetail
from core.types import ErrorKind

# Process exit codes
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_TIMEOUT = 124
EXIT_INTERRUPTED = 130

MAX_BODY_LENGTH = 200

PARTIAL_DATA_NOTICE = "some data was successfully retrieved before this error occurred"


def http_status_text(status_code: int | None) -> str:
    """Reason phrase for an HTTP status code, or "unknown"."""
    if status_code is None:
        return "unknown"
    try:
        return HTTPStatus(int(status_code)).phrase
    except ValueError:
        return "unknown"


class CliError(Exception):
    """
    Base exception for all errors shown to the user.

    Attributes:
        message: Human-readable error description
        title: Short heading printed above the message
        exit_code: Process exit code when this error ends the command
    """

    default_title = "Unknown Error"
    exit_code = EXIT_GENERAL_ERROR
    should_print_usage = False

    def __init__(self, message: str, title: str | None = None):
        self.message = message
        self._title = title
        super().__init__(message)

    @property
    def title(self) -> str:
        return self._title or self.default_title

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Usage / configuration errors
# =============================================================================


class UsageError(CliError):
    """Invalid flags or arguments supplied by the user."""

    default_title = "Usage Error"
    exit_code = EXIT_USAGE_ERROR
    should_print_usage = True


class ConfigError(UsageError, ValueError):
    """Configuration file or environment values failed validation."""

    default_title = "Configuration Error"
    should_print_usage = False


class ClientNotConfiguredError(CliError):
    """No API token available before any request is made."""

    default_title = "Censys Client Not Configured"

    def __init__(self, message: str = "The API client is not configured."):
        super().__init__(message)


# =============================================================================
# Client errors (closed hierarchy, tagged by ErrorKind)
# =============================================================================


class ClientError(CliError):
    """
    Base class for categorized failures of a remote call.

    Every variant exposes status_code (None unless the server answered)
    and status (its reason phrase). Retryability depends only on the code.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    @property
    def status_code(self) -> int | None:
        return None

    @property
    def status(self) -> str:
        return http_status_text(self.status_code)

    @property
    def is_retryable(self) -> bool:
        code = self.status_code
        return code is not None and (code == 429 or code >= 500)


class StructuredError(ClientError):
    """API returned a structured problem document."""

    kind = ErrorKind.STRUCTURED
    default_title = "Error Returned from Censys API"

    def __init__(
        self,
        title: str | None = None,
        detail: str | None = None,
        status: int | None = None,
        type: str | None = None,
        instance: str | None = None,
        field_errors: list[FieldErrorDetail] | None = None,
    ):
        self.problem_title = title
        self.detail = detail
        self._status_code = status
        self.type = type
        self.instance = instance
        self.field_errors = field_errors or []
        super().__init__(self._render())

    def _render(self) -> str:
        data: dict[str, Any] = {}
        for key, value in (
            ("title", self.problem_title),
            ("detail", self.detail),
            ("status", self._status_code),
            ("type", self.type),
            ("instance", self.instance),
        ):
            if value is not None:
                data[key] = value
        if self.field_errors:
            data["errors"] = [fe.to_dict() for fe in self.field_errors]
        return json.dumps(data, indent=2, default=str)

    @property
    def status_code(self) -> int | None:
        return self._status_code


class UnauthorizedError(ClientError):
    """API rejected the credentials."""

    kind = ErrorKind.UNAUTHORIZED
    default_title = "Unauthorized to Access Censys API"

    def __init__(
        self,
        code: int | None = None,
        status: str | None = None,
        message: str | None = None,
        reason: str | None = None,
    ):
        self.code = code
        self.status_label = status
        self.reason = reason
        lines = []
        if code is not None:
            lines.append(f"Code: {code}")
        if status is not None:
            lines.append(f"Status: {status}")
        if message is not None:
            lines.append(f"Message: {message}")
        if reason is not None:
            lines.append(f"Reason: {reason}")
        super().__init__("\n".join(lines))

    @property
    def status_code(self) -> int | None:
        return self.code


class GenericError(ClientError):
    """Non-success response without a recognised payload."""

    kind = ErrorKind.GENERIC
    default_title = "Error Returned from Censys API"

    def __init__(self, message: str, status_code: int, body: str = ""):
        self.raw_message = message
        self._status_code = status_code
        self.body = format_body(body)
        text = f"{message} (status code: {status_code})\n{self.body}"
        super().__init__(text.strip())

    @property
    def title(self) -> str:
        if self._status_code == 429:
            return "Rate Limit Exceeded"
        return super().title

    @property
    def status_code(self) -> int | None:
        return self._status_code


class InterruptedOperationError(ClientError):
    """The operation context was cancelled."""

    kind = ErrorKind.CANCELLED
    default_title = "Interrupted"
    exit_code = EXIT_INTERRUPTED

    def __init__(
        self,
        message: str = "the operation's context was cancelled before it completed",
    ):
        super().__init__(message)


class DeadlineExceededError(ClientError):
    """The operation context ran out of time."""

    kind = ErrorKind.DEADLINE_EXCEEDED
    default_title = "Timeout"
    exit_code = EXIT_TIMEOUT

    def __init__(
        self, message: str = "the operation timed out before it could be completed"
    ):
        super().__init__(message)


class UnknownError(ClientError):
    """Unclassified failure; treated as permanent."""

    kind = ErrorKind.UNKNOWN


# =============================================================================
# Partial results
# =============================================================================


class PartialError(CliError):
    """A failure that happened after some data was already retrieved."""

    def __init__(self, error: CliError):
        self.error = error
        super().__init__(f"{error.message}\n\n{PARTIAL_DATA_NOTICE}")

    @property
    def title(self) -> str:
        return f"{self.error.title} (partial data)"

    @property
    def exit_code(self) -> int:
        return self.error.exit_code

    @property
    def kind(self) -> ErrorKind:
        return getattr(self.error, "kind", ErrorKind.UNKNOWN)


def to_partial_error(error: CliError | None) -> PartialError | None:
    """Wrap error as partial; None passes through, partials are not re-wrapped."""
    if error is None:
        return None
    if isinstance(error, PartialError):
        return error
    return PartialError(error)


# =============================================================================
# Context signals (raised by OperationContext, classified into ClientErrors)
# =============================================================================


class ContextCancelled(Exception):
    """Raised or returned when an OperationContext is cancelled."""

    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class ContextDeadlineExceeded(Exception):
    """Raised or returned when an OperationContext passes its deadline."""

    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


# =============================================================================
# Helpers
# =============================================================================


def format_body(body: str) -> str:
    """Pretty-print a JSON object body, otherwise truncate long text."""
    if not body:
        return ""
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return json.dumps(parsed, indent=2)
    raw = body.encode("utf-8")
    if len(raw) > MAX_BODY_LENGTH:
        # a multi-byte character split at the cut is dropped
        head = raw[:MAX_BODY_LENGTH].decode("utf-8", errors="ignore")
        return head + f"... (truncated {len(raw) - MAX_BODY_LENGTH} bytes)"
    return body


def _unwrap(error: BaseException) -> BaseException:
    if isinstance(error, PartialError):
        return error.error
    return error


def is_interrupted(error: BaseException | None) -> bool:
    return error is not None and isinstance(_unwrap(error), InterruptedOperationError)


def is_deadline_exceeded(error: BaseException | None) -> bool:
    return error is not None and isinstance(_unwrap(error), DeadlineExceededError)


def exit_code_for(error: BaseException | None) -> int:
    """Map a terminal error to the process exit code."""
    if error is None:
        return EXIT_SUCCESS
    if isinstance(error, CliError):
        return error.exit_code
    return EXIT_GENERAL_ERROR
