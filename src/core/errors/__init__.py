"""
Error classification and exception hierarchy.

Provides:
- CliError hierarchy for user-presentable exceptions with exit codes
- ClientError variants tagged by ErrorKind for remote-call failures
- Payload exceptions raised by the transport
- classify() turning any failure into a ClientError
"""

from core.errors.classifiers import ClientErrorClassifier, classify
from core.errors.exceptions import (
    # Exit codes
    EXIT_GENERAL_ERROR,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
    EXIT_TIMEOUT,
    EXIT_USAGE_ERROR,
    # Base classes
    CliError,
    ClientError,
    ClientNotConfiguredError,
    ConfigError,
    # Context signals
    ContextCancelled,
    ContextDeadlineExceeded,
    # Client error variants
    DeadlineExceededError,
    GenericError,
    InterruptedOperationError,
    PartialError,
    StructuredError,
    UnauthorizedError,
    UnknownError,
    UsageError,
    # Utilities
    exit_code_for,
    format_body,
    http_status_text,
    is_deadline_exceeded,
    is_interrupted,
    to_partial_error,
)
from core.errors.payloads import (
    ApiErrorModel,
    AuthenticationFailure,
    FieldErrorDetail,
    TransportError,
)
from core.types import ErrorKind

__all__ = [
    # Enums
    "ErrorKind",
    # Base classes
    "CliError",
    "ClientError",
    "UsageError",
    "ConfigError",
    "ClientNotConfiguredError",
    # Client error variants
    "StructuredError",
    "UnauthorizedError",
    "GenericError",
    "InterruptedOperationError",
    "DeadlineExceededError",
    "UnknownError",
    "PartialError",
    # Context signals
    "ContextCancelled",
    "ContextDeadlineExceeded",
    # Payloads
    "ApiErrorModel",
    "AuthenticationFailure",
    "FieldErrorDetail",
    "TransportError",
    # Classification
    "ClientErrorClassifier",
    "classify",
    # Utilities
    "exit_code_for",
    "format_body",
    "http_status_text",
    "is_deadline_exceeded",
    "is_interrupted",
    "to_partial_error",
    # Exit codes
    "EXIT_SUCCESS",
    "EXIT_GENERAL_ERROR",
    "EXIT_USAGE_ERROR",
    "EXIT_TIMEOUT",
    "EXIT_INTERRUPTED",
]
