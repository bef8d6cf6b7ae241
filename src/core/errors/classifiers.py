"""
Centralized error classification for remote calls.

Turns whatever a remote call raised into exactly one member of the
ClientError hierarchy. The classifier walks the exception chain
(__cause__ / __context__) so payload errors wrapped by intermediate layers
are still recognised.
"""

import asyncio
from collections.abc import Iterator

from core.errors.exceptions import (
    ClientError,
    ContextCancelled,
    ContextDeadlineExceeded,
    DeadlineExceededError,
    GenericError,
    InterruptedOperationError,
    PartialError,
    StructuredError,
    UnauthorizedError,
    UnknownError,
)
from core.errors.payloads import ApiErrorModel, AuthenticationFailure, TransportError

# Guards against cyclic exception chains
MAX_CHAIN_DEPTH = 32


def _iter_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = error
    depth = 0
    while current is not None and id(current) not in seen and depth < MAX_CHAIN_DEPTH:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__
        depth += 1


class ClientErrorClassifier:
    """
    Classifier for failures surfaced by the transport and operation context.

    Precedence follows the payload richness: structured problem documents
    first, then authentication failures, then bare transport errors, then
    cancellation and deadline signals. Anything else is Unknown.
    """

    @staticmethod
    def from_payload(error: BaseException) -> ClientError | None:
        """Map a single exception (not its chain) to a ClientError, or None."""
        if isinstance(error, PartialError):
            return ClientErrorClassifier.from_payload(error.error)

        if isinstance(error, ClientError):
            return error

        if isinstance(error, ApiErrorModel):
            return StructuredError(
                title=error.title,
                detail=error.detail,
                status=error.status,
                type=error.type,
                instance=error.instance,
                field_errors=error.errors,
            )

        if isinstance(error, AuthenticationFailure):
            return UnauthorizedError(
                code=error.code,
                status=error.status,
                message=error.message,
                reason=error.reason,
            )

        if isinstance(error, TransportError):
            return GenericError(error.message, error.status_code, error.body)

        return None

    @staticmethod
    def from_signal(error: BaseException) -> ClientError | None:
        """Map cancellation / deadline signals, or None."""
        if isinstance(error, (asyncio.CancelledError, ContextCancelled)):
            return InterruptedOperationError()
        # asyncio.TimeoutError is an alias of TimeoutError on 3.11+
        if isinstance(error, (TimeoutError, ContextDeadlineExceeded)):
            return DeadlineExceededError()
        return None

    @classmethod
    def classify(cls, error: BaseException | None) -> ClientError:
        """
        Classify any failure into a ClientError.

        Args:
            error: Exception raised by a remote call or the operation context

        Returns:
            The matching ClientError variant (never None)
        """
        if error is None:
            return UnknownError("unknown error")

        chain = list(_iter_chain(error))

        for link in chain:
            classified = cls.from_payload(link)
            if classified is not None:
                return classified

        for link in chain:
            classified = cls.from_signal(link)
            if classified is not None:
                return classified

        message = str(error) or type(error).__name__
        return UnknownError(message)


def classify(error: BaseException | None) -> ClientError:
    """Classify a failure from a remote call into a ClientError."""
    return ClientErrorClassifier.classify(error)


__all__ = [
    "ClientErrorClassifier",
    "classify",
]
