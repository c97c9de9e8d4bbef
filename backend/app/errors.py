"""Domain error taxonomy shared by the HTTP and realtime boundaries.

Every error here is local to the request that raised it: the HTTP layer
renders it with its status code and the realtime layer turns it into a
negative acknowledgement. Anything that is not a :class:`DomainError` is
treated as an internal failure.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for recoverable, request-scoped failures.

    Attributes:
        code: Stable machine readable identifier sent to clients
        status_code: HTTP status used when the error crosses the HTTP boundary
        message: Human-readable error message
    """

    code: str = "error"
    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    """Unknown user, call, message or wallet."""

    code = "not_found"
    status_code = 404
    default_message = "Not found"


class ForbiddenError(DomainError):
    """The actor is not a party to the resource."""

    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class ConflictError(DomainError):
    """Duplicate active call or duplicate unique account field."""

    code = "conflict"
    status_code = 409
    default_message = "Conflict"


class InvalidArgumentError(DomainError):
    """Self-call or otherwise malformed input."""

    code = "invalid_argument"
    status_code = 400
    default_message = "Invalid argument"


class InvalidStateError(DomainError):
    """Illegal state transition."""

    code = "invalid_state"
    status_code = 409
    default_message = "Invalid state transition"


class ProviderError(DomainError):
    """The remote wallet provider rejected or failed a request."""

    code = "provider_error"
    status_code = 502
    default_message = "Wallet provider request failed"


__all__ = [
    "DomainError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "InvalidArgumentError",
    "InvalidStateError",
    "ProviderError",
]
