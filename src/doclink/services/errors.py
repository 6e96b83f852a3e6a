"""Domain errors raised by the request lifecycle services.

Every error carries a stable machine ``code`` that the HTTP layer maps to a
status code. Messages are safe to show to callers: they never include tenant
identifiers or raw collaborator errors.
"""

from __future__ import annotations


class RequestLifecycleError(Exception):
    """Base class for request lifecycle errors."""

    code = "lifecycle_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RequestNotFoundError(RequestLifecycleError):
    """Raised when no request matches the token (for the tenant, if scoped)."""

    code = "not_found"

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Request not found")


class RequestExpiredError(RequestLifecycleError):
    """Raised when the request's expiry date has passed or it was cancelled."""

    code = "expired"

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Request has expired")


class RequestNotAvailableError(RequestLifecycleError):
    """Raised when the request is already completed."""

    code = "not_available"

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Request is no longer available")


class InvalidInputError(RequestLifecycleError):
    """Raised when required input is missing or malformed."""

    code = "invalid_input"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ConflictError(RequestLifecycleError):
    """Raised when creating something that already exists."""

    code = "conflict"


class DownstreamFailureError(RequestLifecycleError):
    """Raised when a collaborator fails on a synchronous path.

    Attributes:
        collaborator: Name of the failing collaborator (storage, crm, ...).
    """

    code = "downstream_failure"

    def __init__(self, collaborator: str, message: str | None = None) -> None:
        self.collaborator = collaborator
        super().__init__(message or f"{collaborator} is unavailable")
