"""Error handling middleware for consistent JSON error responses.

Every error leaves the API as::

    {"error": "<code>", "message": "<text>", "request_id": "<id>"}

with an optional ``detail`` object. Lifecycle errors from the service layer
are mapped to HTTP statuses by their machine code.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from doclink.api.middleware.request_id import get_request_id
from doclink.services.errors import InvalidInputError, RequestLifecycleError

logger = logging.getLogger(__name__)

# Lifecycle error code -> HTTP status
LIFECYCLE_STATUS_CODES: dict[str, int] = {
    "not_found": 404,
    "expired": 410,
    "not_available": 409,
    "invalid_input": 400,
    "conflict": 409,
    "downstream_failure": 502,
}


class APIError(Exception):
    """Base exception for API errors with structured details."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 400,
        detail: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            error: Machine-readable error code (e.g., "invalid_input").
            message: Human-readable error description.
            status_code: HTTP status code to return.
            detail: Optional additional details.
        """
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @classmethod
    def from_lifecycle_error(cls, exc: RequestLifecycleError) -> "APIError":
        """Translate a service-layer error into its HTTP form."""
        detail = None
        if isinstance(exc, InvalidInputError) and exc.field:
            detail = {"field": exc.field}
        return cls(
            error=exc.code,
            message=exc.message,
            status_code=LIFECYCLE_STATUS_CODES.get(exc.code, 500),
            detail=detail,
        )


class AuthenticationError(APIError):
    """Missing or invalid tenant API key (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(error="unauthorized", message=message, status_code=401)


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a standardized error response."""
    body: dict[str, Any] = {
        "error": error,
        "message": message,
    }

    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    if detail:
        body["detail"] = detail

    return JSONResponse(status_code=status_code, content=body)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report request body/query validation failures as invalid input."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return build_error_response(
        error="invalid_input",
        message="Request validation failed",
        status_code=400,
        detail={"errors": errors},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catches exceptions and returns consistent JSON errors.

    Handles:
    - RequestLifecycleError: service-layer errors, mapped by code
    - APIError and subclasses
    - HTTPException and pydantic ValidationError
    - anything else: logged, returned as a generic 500
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        try:
            return await call_next(request)
        except RequestLifecycleError as exc:
            api_error = APIError.from_lifecycle_error(exc)
            if api_error.status_code >= 500:
                logger.warning(
                    "Downstream failure on %s %s: %s",
                    request.method,
                    request.url.path,
                    exc.message,
                )
            return build_error_response(
                error=api_error.error,
                message=api_error.message,
                status_code=api_error.status_code,
                detail=api_error.detail,
            )
        except APIError as exc:
            return build_error_response(
                error=exc.error,
                message=exc.message,
                status_code=exc.status_code,
                detail=exc.detail,
            )
        except HTTPException as exc:
            return build_error_response(
                error="http_error",
                message=str(exc.detail),
                status_code=exc.status_code,
            )
        except ValidationError as exc:
            return build_error_response(
                error="invalid_input",
                message="Request validation failed",
                status_code=400,
                detail={
                    "errors": exc.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            )
        except Exception:
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                error="internal_error",
                message="An internal error occurred",
                status_code=500,
            )
