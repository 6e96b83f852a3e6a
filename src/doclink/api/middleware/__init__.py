"""doclink API middleware.

- Request ID tracking
- Consistent error responses
- Tenant API key authentication
"""

from doclink.api.middleware.auth import (
    APIKeyAuthMiddleware,
    AuthenticatedTenant,
    CurrentTenant,
    SqlTenantResolver,
    require_tenant,
)
from doclink.api.middleware.errors import ErrorHandlerMiddleware
from doclink.api.middleware.request_id import RequestIDMiddleware

__all__ = [
    "APIKeyAuthMiddleware",
    "AuthenticatedTenant",
    "CurrentTenant",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "SqlTenantResolver",
    "require_tenant",
]
