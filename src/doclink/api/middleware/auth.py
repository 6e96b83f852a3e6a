"""Tenant authentication by API key.

Tenant endpoints expect an ``X-API-Key`` header. Keys are looked up by their
SHA-256 hash in ``tenant_api_keys``; inactive or expired keys and inactive
tenants are rejected. The middleware resolves the tenant when a key is
present; routes that need a tenant depend on :func:`require_tenant`.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated, Any, Protocol

from fastapi import Depends, Request
from sqlalchemy import select, update
from starlette.middleware.base import BaseHTTPMiddleware

from doclink.api.middleware.errors import AuthenticationError
from doclink.db import session_scope
from doclink.db.models import Tenant, TenantApiKey

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from starlette.responses import Response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


@dataclass(frozen=True, slots=True)
class AuthenticatedTenant:
    """The tenant a request is made on behalf of."""

    tenant_id: uuid.UUID
    name: str
    api_key_id: uuid.UUID | None = None


class TenantResolver(Protocol):
    async def resolve(self, api_key: str) -> AuthenticatedTenant | None: ...


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


class SqlTenantResolver:
    """Resolves API keys against the tenant tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve(self, api_key: str) -> AuthenticatedTenant | None:
        """Return the tenant owning ``api_key``, or None if it is not usable."""
        key_hash = hash_api_key(api_key)
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(TenantApiKey, Tenant)
                .join(Tenant, Tenant.tenant_id == TenantApiKey.tenant_id)
                .where(TenantApiKey.key_hash == key_hash)
            )
            row = result.one_or_none()
            if row is None:
                logger.debug("API key validation failed: key not found")
                return None

            api_key_row, tenant = row
            if not api_key_row.is_active or not tenant.is_active:
                logger.debug("API key validation failed: key or tenant inactive")
                return None

            now = datetime.now(UTC)
            if api_key_row.expires_at and now > api_key_row.expires_at:
                logger.debug("API key validation failed: key expired")
                return None

            await session.execute(
                update(TenantApiKey)
                .where(TenantApiKey.api_key_id == api_key_row.api_key_id)
                .values(last_used_at=now)
            )
            await session.commit()

            return AuthenticatedTenant(
                tenant_id=tenant.tenant_id,
                name=tenant.name,
                api_key_id=api_key_row.api_key_id,
            )


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the tenant for requests carrying an API key.

    Requests without a key pass through unchanged; token-gated customer
    routes do not need one.
    """

    def __init__(self, app: Any, *, get_resolver: Callable[[Request], TenantResolver]) -> None:
        super().__init__(app)
        self._get_resolver = get_resolver

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request.state.tenant = None
        api_key = request.headers.get(API_KEY_HEADER)
        if api_key:
            try:
                request.state.tenant = await self._get_resolver(request).resolve(api_key)
            except Exception:
                logger.exception("Error validating API key")
        return await call_next(request)


async def require_tenant(request: Request) -> AuthenticatedTenant:
    """FastAPI dependency returning the authenticated tenant.

    Raises:
        AuthenticationError: If no valid API key was presented.
    """
    tenant = getattr(request.state, "tenant", None)
    if tenant is None:
        if request.headers.get(API_KEY_HEADER):
            raise AuthenticationError("Invalid API key")
        raise AuthenticationError()
    return tenant


CurrentTenant = Annotated[AuthenticatedTenant, Depends(require_tenant)]
