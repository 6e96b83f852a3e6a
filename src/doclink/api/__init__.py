"""doclink API service.

FastAPI application providing:
- Token-gated customer intake (fetch, submit, document upload)
- Tenant request management, document catalog and newsfeed
- Scheduler introspection and manual task runs
- The in-process expiry sweeper, started with the application

The app factory builds (or receives) the application container and keeps it
on ``app.state.container``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from doclink.api.container import Container, build_container
from doclink.api.dependencies import get_container
from doclink.api.middleware import (
    APIKeyAuthMiddleware,
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
)
from doclink.api.middleware.errors import validation_exception_handler
from doclink.api.routers import (
    admin_router,
    documents_router,
    intake_router,
    newsfeed_router,
    requests_router,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from doclink.api.middleware.auth import TenantResolver
    from doclink.core.config import Settings

logger = logging.getLogger(__name__)

API_TITLE = "doclink API"
API_DESCRIPTION = """
Tokenized document requests and mortgage applications.

## Namespaces

- **/api/intake** - Customer endpoints, gated by the request token
- **/api/requests** - Issue and manage requests (tenant API key)
- **/api/documents**, **/api/newsfeed** - Catalog and activity (tenant API key)
- **/api/admin** - Scheduler operations (tenant API key)
"""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the container if needed, run the scheduler, clean up on exit."""
    container: Container | None = app.state.container
    if container is None:
        from doclink.core.settings import get_settings

        container = build_container(app.state.settings or get_settings())
        app.state.container = container

    await container.prepare_storage()
    if container.settings.sweeper.enabled:
        container.scheduler.start()
    logger.info("doclink API started (environment=%s)", container.settings.environment.value)

    yield

    logger.info("Shutting down doclink API")
    await container.aclose()


def _tenant_resolver(request: Request) -> TenantResolver:
    return get_container(request).tenant_resolver


def create_app(
    settings: Settings | None = None,
    container: Container | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Settings to build the container from at startup. Defaults
            to the container's settings, then to environment settings.
        container: Prebuilt container, used as is (tests pass one with fakes).

    Returns:
        Configured FastAPI application.
    """
    if settings is None and container is not None:
        settings = container.settings
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    _add_middleware(app, settings)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info("doclink API application created (version=%s)", version)
    return app


def _add_middleware(app: FastAPI, settings: Settings | None) -> None:
    """Add middleware; the last one added runs first."""
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(APIKeyAuthMiddleware, get_resolver=_tenant_resolver)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = ["http://localhost:3000", "http://localhost:3001"]
    if settings is not None and (settings.cors_origins or settings.is_production):
        allowed_origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    app.include_router(intake_router, prefix="/api")
    app.include_router(requests_router, prefix="/api")
    app.include_router(documents_router, prefix="/api")
    app.include_router(newsfeed_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
