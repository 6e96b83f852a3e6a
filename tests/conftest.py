"""Pytest configuration and shared fixtures.

Service and API tests run against in-memory fakes (tests/fakes.py); no
database, SMTP server, object store or HTTP endpoint is needed.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from doclink.api import create_app
from doclink.api.container import Container, build_container
from doclink.api.middleware.auth import AuthenticatedTenant
from doclink.core.config import Settings
from doclink.core.settings import clear_settings_cache
from doclink.services.dispatch import SideEffectDispatcher
from doclink.services.submission import SubmissionHandler
from doclink.worker.scheduler import TaskScheduler
from tests.factories import OTHER_TENANT_ID, TENANT_ID, make_settings
from tests.fakes import (
    InMemoryCatalog,
    InMemoryFileStore,
    InMemoryRequestRepository,
    RecordingCRM,
    RecordingEventPublisher,
    RecordingNotifier,
    RepositoryNewsfeed,
    StaticTenantResolver,
)

API_KEY = "tenant-key-1"
OTHER_API_KEY = "tenant-key-2"


@pytest.fixture(autouse=True)
def clean_settings_cache():
    """Clear the settings cache around each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ---------------------------------------------------------------------------
# Settings and collaborators
# ---------------------------------------------------------------------------
@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def repository() -> InMemoryRequestRepository:
    return InMemoryRequestRepository()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        {
            "en": {"passport": "Passport", "payslip": "Payslip"},
            "pt": {"passport": "Passaporte", "payslip": "Recibo de vencimento"},
        }
    )


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def events() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture
def file_store() -> InMemoryFileStore:
    return InMemoryFileStore()


@pytest.fixture
def crm() -> RecordingCRM:
    return RecordingCRM()


@pytest.fixture
def handler(settings, repository, catalog, dispatcher, events) -> SubmissionHandler:
    return SubmissionHandler(settings, repository, catalog, dispatcher, events)


# ---------------------------------------------------------------------------
# Application fixtures (in-process testing via ASGI transport)
# ---------------------------------------------------------------------------
@pytest.fixture
def tenant() -> AuthenticatedTenant:
    return AuthenticatedTenant(tenant_id=TENANT_ID, name="Acme Mortgages")


@pytest.fixture
def container(
    settings, repository, catalog, notifier, events, file_store, crm, tenant
) -> Container:
    """Application container wired with in-memory fakes."""
    return build_container(
        settings,
        repository=repository,
        notifier=notifier,
        file_store=file_store,
        events=events,
        crm=crm,
        catalog=catalog,
        newsfeed=RepositoryNewsfeed(repository),
        tenant_resolver=StaticTenantResolver(
            {
                API_KEY: tenant,
                OTHER_API_KEY: AuthenticatedTenant(tenant_id=OTHER_TENANT_ID, name="Other"),
            }
        ),
        scheduler=TaskScheduler(poll_interval=1.0),
    )


@pytest.fixture
def test_app(container):
    """FastAPI application using the fake-backed container."""
    return create_app(container=container)


@pytest.fixture
async def api_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": API_KEY}
