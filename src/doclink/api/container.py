"""Application wiring.

Every long-lived object (engine, collaborators, services, scheduler) is built
here once per application and shared by reference through ``app.state``.
Any piece can be supplied by the caller, which is how tests swap in fakes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from doclink.api.middleware.auth import SqlTenantResolver
from doclink.db import create_engine, create_session_factory
from doclink.services.catalog import DocumentCatalog
from doclink.services.crm import HttpCRMClient
from doclink.services.dispatch import SideEffectDispatcher
from doclink.services.email import EmailNotifier
from doclink.services.events import HttpEventPublisher
from doclink.services.issuer import RequestIssuer
from doclink.services.newsfeed import NewsfeedService
from doclink.services.repository import SqlRequestRepository
from doclink.services.storage import ObjectStoreClient, StorageError
from doclink.services.submission import SubmissionHandler
from doclink.services.uploads import DocumentUploadService
from doclink.worker.scheduler import TaskScheduler
from doclink.worker.sweeper import SWEEPER_TASK_NAME, ExpirySweeper

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from doclink.api.middleware.auth import TenantResolver
    from doclink.core.config import Settings
    from doclink.services.catalog import LabelSource
    from doclink.services.repository import RequestRepository
    from doclink.services.storage import FileStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """The application's services and collaborators."""

    settings: Settings
    engine: AsyncEngine | None
    session_factory: async_sessionmaker[AsyncSession] | None
    repository: RequestRepository
    dispatcher: SideEffectDispatcher
    notifier: EmailNotifier | None
    file_store: FileStore
    events: HttpEventPublisher | None
    crm: HttpCRMClient | None
    catalog: DocumentCatalog | Any
    newsfeed: NewsfeedService | Any
    tenant_resolver: TenantResolver
    issuer: RequestIssuer
    submissions: SubmissionHandler
    uploads: DocumentUploadService
    sweeper: ExpirySweeper
    scheduler: TaskScheduler

    async def prepare_storage(self) -> bool:
        """Create the upload bucket if it is missing.

        A failure is logged and startup continues; uploads then fail with a
        downstream error until storage is reachable.

        Returns:
            True if the bucket exists after the call.
        """
        if not isinstance(self.file_store, ObjectStoreClient):
            return True
        try:
            await asyncio.to_thread(self.file_store.ensure_bucket)
        except StorageError:
            logger.exception("Upload bucket is not available")
            return False
        return True

    async def aclose(self, drain_timeout: float = 10.0) -> None:
        """Stop background work and release client resources."""
        await self.scheduler.stop()
        await self.dispatcher.drain(timeout=drain_timeout)
        if self.events is not None:
            await self.events.close()
        if self.crm is not None:
            await self.crm.close()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Container closed")


def build_container(
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    repository: RequestRepository | None = None,
    notifier: EmailNotifier | None = None,
    file_store: FileStore | None = None,
    events: HttpEventPublisher | None = None,
    crm: HttpCRMClient | None = None,
    catalog: LabelSource | None = None,
    newsfeed: NewsfeedService | None = None,
    tenant_resolver: TenantResolver | None = None,
    scheduler: TaskScheduler | None = None,
) -> Container:
    """Build the application container from settings.

    The database engine is only created when some component still needs it.
    """
    engine = None
    needs_database = session_factory is None and (
        repository is None or catalog is None or newsfeed is None or tenant_resolver is None
    )
    if needs_database:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)

    repository = repository or SqlRequestRepository(session_factory)
    catalog = catalog or DocumentCatalog(session_factory)
    newsfeed = newsfeed or NewsfeedService(
        session_factory, max_results=settings.newsfeed_max_results
    )
    tenant_resolver = tenant_resolver or SqlTenantResolver(session_factory)

    notifier = notifier or EmailNotifier(settings.smtp)
    file_store = file_store or ObjectStoreClient.from_settings(settings.s3)
    if events is None and settings.events.enabled:
        events = HttpEventPublisher(settings.events)
    if crm is None and settings.crm.enabled:
        crm = HttpCRMClient(settings.crm)

    dispatcher = SideEffectDispatcher()
    issuer = RequestIssuer(settings, repository, notifier, dispatcher)
    submissions = SubmissionHandler(settings, repository, catalog, dispatcher, events)
    uploads = DocumentUploadService(submissions, file_store, dispatcher, crm)

    sweeper = ExpirySweeper(repository)
    scheduler = scheduler or TaskScheduler(poll_interval=settings.sweeper.poll_interval)
    scheduler.register(
        SWEEPER_TASK_NAME,
        sweeper.run_once,
        settings.sweeper.schedule,
        settings.sweeper.timezone,
        enabled=settings.sweeper.enabled,
    )

    logger.info(
        "Container built: environment=%s events=%s crm=%s",
        settings.environment.value,
        "on" if events is not None else "off",
        "on" if crm is not None else "off",
    )
    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        repository=repository,
        dispatcher=dispatcher,
        notifier=notifier,
        file_store=file_store,
        events=events,
        crm=crm,
        catalog=catalog,
        newsfeed=newsfeed,
        tenant_resolver=tenant_resolver,
        issuer=issuer,
        submissions=submissions,
        uploads=uploads,
        sweeper=sweeper,
        scheduler=scheduler,
    )
