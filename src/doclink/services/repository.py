"""Persistence for intake requests.

``RequestRepository`` is the narrow interface the lifecycle services depend
on. ``SqlRequestRepository`` implements it on PostgreSQL; each method runs
in its own transaction and writes the matching newsfeed entry in the same
transaction as the change it records.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from doclink.db import session_scope
from doclink.db.models import (
    IntakeRequest,
    NewsfeedEntry,
    NewsfeedOperation,
    RequestStatus,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class DuplicateTokenError(Exception):
    """Raised when a new request reuses an existing token."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Token already exists")


class RequestRepository(Protocol):
    """Storage operations used by the issuer, handler and sweeper."""

    async def find_by_token(self, token: str) -> IntakeRequest | None: ...

    async def find_by_token_for_tenant(
        self, tenant_id: uuid.UUID, token: str
    ) -> IntakeRequest | None: ...

    async def find_all_by_tenant_and_customer(
        self, tenant_id: uuid.UUID, customer_id: str
    ) -> Sequence[IntakeRequest]: ...

    async def create(self, request: IntakeRequest) -> IntakeRequest: ...

    async def update_fields(
        self,
        token: str,
        fields: dict[str, Any],
        *,
        expected_status: RequestStatus | None = None,
    ) -> IntakeRequest | None: ...

    async def bulk_update_expired(self, now: datetime) -> int: ...


def _newsfeed_update(
    request: IntakeRequest,
    old_status: RequestStatus,
    new_status: RequestStatus,
    changed_at: datetime | None = None,
) -> NewsfeedEntry:
    entry = NewsfeedEntry(
        tenant_id=request.tenant_id,
        customer_id=request.customer_id,
        token=request.token,
        operation=NewsfeedOperation.UPDATE,
        old_status=old_status,
        new_status=new_status,
    )
    if changed_at is not None:
        entry.changed_at = changed_at
    return entry


class SqlRequestRepository:
    """PostgreSQL-backed request repository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_token(self, token: str) -> IntakeRequest | None:
        async with session_scope(self._session_factory) as session:
            return await session.get(IntakeRequest, token)

    async def find_by_token_for_tenant(
        self, tenant_id: uuid.UUID, token: str
    ) -> IntakeRequest | None:
        async with session_scope(self._session_factory) as session:
            query = select(IntakeRequest).where(
                IntakeRequest.token == token,
                IntakeRequest.tenant_id == tenant_id,
            )
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def find_all_by_tenant_and_customer(
        self, tenant_id: uuid.UUID, customer_id: str
    ) -> Sequence[IntakeRequest]:
        async with session_scope(self._session_factory) as session:
            query = (
                select(IntakeRequest)
                .where(
                    IntakeRequest.tenant_id == tenant_id,
                    IntakeRequest.customer_id == customer_id,
                )
                .order_by(IntakeRequest.created_at.desc())
            )
            result = await session.execute(query)
            return result.scalars().all()

    async def create(self, request: IntakeRequest) -> IntakeRequest:
        """Insert a new request and its newsfeed INSERT entry.

        Raises:
            DuplicateTokenError: If the token already exists.
        """
        async with session_scope(self._session_factory) as session:
            session.add(request)
            # The newsfeed row references the request; flush it first
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateTokenError(request.token) from e
            session.add(
                NewsfeedEntry(
                    tenant_id=request.tenant_id,
                    customer_id=request.customer_id,
                    token=request.token,
                    operation=NewsfeedOperation.INSERT,
                    new_status=request.status,
                    changed_at=request.created_at,
                )
            )
            await session.commit()
            return request

    async def update_fields(
        self,
        token: str,
        fields: dict[str, Any],
        *,
        expected_status: RequestStatus | None = None,
    ) -> IntakeRequest | None:
        """Update columns of one request.

        With ``expected_status`` the row is locked and only updated if its
        status still matches, so two concurrent submits cannot both win.

        Returns:
            The updated request, or None if it does not exist or its status
            no longer matches ``expected_status``.
        """
        async with session_scope(self._session_factory) as session:
            query = select(IntakeRequest).where(IntakeRequest.token == token).with_for_update()
            result = await session.execute(query)
            request = result.scalar_one_or_none()
            if request is None:
                return None
            if expected_status is not None and request.status != expected_status:
                logger.info(
                    "Skipping update of request %s: status is %s, expected %s",
                    token[:8],
                    request.status.value,
                    expected_status.value,
                )
                return None

            old_status = request.status
            for name, value in fields.items():
                setattr(request, name, value)
            if request.status != old_status:
                session.add(
                    _newsfeed_update(request, old_status, request.status, fields.get("updated_at"))
                )
            await session.commit()
            return request

    async def bulk_update_expired(self, now: datetime) -> int:
        """Mark every ACTIVE request whose expiry date has passed as EXPIRED.

        One set-based UPDATE across all tenants; newsfeed entries for the
        affected rows are written in the same transaction.

        Returns:
            Number of requests expired.
        """
        async with session_scope(self._session_factory) as session:
            stmt = (
                update(IntakeRequest)
                .where(
                    IntakeRequest.status == RequestStatus.ACTIVE,
                    IntakeRequest.expiry_date < now,
                )
                .values(status=RequestStatus.EXPIRED, updated_at=now)
                .returning(
                    IntakeRequest.token,
                    IntakeRequest.tenant_id,
                    IntakeRequest.customer_id,
                )
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            rows = result.all()
            for token, tenant_id, customer_id in rows:
                session.add(
                    NewsfeedEntry(
                        tenant_id=tenant_id,
                        customer_id=customer_id,
                        token=token,
                        operation=NewsfeedOperation.UPDATE,
                        old_status=RequestStatus.ACTIVE,
                        new_status=RequestStatus.EXPIRED,
                        changed_at=now,
                    )
                )
            await session.commit()
            return len(rows)
