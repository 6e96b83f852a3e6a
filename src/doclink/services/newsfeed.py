"""Tenant newsfeed of request lifecycle changes.

Entries are written by the request repository in the same transaction as
the change they describe; this module only reads and formats them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from doclink.db import session_scope
from doclink.db.models import NewsfeedEntry, NewsfeedOperation

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

MSG_CREATED = "New request created for customer <CUSTOMER_ID> with request ID <REQUEST_ID>"
MSG_STATUS_CHANGED = (
    "Customer <CUSTOMER_ID> changed request status from <OLD_STATUS> to <NEW_STATUS>"
)
MSG_UPDATED = "Request <REQUEST_ID> was updated for customer <CUSTOMER_ID>"


@dataclass(frozen=True, slots=True)
class NewsfeedItem:
    """A formatted newsfeed entry.

    ``message`` contains ``<NAME>`` placeholders whose values are in
    ``message_variables`` so clients can localize the text.
    """

    customer_id: str
    request_id: str
    created_date: datetime
    scope: str
    operation: str
    message: str
    message_variables: dict[str, Any]
    old_status: str | None
    new_status: str | None


def format_entry(entry: NewsfeedEntry) -> NewsfeedItem:
    """Turn a stored entry into a display item."""
    variables: dict[str, Any] = {
        "CUSTOMER_ID": entry.customer_id,
        "REQUEST_ID": entry.token,
    }
    old_status = entry.old_status.name if entry.old_status is not None else None
    new_status = entry.new_status.name if entry.new_status is not None else None

    if entry.operation == NewsfeedOperation.INSERT:
        message = MSG_CREATED
        operation = "INSERT"
    else:
        operation = "EDIT"
        if old_status and new_status:
            variables["OLD_STATUS"] = old_status
            variables["NEW_STATUS"] = new_status
            message = MSG_STATUS_CHANGED
        else:
            message = MSG_UPDATED

    return NewsfeedItem(
        customer_id=entry.customer_id,
        request_id=entry.token,
        created_date=entry.changed_at,
        scope="STATUS",
        operation=operation,
        message=message,
        message_variables=variables,
        old_status=old_status,
        new_status=new_status,
    )


class NewsfeedService:
    """Reads a tenant's newsfeed."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_results: int = 50,
    ) -> None:
        self._session_factory = session_factory
        self._max_results = max_results

    async def fetch_entries(
        self,
        tenant_id: uuid.UUID,
        customer_id: str | None = None,
        limit: int | None = None,
    ) -> Sequence[NewsfeedEntry]:
        async with session_scope(self._session_factory) as session:
            query = select(NewsfeedEntry).where(NewsfeedEntry.tenant_id == tenant_id)
            if customer_id:
                query = query.where(NewsfeedEntry.customer_id == customer_id)
            query = query.order_by(NewsfeedEntry.changed_at.desc()).limit(
                min(limit or self._max_results, self._max_results)
            )
            result = await session.execute(query)
            return result.scalars().all()

    async def get_newsfeed(
        self,
        tenant_id: uuid.UUID,
        customer_id: str | None = None,
        limit: int | None = None,
    ) -> list[NewsfeedItem]:
        """Return the newest entries for a tenant, optionally for one customer."""
        entries = await self.fetch_entries(tenant_id, customer_id, limit)
        logger.debug(
            "Newsfeed for tenant %s%s: %d entries",
            tenant_id,
            f" and customer {customer_id}" if customer_id else "",
            len(entries),
        )
        return [format_entry(entry) for entry in entries]
