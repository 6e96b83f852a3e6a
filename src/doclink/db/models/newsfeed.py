"""Newsfeed model: per-tenant log of request lifecycle changes."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from doclink.db.models.base import (
    Base,
    NewsfeedOperation,
    RequestStatus,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)


class NewsfeedEntry(Base):
    """A single lifecycle change, written in the same transaction as the change."""

    __tablename__ = "newsfeed_entries"

    entry_id: Mapped[UUIDPrimaryKey]
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    token: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("intake_requests.token", ondelete="RESTRICT"),
        nullable=False,
    )
    operation: Mapped[NewsfeedOperation] = mapped_column(
        Enum(
            NewsfeedOperation,
            name="newsfeed_operation",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
    )
    old_status: Mapped[RequestStatus | None] = mapped_column(
        Enum(
            RequestStatus,
            name="request_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=True,
    )
    new_status: Mapped[RequestStatus | None] = mapped_column(
        Enum(
            RequestStatus,
            name="request_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=True,
    )
    changed_at: Mapped[TimestampTZ]

    __table_args__ = (
        Index("ix_newsfeed_entries_tenant_changed", "tenant_id", "changed_at"),
    )
