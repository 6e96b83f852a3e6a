"""Tenant models: tenants and their API keys."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doclink.db.models.base import (
    Base,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)


class Tenant(Base):
    """An organisation issuing links to its customers."""

    __tablename__ = "tenants"

    tenant_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    api_keys: Mapped[list[TenantApiKey]] = relationship(back_populates="tenant")


class TenantApiKey(Base):
    """API key credential for a tenant.

    Only the SHA-256 hash of the key is stored.
    """

    __tablename__ = "tenant_api_keys"

    api_key_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[OptionalTimestampTZ]
    last_used_at: Mapped[OptionalTimestampTZ]

    tenant: Mapped[Tenant] = relationship(back_populates="api_keys")
