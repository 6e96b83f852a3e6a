"""Intake request model.

One row per issued link. The token is both the primary key and the bearer
capability presented by the customer.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import datetime  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from doclink.db.models.base import (
    Base,
    OptionalTimestampTZ,
    RequestKind,
    RequestStatus,
    TimestampTZ,
    enum_values,
)


class IntakeRequest(Base):
    """A tokenized document request or mortgage application request.

    Rows are never deleted. Status only moves ACTIVE -> DONE or
    ACTIVE -> EXPIRED through the token-gated paths; a tenant may reactivate
    or cancel through the manual status update.
    """

    __tablename__ = "intake_requests"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.tenant_id", ondelete="RESTRICT"),
        nullable=False,
    )
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    kind: Mapped[RequestKind] = mapped_column(
        Enum(
            RequestKind,
            name="request_kind",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(
            RequestStatus,
            name="request_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=RequestStatus.ACTIVE,
    )

    # Kind-specific content: requested documents at issuance, plus the
    # customer's submission under "submission"
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")

    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    unique_link: Mapped[str] = mapped_column(String(1000), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    folder_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    crm_box_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    form_version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")

    # Consent capture; only supplied fields are written on submit
    consent_given: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consent_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    consent_given_at: Mapped[OptionalTimestampTZ]
    consent_timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    consent_user_agent: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    consent_browser_language: Mapped[str | None] = mapped_column(String(35), nullable=True)
    consent_a: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consent_b: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consent_c: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consent_d: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    __table_args__ = (
        Index("ix_intake_requests_tenant_customer", "tenant_id", "customer_id"),
        Index("ix_intake_requests_status_expiry", "status", "expiry_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<IntakeRequest {self.token[:8]}... "
            f"kind={self.kind.value} status={self.status.value}>"
        )
