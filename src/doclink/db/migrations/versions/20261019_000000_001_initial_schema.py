"""Initial schema: tenants, intake requests, document catalog, newsfeed.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

request_kind = postgresql.ENUM(
    "document_request", "mortgage_application", name="request_kind", create_type=False
)
request_status = postgresql.ENUM(
    "active", "done", "expired", name="request_status", create_type=False
)
newsfeed_operation = postgresql.ENUM(
    "insert", "update", name="newsfeed_operation", create_type=False
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Apply migration: create all tables."""
    bind = op.get_bind()
    request_kind.create(bind, checkfirst=True)
    request_status.create(bind, checkfirst=True)
    newsfeed_operation.create(bind, checkfirst=True)

    op.create_table(
        "tenants",
        sa.Column(
            "tenant_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("tenant_id", name=op.f("pk_tenants")),
    )

    op.create_table(
        "tenant_api_keys",
        sa.Column(
            "api_key_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        # SHA-256 of the API key
        sa.Column("key_hash", sa.String(64), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("api_key_id", name=op.f("pk_tenant_api_keys")),
        sa.UniqueConstraint("key_hash", name=op.f("uq_tenant_api_keys_key_hash")),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.tenant_id"],
            name=op.f("fk_tenant_api_keys_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "intake_requests",
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(100), nullable=False),
        sa.Column("kind", request_kind, nullable=False),
        sa.Column("status", request_status, nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("unique_link", sa.String(1000), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("folder_ref", sa.String(255), nullable=True),
        sa.Column("crm_box_key", sa.String(255), nullable=True),
        sa.Column("form_version", sa.String(20), nullable=False, server_default="1.0"),
        # Consent capture
        sa.Column("consent_given", sa.Boolean(), nullable=True),
        sa.Column("consent_version", sa.String(50), nullable=True),
        sa.Column("consent_given_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consent_timezone", sa.String(64), nullable=True),
        sa.Column("consent_user_agent", sa.String(1000), nullable=True),
        sa.Column("consent_browser_language", sa.String(35), nullable=True),
        sa.PrimaryKeyConstraint("token", name=op.f("pk_intake_requests")),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.tenant_id"],
            name=op.f("fk_intake_requests_tenant_id_tenants"),
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_intake_requests_tenant_customer",
        "intake_requests",
        ["tenant_id", "customer_id"],
        unique=False,
    )
    # Supports the sweep: status = 'active' AND expiry_date < now()
    op.create_index(
        "ix_intake_requests_status_expiry",
        "intake_requests",
        ["status", "expiry_date"],
        unique=False,
    )

    op.create_table(
        "document_types",
        sa.Column(
            "document_type_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.Column("doc_key", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("document_type_id", name=op.f("pk_document_types")),
        sa.UniqueConstraint("doc_key", name=op.f("uq_document_types_doc_key")),
    )

    op.create_table(
        "document_translations",
        sa.Column(
            "translation_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("document_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("translation_id", name=op.f("pk_document_translations")),
        sa.UniqueConstraint(
            "document_type_id",
            "language",
            name=op.f("uq_document_translations_document_type_id"),
        ),
        sa.ForeignKeyConstraint(
            ["document_type_id"],
            ["document_types.document_type_id"],
            name=op.f("fk_document_translations_document_type_id_document_types"),
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "newsfeed_entries",
        sa.Column(
            "entry_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("customer_id", sa.String(100), nullable=False),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("operation", newsfeed_operation, nullable=False),
        sa.Column("old_status", request_status, nullable=True),
        sa.Column("new_status", request_status, nullable=True),
        _timestamp("changed_at"),
        sa.PrimaryKeyConstraint("entry_id", name=op.f("pk_newsfeed_entries")),
        sa.ForeignKeyConstraint(
            ["token"],
            ["intake_requests.token"],
            name=op.f("fk_newsfeed_entries_token_intake_requests"),
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_newsfeed_entries_tenant_changed",
        "newsfeed_entries",
        ["tenant_id", "changed_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration: drop all tables and enum types."""
    op.drop_index("ix_newsfeed_entries_tenant_changed", table_name="newsfeed_entries")
    op.drop_table("newsfeed_entries")
    op.drop_table("document_translations")
    op.drop_table("document_types")
    op.drop_index("ix_intake_requests_status_expiry", table_name="intake_requests")
    op.drop_index("ix_intake_requests_tenant_customer", table_name="intake_requests")
    op.drop_table("intake_requests")
    op.drop_table("tenant_api_keys")
    op.drop_table("tenants")

    bind = op.get_bind()
    newsfeed_operation.drop(bind, checkfirst=True)
    request_status.drop(bind, checkfirst=True)
    request_kind.drop(bind, checkfirst=True)
