"""Document catalog models: document types and their labels."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doclink.db.models.base import Base, TimestampTZ, UUIDPrimaryKey


class DocumentType(Base):
    """A kind of document a tenant can request, identified by ``doc_key``."""

    __tablename__ = "document_types"

    document_type_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    doc_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    translations: Mapped[list[DocumentTranslation]] = relationship(
        back_populates="document_type",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class DocumentTranslation(Base):
    """Display label of a document type in one language."""

    __tablename__ = "document_translations"

    translation_id: Mapped[UUIDPrimaryKey]
    document_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("document_types.document_type_id", ondelete="CASCADE"),
        nullable=False,
    )
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)

    document_type: Mapped[DocumentType] = relationship(back_populates="translations")

    __table_args__ = (UniqueConstraint("document_type_id", "language"),)
