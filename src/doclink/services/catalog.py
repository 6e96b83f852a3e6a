"""Document catalog: the kinds of documents tenants can request.

Each document type has a stable ``doc_key`` and one display label per
language. Labels enrich the requested-document list shown to customers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from doclink.db import session_scope
from doclink.db.models import DocumentTranslation, DocumentType
from doclink.services.errors import ConflictError, InvalidInputError, RequestLifecycleError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

REQUIRED_LANGUAGES = ("en", "pt")


class DocumentTypeNotFoundError(RequestLifecycleError):
    """Raised when deleting a document type that does not exist."""

    code = "not_found"

    def __init__(self, doc_key: str) -> None:
        self.doc_key = doc_key
        super().__init__(f"Document type {doc_key!r} not found")


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """A document type with its label in one language."""

    key: str
    value: str


@dataclass(frozen=True, slots=True)
class CatalogListing:
    language: str
    documents: list[CatalogEntry] = field(default_factory=list)


class LabelSource(Protocol):
    """Provides display labels for document keys."""

    async def labels_for(self, language: str) -> dict[str, str]: ...


def validate_translations(doc_key: str, translations: dict[str, str]) -> dict[str, str]:
    """Normalize translations and check the required languages are present.

    Raises:
        InvalidInputError: If the key or a required translation is missing.
    """
    if not doc_key or not doc_key.strip():
        raise InvalidInputError("doc_key is required", field="doc_key")
    cleaned = {
        lang.strip().lower(): label.strip()
        for lang, label in translations.items()
        if lang and label and label.strip()
    }
    missing = [lang for lang in REQUIRED_LANGUAGES if lang not in cleaned]
    if missing:
        msg = f"Missing translations for: {', '.join(missing)}"
        raise InvalidInputError(msg, field="translations")
    return cleaned


class DocumentCatalog:
    """Catalog of document types backed by PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def labels_for(self, language: str) -> dict[str, str]:
        """Map every doc_key that has a label in ``language`` to that label."""
        async with session_scope(self._session_factory) as session:
            query = (
                select(DocumentType.doc_key, DocumentTranslation.label)
                .join(DocumentTranslation)
                .where(DocumentTranslation.language == language.lower())
            )
            result = await session.execute(query)
            return {doc_key: label for doc_key, label in result.all()}

    async def list_documents(self, language: str = "en") -> CatalogListing:
        """List every document type with its label in ``language``.

        Document types without a label in that language get an empty label.
        """
        lang = (language or "en").lower()
        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(DocumentType).order_by(DocumentType.doc_key))
            documents = result.scalars().all()
            entries = []
            for document in documents:
                label = next(
                    (t.label for t in document.translations if t.language == lang),
                    "",
                )
                entries.append(CatalogEntry(key=document.doc_key, value=label))
        return CatalogListing(language=lang, documents=entries)

    async def create_document(self, doc_key: str, translations: dict[str, str]) -> CatalogEntry:
        """Add a document type.

        Raises:
            InvalidInputError: If required translations are missing.
            ConflictError: If ``doc_key`` already exists.
        """
        cleaned = validate_translations(doc_key, translations)
        key = doc_key.strip()
        async with session_scope(self._session_factory) as session:
            existing = await session.execute(
                select(DocumentType.document_type_id).where(DocumentType.doc_key == key)
            )
            if existing.first() is not None:
                msg = f"Document type {key!r} already exists"
                raise ConflictError(msg)

            document = DocumentType(
                doc_key=key,
                translations=[
                    DocumentTranslation(language=lang, label=label)
                    for lang, label in cleaned.items()
                ],
            )
            session.add(document)
            try:
                await session.commit()
            except IntegrityError as e:
                msg = f"Document type {key!r} already exists"
                raise ConflictError(msg) from e

        logger.info("Created document type %s with %d translations", key, len(cleaned))
        return CatalogEntry(key=key, value=cleaned["en"])

    async def delete_document(self, doc_key: str) -> None:
        """Remove a document type and its translations.

        Raises:
            DocumentTypeNotFoundError: If ``doc_key`` does not exist.
        """
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                delete(DocumentType).where(DocumentType.doc_key == doc_key)
            )
            if result.rowcount == 0:
                raise DocumentTypeNotFoundError(doc_key)
            await session.commit()
        logger.info("Deleted document type %s", doc_key)
