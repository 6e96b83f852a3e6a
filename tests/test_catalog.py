"""Tests for the document catalog."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from doclink.db.models import DocumentType
from doclink.services.catalog import (
    DocumentCatalog,
    DocumentTypeNotFoundError,
    validate_translations,
)
from doclink.services.errors import ConflictError, InvalidInputError

TRANSLATIONS = {"en": "Passport", "pt": "Passaporte"}


def test_normalizes_languages_and_labels():
    cleaned = validate_translations(
        "passport", {"EN": " Passport ", "pt": "Passaporte", "fr": "  "}
    )
    assert cleaned == {"en": "Passport", "pt": "Passaporte"}


def test_requires_english_and_portuguese():
    with pytest.raises(InvalidInputError, match="pt") as exc_info:
        validate_translations("passport", {"en": "Passport"})
    assert exc_info.value.field == "translations"


def test_requires_doc_key():
    with pytest.raises(InvalidInputError) as exc_info:
        validate_translations(" ", TRANSLATIONS)
    assert exc_info.value.field == "doc_key"


class TestDocumentCatalog:
    @pytest.fixture
    def mock_session(self):
        session = AsyncMock()
        session.add = MagicMock()
        return session

    @pytest.fixture
    def catalog(self, mock_session) -> DocumentCatalog:
        return DocumentCatalog(MagicMock(return_value=mock_session))

    def lookup_finds(self, mock_session, row):
        result = MagicMock()
        result.first.return_value = row
        mock_session.execute.return_value = result

    async def test_labels_for_language(self, catalog, mock_session):
        result = MagicMock()
        result.all.return_value = [("passport", "Passaporte"), ("payslip", "Recibo")]
        mock_session.execute.return_value = result

        assert await catalog.labels_for("PT") == {"passport": "Passaporte", "payslip": "Recibo"}

    async def test_create_adds_document_with_translations(self, catalog, mock_session):
        self.lookup_finds(mock_session, None)

        entry = await catalog.create_document(" passport ", TRANSLATIONS)

        assert (entry.key, entry.value) == ("passport", "Passport")
        document = mock_session.add.call_args[0][0]
        assert isinstance(document, DocumentType)
        assert document.doc_key == "passport"
        assert {t.language: t.label for t in document.translations} == TRANSLATIONS
        mock_session.commit.assert_awaited_once()

    async def test_create_existing_key_conflicts(self, catalog, mock_session):
        self.lookup_finds(mock_session, ("existing-id",))

        with pytest.raises(ConflictError):
            await catalog.create_document("passport", TRANSLATIONS)

        mock_session.add.assert_not_called()

    async def test_concurrent_create_conflicts(self, catalog, mock_session):
        self.lookup_finds(mock_session, None)
        mock_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(ConflictError):
            await catalog.create_document("passport", TRANSLATIONS)

    async def test_delete_unknown_key(self, catalog, mock_session):
        mock_session.execute.return_value = MagicMock(rowcount=0)

        with pytest.raises(DocumentTypeNotFoundError):
            await catalog.delete_document("deed")

        mock_session.commit.assert_not_awaited()
