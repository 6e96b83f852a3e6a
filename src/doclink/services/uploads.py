"""Document upload for document requests.

An upload stores every file in the file store, then submits the request with
references to the stored files. Storage happens before anything is
committed, so a storage failure leaves the request ACTIVE and the customer
can retry. Once the submission commits, the files are linked to the
customer's CRM box in the background.
"""

from __future__ import annotations

import logging
import mimetypes
from collections import Counter
from dataclasses import dataclass
from pathlib import PurePath
from typing import TYPE_CHECKING, Any

from doclink.db.models import RequestKind
from doclink.services.crm import FileLink
from doclink.services.errors import DownstreamFailureError, InvalidInputError
from doclink.services.storage import StorageError

if TYPE_CHECKING:
    from doclink.services.consent import ConsentInput
    from doclink.services.crm import HttpCRMClient
    from doclink.services.dispatch import SideEffectDispatcher
    from doclink.services.storage import FileStore
    from doclink.services.submission import SubmissionHandler, SubmissionResult

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 20 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """One file sent by the customer for a requested document."""

    doc_key: str
    file_name: str
    content: bytes
    mime_type: str | None = None


def _extension(file_name: str, mime_type: str) -> str:
    suffix = PurePath(file_name).suffix
    if suffix:
        return suffix.lower()
    return mimetypes.guess_extension(mime_type) or ""


class DocumentUploadService:
    """Stores uploaded files and completes the document request."""

    def __init__(
        self,
        handler: SubmissionHandler,
        file_store: FileStore,
        dispatcher: SideEffectDispatcher,
        crm: HttpCRMClient | None = None,
    ) -> None:
        self._handler = handler
        self._file_store = file_store
        self._dispatcher = dispatcher
        self._crm = crm

    async def upload(
        self,
        token: str | None,
        files: list[UploadedFile],
        consent: ConsentInput | None = None,
    ) -> SubmissionResult:
        """Store ``files`` and submit the document request.

        Raises:
            InvalidInputError: No files, empty files, unknown document keys,
                or a token that is not a document request.
            RequestNotFoundError: Unknown token.
            RequestExpiredError: Expired by time or status.
            RequestNotAvailableError: Already completed.
            DownstreamFailureError: The file store failed.
        """
        request = await self._handler.open_request(token)
        if request.kind != RequestKind.DOCUMENT_REQUEST:
            raise InvalidInputError(
                "Uploads are only accepted for document requests", field="token"
            )
        if not files:
            raise InvalidInputError("At least one file is required", field="files")

        requested_documents = (request.payload or {}).get("requested_documents", [])
        requested = {entry["key"] for entry in requested_documents}
        for upload in files:
            if upload.doc_key not in requested:
                raise InvalidInputError(
                    f"Document {upload.doc_key!r} was not requested", field="files"
                )
            if not upload.content:
                raise InvalidInputError(f"File {upload.file_name!r} is empty", field="files")
            if len(upload.content) > MAX_FILE_BYTES:
                raise InvalidInputError(f"File {upload.file_name!r} is too large", field="files")

        counters: Counter[str] = Counter()
        stored_documents: list[dict[str, Any]] = []
        for upload in files:
            counters[upload.doc_key] += 1
            mime_type = (
                upload.mime_type
                or mimetypes.guess_type(upload.file_name)[0]
                or "application/octet-stream"
            )
            file_name = (
                f"{request.customer_id}_{upload.doc_key}_{counters[upload.doc_key]}"
                f"{_extension(upload.file_name, mime_type)}"
            )
            try:
                stored = await self._file_store.store(
                    file_name,
                    request.folder_ref,
                    mime_type,
                    upload.content,
                    {"request-token": request.token[:8], "doc-key": upload.doc_key},
                )
            except StorageError as e:
                logger.error(
                    "Failed to store %s for request %s...: %s",
                    file_name,
                    request.token[:8],
                    e.message,
                )
                raise DownstreamFailureError(
                    "file storage", "Could not store uploaded file"
                ) from e
            stored_documents.append(
                {
                    "key": upload.doc_key,
                    "file_id": stored.file_id,
                    "file_name": file_name,
                    "mime_type": mime_type,
                    "size": stored.size_bytes,
                }
            )

        result = await self._handler.submit(
            request.token, {"documents": stored_documents}, consent
        )
        logger.info("Stored %d files for request %s...", len(stored_documents), request.token[:8])

        if self._crm is not None and self._crm.enabled and request.crm_box_key:
            links = [
                FileLink(box_key=request.crm_box_key, file_id=doc["file_id"])
                for doc in stored_documents
            ]
            self._dispatcher.dispatch(
                "crm_attach_files",
                self._crm.attach_files(links),
                token_prefix=request.token[:8],
            )
        return result
