"""In-memory stand-ins for the request store and external collaborators.

The fakes follow the same contracts as the real implementations so service
tests can run without PostgreSQL, SMTP, S3 or HTTP endpoints.
"""

from __future__ import annotations

import copy
import hashlib
import uuid
from datetime import UTC, datetime
from typing import Any

from doclink.api.middleware.auth import AuthenticatedTenant
from doclink.db.models import IntakeRequest, NewsfeedEntry, NewsfeedOperation, RequestStatus
from doclink.services.catalog import CatalogEntry, CatalogListing, DocumentTypeNotFoundError
from doclink.services.errors import ConflictError
from doclink.services.newsfeed import format_entry
from doclink.services.repository import DuplicateTokenError
from doclink.services.storage import StorageError, StoredFile

REQUEST_COLUMNS = [column.key for column in IntakeRequest.__table__.columns]


def _values(request: IntakeRequest) -> dict[str, Any]:
    return {name: copy.deepcopy(getattr(request, name)) for name in REQUEST_COLUMNS}


class InMemoryRequestRepository:
    """Request store keeping rows as plain dicts.

    Every read returns a fresh detached object, like a new database session
    would, so callers never share state with the store.
    """

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.newsfeed: list[NewsfeedEntry] = []
        self.collisions_remaining = 0
        self.fail_updates = False
        self.update_calls = 0

    def _load(self, token: str) -> IntakeRequest | None:
        values = self.rows.get(token)
        if values is None:
            return None
        return IntakeRequest(**copy.deepcopy(values))

    def put(self, request: IntakeRequest) -> IntakeRequest:
        """Store ``request`` directly, bypassing newsfeed bookkeeping."""
        self.rows[request.token] = _values(request)
        return request

    def status_of(self, token: str) -> RequestStatus:
        return self.rows[token]["status"]

    async def find_by_token(self, token: str) -> IntakeRequest | None:
        return self._load(token)

    async def find_by_token_for_tenant(
        self, tenant_id: uuid.UUID, token: str
    ) -> IntakeRequest | None:
        values = self.rows.get(token)
        if values is None or values["tenant_id"] != tenant_id:
            return None
        return self._load(token)

    async def find_all_by_tenant_and_customer(
        self, tenant_id: uuid.UUID, customer_id: str
    ) -> list[IntakeRequest]:
        tokens = [
            token
            for token, values in self.rows.items()
            if values["tenant_id"] == tenant_id and values["customer_id"] == customer_id
        ]
        requests = [self._load(token) for token in tokens]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    async def create(self, request: IntakeRequest) -> IntakeRequest:
        if self.collisions_remaining > 0:
            self.collisions_remaining -= 1
            raise DuplicateTokenError(request.token)
        if request.token in self.rows:
            raise DuplicateTokenError(request.token)
        self.rows[request.token] = _values(request)
        self.newsfeed.append(
            NewsfeedEntry(
                tenant_id=request.tenant_id,
                customer_id=request.customer_id,
                token=request.token,
                operation=NewsfeedOperation.INSERT,
                new_status=request.status,
                changed_at=request.created_at,
            )
        )
        return request

    async def update_fields(
        self,
        token: str,
        fields: dict[str, Any],
        *,
        expected_status: RequestStatus | None = None,
    ) -> IntakeRequest | None:
        self.update_calls += 1
        if self.fail_updates:
            msg = "database unavailable"
            raise ConnectionError(msg)
        values = self.rows.get(token)
        if values is None:
            return None
        if expected_status is not None and values["status"] != expected_status:
            return None
        old_status = values["status"]
        values.update(copy.deepcopy(fields))
        if values["status"] != old_status:
            self.newsfeed.append(
                NewsfeedEntry(
                    tenant_id=values["tenant_id"],
                    customer_id=values["customer_id"],
                    token=token,
                    operation=NewsfeedOperation.UPDATE,
                    old_status=old_status,
                    new_status=values["status"],
                    changed_at=fields.get("updated_at") or datetime.now(UTC),
                )
            )
        return self._load(token)

    async def bulk_update_expired(self, now: datetime) -> int:
        count = 0
        for token, values in self.rows.items():
            if values["status"] == RequestStatus.ACTIVE and values["expiry_date"] < now:
                values["status"] = RequestStatus.EXPIRED
                values["updated_at"] = now
                self.newsfeed.append(
                    NewsfeedEntry(
                        tenant_id=values["tenant_id"],
                        customer_id=values["customer_id"],
                        token=token,
                        operation=NewsfeedOperation.UPDATE,
                        old_status=RequestStatus.ACTIVE,
                        new_status=RequestStatus.EXPIRED,
                        changed_at=now,
                    )
                )
                count += 1
        return count


class StaticLabels:
    """Label source over a fixed ``{language: {key: label}}`` mapping."""

    def __init__(self, labels: dict[str, dict[str, str]] | None = None) -> None:
        self.labels = labels or {}

    async def labels_for(self, language: str) -> dict[str, str]:
        return dict(self.labels.get(language, {}))


class InMemoryCatalog(StaticLabels):
    """Document catalog over the same mapping."""

    async def list_documents(self, language: str = "en") -> CatalogListing:
        keys = sorted({key for labels in self.labels.values() for key in labels})
        current = self.labels.get(language, {})
        return CatalogListing(
            language=language,
            documents=[CatalogEntry(key=key, value=current.get(key, "")) for key in keys],
        )

    async def create_document(self, doc_key: str, translations: dict[str, str]) -> CatalogEntry:
        from doclink.services.catalog import validate_translations

        cleaned = validate_translations(doc_key, translations)
        if any(doc_key in labels for labels in self.labels.values()):
            msg = f"Document type {doc_key!r} already exists"
            raise ConflictError(msg)
        for lang, label in cleaned.items():
            self.labels.setdefault(lang, {})[doc_key] = label
        return CatalogEntry(key=doc_key, value=cleaned["en"])

    async def delete_document(self, doc_key: str) -> None:
        found = False
        for labels in self.labels.values():
            if labels.pop(doc_key, None) is not None:
                found = True
        if not found:
            raise DocumentTypeNotFoundError(doc_key)


class RepositoryNewsfeed:
    """Newsfeed reading the entries recorded by the in-memory repository."""

    def __init__(self, repository: InMemoryRequestRepository, max_results: int = 50) -> None:
        self._repository = repository
        self._max_results = max_results

    async def get_newsfeed(
        self,
        tenant_id: uuid.UUID,
        customer_id: str | None = None,
        limit: int | None = None,
    ):
        entries = [
            e
            for e in self._repository.newsfeed
            if e.tenant_id == tenant_id and (customer_id is None or e.customer_id == customer_id)
        ]
        entries.sort(key=lambda e: e.changed_at, reverse=True)
        count = min(limit or self._max_results, self._max_results)
        return [format_entry(e) for e in entries[:count]]


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    async def send_request_link(self, **kwargs: Any) -> None:
        if self.fail:
            msg = "smtp down"
            raise ConnectionError(msg)
        self.sent.append(kwargs)


class RecordingEventPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[IntakeRequest, dict[str, Any]]] = []

    async def publish_submission(self, request: IntakeRequest, submission: dict[str, Any]) -> str:
        if self.fail:
            msg = "event bus down"
            raise ConnectionError(msg)
        self.published.append((request, submission))
        return uuid.uuid4().hex

    async def close(self) -> None:
        return None


class InMemoryFileStore:
    def __init__(self, fail_after: int | None = None) -> None:
        self.fail_after = fail_after
        self.files: dict[str, dict[str, Any]] = {}

    async def store(
        self,
        file_name: str,
        folder_ref: str | None,
        mime_type: str,
        content: bytes,
        metadata: dict[str, str] | None = None,
    ) -> StoredFile:
        if self.fail_after is not None and len(self.files) >= self.fail_after:
            raise StorageError("bucket unavailable", bucket="test", operation="upload")
        file_id = f"{folder_ref or 'inbox'}/{file_name}"
        self.files[file_id] = {
            "file_name": file_name,
            "mime_type": mime_type,
            "content": content,
            "metadata": metadata or {},
        }
        return StoredFile(
            file_id=file_id,
            bucket="test",
            sha256_digest=hashlib.sha256(content).hexdigest(),
            size_bytes=len(content),
        )


class RecordingCRM:
    def __init__(self, enabled: bool = True, fail: bool = False) -> None:
        self.enabled = enabled
        self.fail = fail
        self.attached: list[Any] = []

    async def attach_files(self, links: list[Any]) -> None:
        if self.fail:
            msg = "crm down"
            raise ConnectionError(msg)
        self.attached.extend(links)

    async def close(self) -> None:
        return None


class StaticTenantResolver:
    """Resolves API keys from a fixed mapping."""

    def __init__(self, keys: dict[str, AuthenticatedTenant]) -> None:
        self.keys = keys

    async def resolve(self, api_key: str) -> AuthenticatedTenant | None:
        return self.keys.get(api_key)
