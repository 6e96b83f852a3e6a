"""Token-gated access to intake requests and tenant status updates.

Customers present only their token. Every read and write goes through the
lifecycle gate in ``doclink.services.lifecycle``:

1. unknown token -> not found
2. expiry date passed -> persist EXPIRED (best effort), then expired
3. DONE -> not available; EXPIRED -> expired

Submissions are written with a compare-and-set on ``status = ACTIVE`` so
concurrent submits for one token cannot both succeed. Event publication
runs after commit through the side-effect dispatcher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from doclink.db.models import RequestKind, RequestStatus
from doclink.services.consent import consent_updates, rgpd_consent
from doclink.services.errors import (
    InvalidInputError,
    RequestNotAvailableError,
    RequestNotFoundError,
)
from doclink.services.lifecycle import (
    ManualAction,
    ensure_can_transition,
    expiry_days_for,
    is_expired,
    parse_manual_action,
    resolve_manual_action,
    utcnow,
)

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from doclink.core.config import Settings
    from doclink.db.models import IntakeRequest
    from doclink.services.catalog import LabelSource
    from doclink.services.consent import ConsentInput
    from doclink.services.dispatch import SideEffectDispatcher
    from doclink.services.events import HttpEventPublisher
    from doclink.services.repository import RequestRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DocumentLine:
    """A requested document with its label in the request's language."""

    key: str
    value: str
    quantity: int


@dataclass(frozen=True, slots=True)
class RequestView:
    """What a token holder may see of a request.

    Tenant id, contact details and internal references are left out.
    """

    token: str
    kind: RequestKind
    customer_id: str
    language: str
    status: RequestStatus
    created_at: datetime
    expiry_date: datetime
    form_version: str
    documents: list[DocumentLine] = field(default_factory=list)
    application_form: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    token: str
    status: RequestStatus


@dataclass(frozen=True, slots=True)
class StatusUpdateResult:
    """Outcome of a tenant-side status action."""

    token: str
    action: ManualAction
    status: RequestStatus
    expiry_date: datetime


@dataclass(frozen=True, slots=True)
class RequestSummary:
    """A request as listed to its tenant."""

    token: str
    kind: RequestKind
    customer_id: str
    status: RequestStatus
    created_at: datetime
    expiry_date: datetime
    link: str
    language: str
    rgpd_consent: dict[str, Any] | None = None


def _require_token(token: str | None) -> str:
    if token is None or not token.strip():
        raise InvalidInputError("Token is required", field="token")
    return token.strip()


def build_document_lines(
    requested: list[dict[str, Any]],
    labels: dict[str, str],
) -> list[DocumentLine]:
    """Attach catalog labels to requested documents; unknown keys get ""."""
    return [
        DocumentLine(
            key=entry["key"],
            value=labels.get(entry["key"], ""),
            quantity=int(entry.get("quantity", 1)),
        )
        for entry in requested
    ]


class SubmissionHandler:
    """Fetch, submit and status-update operations on intake requests."""

    def __init__(
        self,
        settings: Settings,
        repository: RequestRepository,
        labels: LabelSource,
        dispatcher: SideEffectDispatcher,
        events: HttpEventPublisher | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._labels = labels
        self._dispatcher = dispatcher
        self._events = events

    async def _load_open_request(self, token: str, now: datetime) -> IntakeRequest:
        """Look up ``token`` and pass it through the lifecycle gate.

        Raises:
            RequestNotFoundError: Unknown token.
            RequestExpiredError: Expired by time or status.
            RequestNotAvailableError: Already completed.
        """
        request = await self._repository.find_by_token(token)
        if request is None:
            raise RequestNotFoundError(token)
        if is_expired(request, now) and request.status == RequestStatus.ACTIVE:
            await self._expire_lazily(request, now)
        ensure_can_transition(token, request, now)
        return request

    async def _expire_lazily(self, request: IntakeRequest, now: datetime) -> None:
        """Persist EXPIRED for a time-expired ACTIVE request.

        Failures are logged; the caller still reports the request as expired.
        """
        try:
            await self._repository.update_fields(
                request.token,
                {"status": RequestStatus.EXPIRED, "updated_at": now},
                expected_status=RequestStatus.ACTIVE,
            )
        except Exception:
            logger.exception("Failed to persist lazy expiry for request %s...", request.token[:8])
        else:
            logger.info("Request %s... expired on access", request.token[:8])

    async def open_request(self, token: str | None) -> IntakeRequest:
        """Return the stored request if it is still open for the customer."""
        token = _require_token(token)
        return await self._load_open_request(token, utcnow())

    async def fetch_by_token(self, token: str | None) -> RequestView:
        """Return the customer-visible view of an open request."""
        token = _require_token(token)
        now = utcnow()
        request = await self._load_open_request(token, now)

        labels = await self._labels.labels_for(request.language)
        payload = request.payload or {}
        return RequestView(
            token=request.token,
            kind=request.kind,
            customer_id=request.customer_id,
            language=request.language,
            status=request.status,
            created_at=request.created_at,
            expiry_date=request.expiry_date,
            form_version=request.form_version,
            documents=build_document_lines(payload.get("requested_documents", []), labels),
            application_form=(
                payload.get("application_form")
                if request.kind == RequestKind.MORTGAGE_APPLICATION
                else None
            ),
        )

    async def submit(
        self,
        token: str | None,
        submission: dict[str, Any],
        consent: ConsentInput | None = None,
    ) -> SubmissionResult:
        """Record the customer's submission and mark the request DONE.

        Raises:
            InvalidInputError: Missing token.
            RequestNotFoundError: Unknown token.
            RequestExpiredError: Expired by time or status.
            RequestNotAvailableError: Already completed (including a
                concurrent submit that committed first).
        """
        token = _require_token(token)
        now = utcnow()
        request = await self._load_open_request(token, now)

        payload = dict(request.payload or {})
        payload["submission"] = submission
        fields: dict[str, Any] = {
            "payload": payload,
            "status": RequestStatus.DONE,
            "updated_at": now,
            **consent_updates(consent),
        }
        updated = await self._repository.update_fields(
            token, fields, expected_status=RequestStatus.ACTIVE
        )
        if updated is None:
            # Another writer moved the request on since the gate check
            current = await self._repository.find_by_token(token)
            if current is None:
                raise RequestNotFoundError(token)
            ensure_can_transition(token, current, now)
            # Completed and reopened by the tenant since the gate check
            raise RequestNotAvailableError(token)

        logger.info("Request %s... submitted", token[:8], extra={"kind": updated.kind.value})

        if self._events is not None:
            self._dispatcher.dispatch(
                "publish_submission",
                self._events.publish_submission(updated, submission),
                token_prefix=token[:8],
            )
        return SubmissionResult(token=token, status=RequestStatus.DONE)

    async def update_status(
        self,
        tenant_id: uuid.UUID,
        token: str | None,
        action: str | ManualAction | None,
    ) -> StatusUpdateResult:
        """Apply a tenant-side status action.

        Extend and reactivate reopen the request for a fresh expiry window;
        cancel expires it now. Terminal requests can be reopened.

        Raises:
            InvalidInputError: Missing token or unknown action.
            RequestNotFoundError: No such request for this tenant.
        """
        token = _require_token(token)
        if isinstance(action, ManualAction):
            manual_action = action
        else:
            manual_action = parse_manual_action(action)

        request = await self._repository.find_by_token_for_tenant(tenant_id, token)
        if request is None:
            raise RequestNotFoundError(token)

        now = utcnow()
        status, expiry_date = resolve_manual_action(
            manual_action,
            now,
            expiry_days_for(self._settings.lifecycle, request.kind),
        )
        updated = await self._repository.update_fields(
            token,
            {"status": status, "expiry_date": expiry_date, "updated_at": now},
        )
        if updated is None:
            raise RequestNotFoundError(token)

        logger.info(
            "Request %s... %s by tenant: %s -> %s, expires %s",
            token[:8],
            manual_action.value,
            request.status.value,
            status.value,
            expiry_date.isoformat(),
            extra={"tenant_id": str(tenant_id)},
        )
        return StatusUpdateResult(
            token=token,
            action=manual_action,
            status=updated.status,
            expiry_date=updated.expiry_date,
        )

    async def list_for_customer(
        self,
        tenant_id: uuid.UUID,
        customer_id: str | None,
    ) -> list[RequestSummary]:
        """List a customer's requests for the tenant, newest first."""
        if not customer_id or not customer_id.strip():
            raise InvalidInputError("customer_id is required", field="customer_id")
        requests = await self._repository.find_all_by_tenant_and_customer(
            tenant_id, customer_id.strip()
        )
        return [
            RequestSummary(
                token=r.token,
                kind=r.kind,
                customer_id=r.customer_id,
                status=r.status,
                created_at=r.created_at,
                expiry_date=r.expiry_date,
                link=r.unique_link,
                language=r.language,
                rgpd_consent=rgpd_consent(r),
            )
            for r in requests
        ]
