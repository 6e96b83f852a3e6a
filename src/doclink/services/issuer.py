"""Token issuance for new intake requests.

Issuing a request generates an opaque 160-bit token, computes the expiry
date from the per-kind window, builds the customer-facing link, persists the
request as ACTIVE and, once committed, emails the link to the customer.
Email failures never fail issuance.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from doclink.db.models import IntakeRequest, RequestKind, RequestStatus
from doclink.services.errors import DownstreamFailureError, InvalidInputError
from doclink.services.lifecycle import compute_expiry, expiry_days_for, utcnow
from doclink.services.repository import DuplicateTokenError

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from doclink.core.config import Settings
    from doclink.services.dispatch import SideEffectDispatcher
    from doclink.services.email import EmailNotifier
    from doclink.services.repository import RequestRepository

logger = logging.getLogger(__name__)

TOKEN_BYTES = 20
DEFAULT_FORM_VERSION = "1.0"


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    """Customer a request is issued for.

    Attributes:
        customer_id: Tenant-side customer identifier.
        email: Address the link is sent to (no email is sent when None).
        name: Display name used in the email greeting.
        language: Preferred language for the email and document labels.
        folder_ref: Storage folder uploaded files go to.
        crm_box_key: CRM box uploaded files are linked to.
    """

    customer_id: str
    email: str | None = None
    name: str | None = None
    language: str = "en"
    folder_ref: str | None = None
    crm_box_key: str | None = None


@dataclass(frozen=True, slots=True)
class IssuedRequest:
    """What the tenant gets back after issuing a request."""

    token: str
    expiry_date: datetime
    link: str
    kind: RequestKind
    customer_id: str
    warnings: list[str] = field(default_factory=list)


def generate_token() -> str:
    """Return a fresh 40-character hex token."""
    return secrets.token_hex(TOKEN_BYTES)


def build_link(settings: Settings, kind: RequestKind, token: str) -> str:
    """Build the client link for ``token``.

    Production links use https on the public host; other environments point
    at the local client on its dev port.
    """
    lifecycle = settings.lifecycle
    if kind == RequestKind.MORTGAGE_APPLICATION:
        path = lifecycle.mortgage_application_path
    elif settings.is_production:
        path = lifecycle.document_request_path
    else:
        path = lifecycle.document_request_dev_path

    query = urlencode({"token": token})
    if settings.is_production:
        return f"https://{lifecycle.link_host}/{path.strip('/')}?{query}"
    return f"http://{lifecycle.link_host}:{lifecycle.dev_port}/{path.strip('/')}?{query}"


def normalize_documents(documents: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Validate the requested document list.

    Raises:
        InvalidInputError: If the list is empty or an entry has no key.
    """
    if not documents:
        raise InvalidInputError("At least one document must be requested", field="documents")
    normalized = []
    for entry in documents:
        key = str(entry.get("key") or "").strip()
        if not key:
            raise InvalidInputError("Every requested document needs a key", field="documents")
        quantity = entry.get("quantity", 1)
        if not isinstance(quantity, int) or quantity < 1:
            raise InvalidInputError(
                f"Quantity for {key!r} must be a positive integer", field="documents"
            )
        normalized.append({"key": key, "quantity": quantity})
    return normalized


class RequestIssuer:
    """Creates tokenized requests."""

    def __init__(
        self,
        settings: Settings,
        repository: RequestRepository,
        notifier: EmailNotifier | None,
        dispatcher: SideEffectDispatcher,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._notifier = notifier
        self._dispatcher = dispatcher

    async def issue(
        self,
        kind: RequestKind,
        tenant_id: uuid.UUID,
        customer: CustomerInfo,
        *,
        documents: list[dict[str, Any]] | None = None,
        form: dict[str, Any] | None = None,
        form_version: str = DEFAULT_FORM_VERSION,
    ) -> IssuedRequest:
        """Issue a new request and schedule the link email.

        Args:
            kind: Document request or mortgage application.
            tenant_id: Owning tenant.
            customer: Customer the link is for.
            documents: Requested documents (document requests only).
            form: Pre-filled application form (mortgage applications only).
            form_version: Version of the application form.

        Raises:
            InvalidInputError: If the customer or document list is invalid.
        """
        if not customer.customer_id or not customer.customer_id.strip():
            raise InvalidInputError("customer id is required", field="customer.id")

        payload: dict[str, Any]
        if kind == RequestKind.DOCUMENT_REQUEST:
            payload = {"requested_documents": normalize_documents(documents)}
        else:
            payload = {"requested_documents": documents or [], "application_form": form or {}}

        expiry_days = expiry_days_for(self._settings.lifecycle, kind)
        attempts = self._settings.lifecycle.token_issue_attempts

        for attempt in range(1, attempts + 1):
            token = generate_token()
            now = utcnow()
            request = IntakeRequest(
                token=token,
                tenant_id=tenant_id,
                customer_id=customer.customer_id.strip(),
                kind=kind,
                status=RequestStatus.ACTIVE,
                payload=payload,
                language=(customer.language or "en").lower(),
                created_at=now,
                updated_at=now,
                expiry_date=compute_expiry(now, expiry_days),
                unique_link=build_link(self._settings, kind, token),
                customer_email=customer.email,
                customer_name=customer.name,
                folder_ref=customer.folder_ref,
                crm_box_key=customer.crm_box_key,
                form_version=form_version,
            )
            try:
                await self._repository.create(request)
                break
            except DuplicateTokenError:
                logger.warning("Token collision on attempt %d/%d", attempt, attempts)
                if attempt == attempts:
                    raise DownstreamFailureError(
                        "request store", "Could not allocate a unique token"
                    ) from None
        logger.info(
            "Issued %s request %s... for customer %s, expires %s",
            kind.value,
            request.token[:8],
            request.customer_id,
            request.expiry_date.date().isoformat(),
            extra={"tenant_id": str(tenant_id)},
        )

        warnings = []
        if customer.email and self._notifier is not None:
            self._dispatcher.dispatch(
                "send_request_link",
                self._notifier.send_request_link(
                    recipient_email=customer.email,
                    recipient_name=customer.name,
                    kind=kind,
                    link=request.unique_link,
                    expiry_date=request.expiry_date,
                    language=request.language,
                ),
                token_prefix=request.token[:8],
            )
        elif not customer.email:
            warnings.append("no link email sent: customer has no email address")

        return IssuedRequest(
            token=request.token,
            expiry_date=request.expiry_date,
            link=request.unique_link,
            kind=kind,
            customer_id=request.customer_id,
            warnings=warnings,
        )
