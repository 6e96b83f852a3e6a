"""Pydantic schemas for tenant request management endpoints."""

from __future__ import annotations

# NOTE: datetime must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from doclink.db.models import RequestKind
from doclink.services.issuer import CustomerInfo


class CustomerInput(BaseModel):
    """Customer a request is issued for."""

    id: str = Field(..., min_length=1, max_length=255, description="Tenant customer id")
    email: EmailStr | None = Field(None, description="Address the link is emailed to")
    name: str | None = Field(None, max_length=255, description="Display name")
    language: str = Field("en", min_length=2, max_length=10, description="Preferred language")
    folder_ref: str | None = Field(None, max_length=512, description="Storage folder")
    crm_box_key: str | None = Field(None, max_length=255, description="CRM box key")

    model_config = ConfigDict(extra="forbid")

    def to_info(self) -> CustomerInfo:
        return CustomerInfo(
            customer_id=self.id,
            email=str(self.email) if self.email else None,
            name=self.name,
            language=self.language,
            folder_ref=self.folder_ref,
            crm_box_key=self.crm_box_key,
        )


class RequestedDocumentInput(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(1, ge=1, le=100)

    model_config = ConfigDict(extra="forbid")


class IssueRequest(BaseModel):
    """Issue a document request or a mortgage application."""

    kind: Literal["document_request", "mortgage_application"] = Field(
        "document_request", description="Kind of request to issue"
    )
    customer: CustomerInput
    documents: list[RequestedDocumentInput] = Field(
        default_factory=list, description="Requested documents"
    )
    form: dict[str, Any] | None = Field(None, description="Pre-filled application form")
    form_version: str = Field("1.0", max_length=20)

    model_config = ConfigDict(extra="forbid")

    @property
    def request_kind(self) -> RequestKind:
        return RequestKind(self.kind)


class IssueResponse(BaseModel):
    token: str
    kind: str
    customer_id: str
    expiry_date: datetime
    link: str
    warnings: list[str] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    """Tenant-side status action on a request."""

    token: str | None = Field(None, description="Request token")
    action: str | None = Field(None, description="extend, reactivate or cancel")

    model_config = ConfigDict(extra="forbid")


class StatusUpdateResponse(BaseModel):
    token: str
    action: str
    status: str
    expiry_date: datetime


class RgpdConsentResponse(BaseModel):
    """Consent record of a request whose customer gave every consent."""

    given: bool
    version: str | None = None
    given_at: datetime | None = None
    timezone: str | None = None
    user_agent: str | None = None
    browser_language: str | None = None
    consents: dict[str, bool]


class RequestSummaryResponse(BaseModel):
    token: str
    kind: str
    customer_id: str
    status: str
    created_at: datetime
    expiry_date: datetime
    link: str
    language: str
    rgpd_consent: RgpdConsentResponse | None = None


class RequestListResponse(BaseModel):
    customer_id: str
    requests: list[RequestSummaryResponse]
