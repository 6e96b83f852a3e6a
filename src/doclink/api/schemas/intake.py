"""Pydantic schemas for the token-gated customer endpoints."""

from __future__ import annotations

# NOTE: datetime must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from doclink.services.consent import ConsentInput


class ConsentPayload(BaseModel):
    """Consent fields a client may send with a submission.

    Omitted fields leave the stored values untouched.
    """

    given: bool | None = Field(None, description="Whether consent was given")
    version: str | None = Field(None, max_length=50, description="Consent text version")
    given_at: datetime | None = Field(None, description="When consent was given")
    timezone: str | None = Field(None, max_length=64, description="Client timezone")
    user_agent: str | None = Field(None, max_length=1000, description="Client user agent")
    browser_language: str | None = Field(None, max_length=35, description="Browser language")
    consent_a: bool | None = Field(None, alias="consentA", description="Privacy notice consent A")
    consent_b: bool | None = Field(None, alias="consentB", description="Privacy notice consent B")
    consent_c: bool | None = Field(None, alias="consentC", description="Privacy notice consent C")
    consent_d: bool | None = Field(None, alias="consentD", description="Privacy notice consent D")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_input(self) -> ConsentInput:
        return ConsentInput(**self.model_dump())


class DocumentLineResponse(BaseModel):
    key: str
    value: str
    quantity: int


class IntakeRequestResponse(BaseModel):
    """A request as shown to the customer holding its token."""

    token: str
    kind: str
    customer_id: str
    language: str
    status: str
    created_at: datetime
    expiry_date: datetime
    form_version: str
    documents: list[DocumentLineResponse] = Field(default_factory=list)
    application_form: dict[str, Any] | None = None


class SubmitRequest(BaseModel):
    """Submission of a request by its customer."""

    token: str | None = Field(None, description="Request token from the link")
    payload: dict[str, Any] = Field(default_factory=dict, description="Submitted data")
    consent: ConsentPayload | None = Field(None, description="Consent capture")

    model_config = ConfigDict(extra="forbid")


class SubmissionResponse(BaseModel):
    token: str
    status: str
