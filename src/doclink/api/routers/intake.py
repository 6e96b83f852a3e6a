"""Customer intake router.

Token-gated endpoints used by the customer-facing client. No API key is
required: possession of an unexpired token is the only credential.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, Query, UploadFile
from pydantic import ValidationError

from doclink.api.dependencies import AppContainer
from doclink.api.schemas.intake import (
    ConsentPayload,
    DocumentLineResponse,
    IntakeRequestResponse,
    SubmissionResponse,
    SubmitRequest,
)
from doclink.services.errors import InvalidInputError
from doclink.services.uploads import UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/intake",
    tags=["intake"],
    responses={
        400: {"description": "Missing or invalid input"},
        404: {"description": "Unknown token"},
        409: {"description": "Request already completed"},
        410: {"description": "Request expired"},
    },
)


def _parse_consent(raw: str | None) -> ConsentPayload | None:
    if not raw:
        return None
    try:
        return ConsentPayload.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        raise InvalidInputError("consent must be a JSON object", field="consent") from e


@router.get(
    "",
    response_model=IntakeRequestResponse,
    summary="Fetch a request by token",
)
async def fetch_request(
    container: AppContainer,
    token: Annotated[str | None, Query(description="Request token")] = None,
) -> IntakeRequestResponse:
    """Return the customer view of an open request."""
    view = await container.submissions.fetch_by_token(token)
    return IntakeRequestResponse(
        token=view.token,
        kind=view.kind.value,
        customer_id=view.customer_id,
        language=view.language,
        status=view.status.value,
        created_at=view.created_at,
        expiry_date=view.expiry_date,
        form_version=view.form_version,
        documents=[
            DocumentLineResponse(key=d.key, value=d.value, quantity=d.quantity)
            for d in view.documents
        ],
        application_form=view.application_form,
    )


@router.post(
    "/submit",
    response_model=SubmissionResponse,
    summary="Submit a request",
)
async def submit_request(body: SubmitRequest, container: AppContainer) -> SubmissionResponse:
    """Record the customer's submission and complete the request."""
    consent = body.consent.to_input() if body.consent else None
    result = await container.submissions.submit(body.token, body.payload, consent)
    return SubmissionResponse(token=result.token, status=result.status.value)


@router.post(
    "/upload",
    response_model=SubmissionResponse,
    summary="Upload requested documents",
    description=(
        "Multipart upload: one `doc_keys` entry per file, in the same order, "
        "naming the requested document each file belongs to."
    ),
)
async def upload_documents(
    container: AppContainer,
    token: Annotated[str | None, Form(description="Request token")] = None,
    files: Annotated[list[UploadFile] | None, File(description="Document files")] = None,
    doc_keys: Annotated[list[str] | None, Form(description="Document key per file")] = None,
    consent: Annotated[str | None, Form(description="Consent as a JSON object")] = None,
) -> SubmissionResponse:
    """Store uploaded documents and complete the document request."""
    files = files or []
    doc_keys = doc_keys or []
    if len(doc_keys) != len(files):
        raise InvalidInputError("Every file needs exactly one document key", field="doc_keys")

    uploads = [
        UploadedFile(
            doc_key=doc_key,
            file_name=upload.filename or doc_key,
            content=await upload.read(),
            mime_type=upload.content_type,
        )
        for doc_key, upload in zip(doc_keys, files, strict=True)
    ]
    consent_payload = _parse_consent(consent)
    result = await container.uploads.upload(
        token,
        uploads,
        consent_payload.to_input() if consent_payload else None,
    )
    return SubmissionResponse(token=result.token, status=result.status.value)
