"""Tenant request management router.

Issue requests, list a customer's requests and apply manual status actions.
All endpoints require a tenant API key.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from doclink.api.dependencies import AppContainer
from doclink.api.middleware.auth import CurrentTenant
from doclink.api.schemas.requests import (
    IssueRequest,
    IssueResponse,
    RequestListResponse,
    RequestSummaryResponse,
    RgpdConsentResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/requests",
    tags=["requests"],
    responses={401: {"description": "Tenant API key required"}},
)


@router.post(
    "",
    response_model=IssueResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a request",
    description="Creates a tokenized request and emails the link to the customer.",
)
async def issue_request(
    body: IssueRequest,
    tenant: CurrentTenant,
    container: AppContainer,
) -> IssueResponse:
    issued = await container.issuer.issue(
        body.request_kind,
        tenant.tenant_id,
        body.customer.to_info(),
        documents=[doc.model_dump() for doc in body.documents],
        form=body.form,
        form_version=body.form_version,
    )
    return IssueResponse(
        token=issued.token,
        kind=issued.kind.value,
        customer_id=issued.customer_id,
        expiry_date=issued.expiry_date,
        link=issued.link,
        warnings=issued.warnings,
    )


@router.get(
    "",
    response_model=RequestListResponse,
    summary="List a customer's requests",
)
async def list_requests(
    tenant: CurrentTenant,
    container: AppContainer,
    customer_id: Annotated[str | None, Query(description="Tenant customer id")] = None,
) -> RequestListResponse:
    """List the customer's requests for this tenant, newest first."""
    summaries = await container.submissions.list_for_customer(tenant.tenant_id, customer_id)
    return RequestListResponse(
        customer_id=(customer_id or "").strip(),
        requests=[
            RequestSummaryResponse(
                token=s.token,
                kind=s.kind.value,
                customer_id=s.customer_id,
                status=s.status.value,
                created_at=s.created_at,
                expiry_date=s.expiry_date,
                link=s.link,
                language=s.language,
                rgpd_consent=(
                    RgpdConsentResponse(**s.rgpd_consent) if s.rgpd_consent else None
                ),
            )
            for s in summaries
        ],
    )


@router.patch(
    "/status",
    response_model=StatusUpdateResponse,
    summary="Extend, reactivate or cancel a request",
)
async def update_request_status(
    body: StatusUpdateRequest,
    tenant: CurrentTenant,
    container: AppContainer,
) -> StatusUpdateResponse:
    """Apply a manual status action.

    ``extend`` and ``reactivate`` reopen the request with a fresh expiry
    window; ``cancel`` expires it immediately.
    """
    result = await container.submissions.update_status(tenant.tenant_id, body.token, body.action)
    return StatusUpdateResponse(
        token=result.token,
        action=result.action.value,
        status=result.status.value,
        expiry_date=result.expiry_date,
    )
