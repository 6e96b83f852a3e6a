"""Document catalog and newsfeed routers (tenant API key required)."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from doclink.api.dependencies import AppContainer
from doclink.api.middleware.auth import CurrentTenant
from doclink.api.schemas.catalog import (
    CatalogEntryResponse,
    CatalogListResponse,
    CreateDocumentRequest,
    NewsfeedItemResponse,
    NewsfeedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["documents"],
    responses={401: {"description": "Tenant API key required"}},
)

newsfeed_router = APIRouter(
    prefix="/newsfeed",
    tags=["newsfeed"],
    responses={401: {"description": "Tenant API key required"}},
)


@router.get("", response_model=CatalogListResponse, summary="List document types")
async def list_documents(
    tenant: CurrentTenant,
    container: AppContainer,
    language: Annotated[str, Query(min_length=2, max_length=10)] = "en",
) -> CatalogListResponse:
    listing = await container.catalog.list_documents(language.lower())
    return CatalogListResponse(
        language=listing.language,
        documents=[CatalogEntryResponse(key=d.key, value=d.value) for d in listing.documents],
    )


@router.post(
    "",
    response_model=CatalogEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a document type",
)
async def create_document(
    body: CreateDocumentRequest,
    tenant: CurrentTenant,
    container: AppContainer,
) -> CatalogEntryResponse:
    entry = await container.catalog.create_document(body.key, body.translations)
    logger.info(
        "Document type %s created",
        entry.key,
        extra={"tenant_id": str(tenant.tenant_id)},
    )
    return CatalogEntryResponse(key=entry.key, value=entry.value)


@router.delete(
    "/{doc_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a document type",
)
async def delete_document(
    doc_key: str,
    tenant: CurrentTenant,
    container: AppContainer,
) -> Response:
    await container.catalog.delete_document(doc_key)
    logger.info("Document type %s deleted", doc_key, extra={"tenant_id": str(tenant.tenant_id)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@newsfeed_router.get("", response_model=NewsfeedResponse, summary="Tenant newsfeed")
async def get_newsfeed(
    tenant: CurrentTenant,
    container: AppContainer,
    customer_id: Annotated[str | None, Query(max_length=255)] = None,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> NewsfeedResponse:
    """Newest lifecycle changes for the tenant, optionally for one customer."""
    items = await container.newsfeed.get_newsfeed(tenant.tenant_id, customer_id, limit)
    return NewsfeedResponse(
        items=[
            NewsfeedItemResponse(
                customer_id=item.customer_id,
                request_id=item.request_id,
                created_date=item.created_date,
                scope=item.scope,
                operation=item.operation,
                message=item.message,
                message_variables=item.message_variables,
                old_status=item.old_status,
                new_status=item.new_status,
            )
            for item in items
        ]
    )
