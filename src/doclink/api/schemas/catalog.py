"""Pydantic schemas for the document catalog and the newsfeed."""

from __future__ import annotations

# NOTE: datetime must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CatalogEntryResponse(BaseModel):
    key: str
    value: str


class CatalogListResponse(BaseModel):
    language: str
    documents: list[CatalogEntryResponse]


class CreateDocumentRequest(BaseModel):
    """A new document type with its labels per language."""

    key: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    translations: dict[str, str] = Field(
        ..., description="Label per language code; en and pt are required"
    )

    model_config = ConfigDict(extra="forbid")


class NewsfeedItemResponse(BaseModel):
    customer_id: str
    request_id: str
    created_date: datetime
    scope: str
    operation: str
    message: str
    message_variables: dict[str, Any]
    old_status: str | None = None
    new_status: str | None = None


class NewsfeedResponse(BaseModel):
    items: list[NewsfeedItemResponse]
