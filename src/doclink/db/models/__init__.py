"""SQLAlchemy ORM models for doclink.

This package contains all database models organized by domain:
- base: Common metadata, annotated types and enums
- requests: Tokenized intake requests
- tenants: Tenants and API keys
- catalog: Document types and per-language labels
- newsfeed: Lifecycle change log
"""

from doclink.db.models.base import (
    Base,
    NewsfeedOperation,
    RequestKind,
    RequestStatus,
    metadata,
)
from doclink.db.models.catalog import DocumentTranslation, DocumentType
from doclink.db.models.newsfeed import NewsfeedEntry
from doclink.db.models.requests import IntakeRequest
from doclink.db.models.tenants import Tenant, TenantApiKey

__all__ = [
    "Base",
    "DocumentTranslation",
    "DocumentType",
    "IntakeRequest",
    "NewsfeedEntry",
    "NewsfeedOperation",
    "RequestKind",
    "RequestStatus",
    "Tenant",
    "TenantApiKey",
    "metadata",
]
