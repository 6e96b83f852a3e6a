"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Reusable annotated column types
- Enum types used across multiple models
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()

UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

ShortString = Annotated[str, mapped_column(String(100))]
MediumString = Annotated[str, mapped_column(String(255))]


class Base(DeclarativeBase):
    """Declarative base for all doclink models."""

    metadata = metadata
    registry = type_registry


# =============================================================================
# Common Enums
# =============================================================================


class RequestKind(enum.Enum):
    """Kind of intake request a token grants access to.

    Values:
        DOCUMENT_REQUEST: Customer uploads a list of requested documents
        MORTGAGE_APPLICATION: Customer fills in the mortgage application form
    """

    DOCUMENT_REQUEST = "document_request"
    MORTGAGE_APPLICATION = "mortgage_application"


class RequestStatus(enum.Enum):
    """Request lifecycle states.

    States:
        ACTIVE: Link is usable until its expiry date
        DONE: Customer submitted; terminal for token access
        EXPIRED: Expiry date passed or the tenant cancelled; terminal for token access
    """

    ACTIVE = "active"
    DONE = "done"
    EXPIRED = "expired"


class NewsfeedOperation(enum.Enum):
    """Kind of change recorded in the newsfeed.

    Values:
        INSERT: Request created
        UPDATE: Request status changed
    """

    INSERT = "insert"
    UPDATE = "update"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
