"""Add the four privacy-notice consent flags to intake_requests.

Revision ID: 002
Revises: 001
Create Date: 2026-10-20 09:00:00.000000+00:00

consent_a to consent_d record the separate consents of the privacy notice.
All are nullable: requests submitted before this revision have none.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

CONSENT_FLAG_COLUMNS = ("consent_a", "consent_b", "consent_c", "consent_d")


def upgrade() -> None:
    """Apply migration: add the consent flag columns."""
    for column in CONSENT_FLAG_COLUMNS:
        op.add_column("intake_requests", sa.Column(column, sa.Boolean(), nullable=True))


def downgrade() -> None:
    """Revert migration: drop the consent flag columns."""
    for column in reversed(CONSENT_FLAG_COLUMNS):
        op.drop_column("intake_requests", column)
