"""Consent capture on submission.

Customers may record consent when they submit. Only the fields a client
actually sends are written, so a later partial submission never erases an
earlier consent timestamp or version.

Besides the general consent flag, the privacy notice carries four separate
consents (A to D). A request counts as having full data-protection consent
only when the general flag and all four are given (the RGPD consent record).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

# Consent attribute -> request column
CONSENT_COLUMNS = {
    "given": "consent_given",
    "version": "consent_version",
    "given_at": "consent_given_at",
    "timezone": "consent_timezone",
    "user_agent": "consent_user_agent",
    "browser_language": "consent_browser_language",
    "consent_a": "consent_a",
    "consent_b": "consent_b",
    "consent_c": "consent_c",
    "consent_d": "consent_d",
}

CONSENT_FLAGS = {"A": "consent_a", "B": "consent_b", "C": "consent_c", "D": "consent_d"}


@dataclass(frozen=True, slots=True)
class ConsentInput:
    """Consent fields supplied with a submission; None means not supplied."""

    given: bool | None = None
    version: str | None = None
    given_at: datetime | None = None
    timezone: str | None = None
    user_agent: str | None = None
    browser_language: str | None = None
    consent_a: bool | None = None
    consent_b: bool | None = None
    consent_c: bool | None = None
    consent_d: bool | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def consent_updates(consent: ConsentInput | None) -> dict[str, Any]:
    """Return the request columns to write for ``consent``.

    Unsupplied fields are omitted, leaving the stored values untouched.
    """
    if consent is None:
        return {}
    updates = {}
    for attribute, column in CONSENT_COLUMNS.items():
        value = getattr(consent, attribute)
        if value is not None:
            updates[column] = value
    return updates


def consent_snapshot(record: Any) -> dict[str, Any]:
    """Read the stored consent fields of a request as a plain dict."""
    return {attribute: getattr(record, column) for attribute, column in CONSENT_COLUMNS.items()}


def rgpd_consent(record: Any) -> dict[str, Any] | None:
    """Return the consent record of a fully consented request, else None."""
    if not record.consent_given:
        return None
    if not all(getattr(record, column) for column in CONSENT_FLAGS.values()):
        return None
    return {
        "given": True,
        "version": record.consent_version,
        "given_at": record.consent_given_at,
        "timezone": record.consent_timezone,
        "user_agent": record.consent_user_agent,
        "browser_language": record.consent_browser_language,
        "consents": {flag: True for flag in CONSENT_FLAGS},
    }
