"""Request lifecycle evaluation.

Pure decision functions shared by the token-gated handlers and the expiry
sweeper. Nothing here touches storage; callers act on the outcome.

State machine::

    ACTIVE --submit--> DONE
    ACTIVE --expiry / cancel--> EXPIRED
    DONE | EXPIRED --extend / reactivate--> ACTIVE   (tenant only)

A request whose expiry date has passed is treated as expired regardless of
its stored status; expiry wins over the terminal-state check.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from doclink.db.models.base import RequestKind, RequestStatus
from doclink.services.errors import (
    InvalidInputError,
    RequestExpiredError,
    RequestNotAvailableError,
)

if TYPE_CHECKING:
    from doclink.core.config import LifecycleSettings

REASON_EXPIRED = "expired"
REASON_TERMINAL = "terminal state"


class LifecycleView(Protocol):
    """The two fields lifecycle decisions depend on."""

    status: RequestStatus
    expiry_date: datetime


class ManualAction(enum.Enum):
    """Tenant-side status actions.

    Values:
        EXTEND: Reopen with a fresh expiry window
        REACTIVATE: Same effect as EXTEND
        CANCEL: Expire immediately
    """

    EXTEND = "extend"
    REACTIVATE = "reactivate"
    CANCEL = "cancel"


@dataclass(frozen=True, slots=True)
class TransitionCheck:
    """Outcome of a transition gate.

    Attributes:
        allowed: Whether a customer-driven transition may proceed.
        reason: ``"expired"`` or ``"terminal state"`` when not allowed.
    """

    allowed: bool
    reason: str | None = None


TERMINAL_STATUSES = frozenset({RequestStatus.DONE, RequestStatus.EXPIRED})


def is_terminal(status: RequestStatus) -> bool:
    """Check if ``status`` admits no further customer action."""
    return status in TERMINAL_STATUSES


def is_expired(request: LifecycleView, now: datetime) -> bool:
    """Check time-based expiry.

    A request is expired strictly after its expiry date; at exactly the
    expiry instant it is still usable. Status is not consulted.
    """
    return now > request.expiry_date


def can_transition(request: LifecycleView, now: datetime) -> TransitionCheck:
    """Decide whether a customer may still act on ``request``."""
    if is_expired(request, now):
        return TransitionCheck(allowed=False, reason=REASON_EXPIRED)
    if is_terminal(request.status):
        return TransitionCheck(allowed=False, reason=REASON_TERMINAL)
    return TransitionCheck(allowed=True)


def ensure_can_transition(token: str, request: LifecycleView, now: datetime) -> None:
    """Raise the domain error matching ``can_transition``'s verdict.

    A stored EXPIRED status (e.g. after a tenant cancel) reports as expired,
    a stored DONE status as not available.

    Raises:
        RequestExpiredError: Expired by time or by status.
        RequestNotAvailableError: Already completed.
    """
    check = can_transition(request, now)
    if check.allowed:
        return
    if check.reason == REASON_EXPIRED or request.status == RequestStatus.EXPIRED:
        raise RequestExpiredError(token)
    raise RequestNotAvailableError(token)


def parse_manual_action(action: str | None) -> ManualAction:
    """Parse a manual action name.

    Raises:
        InvalidInputError: If the action is missing or unknown.
    """
    if not action:
        raise InvalidInputError("Action is required", field="action")
    try:
        return ManualAction(action.strip().lower())
    except ValueError:
        msg = f"Unknown action {action!r}; expected one of: " + ", ".join(
            a.value for a in ManualAction
        )
        raise InvalidInputError(msg, field="action") from None


def resolve_manual_action(
    action: ManualAction,
    now: datetime,
    expiry_days: int,
) -> tuple[RequestStatus, datetime]:
    """Compute the status and expiry date a manual action produces.

    Manual actions bypass the terminal gate: a DONE or EXPIRED request can be
    reopened by its tenant.
    """
    if action in (ManualAction.EXTEND, ManualAction.REACTIVATE):
        return RequestStatus.ACTIVE, now + timedelta(days=expiry_days)
    return RequestStatus.EXPIRED, now


def compute_expiry(created_at: datetime, expiry_days: int) -> datetime:
    """Return the expiry date for a request created at ``created_at``."""
    return created_at + timedelta(days=expiry_days)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def expiry_days_for(settings: LifecycleSettings, kind: RequestKind) -> int:
    """Return the configured expiry window in days for ``kind``."""
    if kind == RequestKind.MORTGAGE_APPLICATION:
        return settings.mortgage_application_expiry_days
    return settings.document_request_expiry_days
