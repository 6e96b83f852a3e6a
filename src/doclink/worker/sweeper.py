"""Expiry sweeper for stale intake requests.

Runs on a cron schedule and moves every ACTIVE request whose expiry date
has passed to EXPIRED, across all tenants, in one set-based update. Tokens
that are read before the sweeper gets to them are expired lazily by the
submission handler using the same rule.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from doclink.services.lifecycle import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from doclink.services.repository import RequestRepository

logger = logging.getLogger(__name__)

SWEEPER_TASK_NAME = "expire_requests"


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Outcome of one sweep.

    Attributes:
        expired_count: Requests moved to EXPIRED by this run.
        swept_at: Cut-off used; requests expiring before it were expired.
        duration_ms: Wall time of the run.
    """

    expired_count: int
    swept_at: datetime
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "expired_count": self.expired_count,
            "swept_at": self.swept_at.isoformat(),
            "duration_ms": self.duration_ms,
        }


class ExpirySweeper:
    """Expires stale ACTIVE requests."""

    def __init__(self, repository: RequestRepository) -> None:
        self._repository = repository

    async def run_once(self, now: datetime | None = None) -> SweepResult:
        """Expire every ACTIVE request with ``expiry_date < now``.

        Running it again with nothing newly expired updates no rows.

        Args:
            now: Cut-off time (defaults to the current UTC time).

        Returns:
            The number of requests expired and when.
        """
        now = now or utcnow()
        started = time.monotonic()
        count = await self._repository.bulk_update_expired(now)
        duration_ms = int((time.monotonic() - started) * 1000)

        if count:
            logger.info(
                "Expiry sweep expired %d requests",
                count,
                extra={"expired_count": count, "duration_ms": duration_ms},
            )
        else:
            logger.debug("Expiry sweep found no stale requests")
        return SweepResult(expired_count=count, swept_at=now, duration_ms=duration_ms)
