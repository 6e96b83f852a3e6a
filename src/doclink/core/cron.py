"""Five-field cron expressions evaluated in an IANA timezone.

Supports the standard ``minute hour day-of-month month day-of-week`` syntax
with ``*``, numbers, ranges (``1-5``), steps (``*/15``, ``0-30/10``), lists
(``1,15``) and three-letter month and weekday names. Weekday 0 and 7 both
mean Sunday. When both day fields are restricted a day matches if either
one does, as in classic cron.

Example:
    expr = CronExpression.parse("0 0 * * *")
    expr.next_after(datetime.now(UTC), ZoneInfo("Europe/Lisbon"))
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

_MONTH_NAMES = {
    name: i
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
_WEEKDAY_NAMES = {
    name: i for i, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}

# Four years covers every day-of-month/month combination, including Feb 29.
_SEARCH_DAYS = 366 * 4 + 1


class CronSyntaxError(ValueError):
    """Raised when a cron expression cannot be parsed."""


def _parse_value(token: str, names: dict[str, int] | None) -> int:
    if names and token.lower() in names:
        return names[token.lower()]
    if not token.isdigit():
        msg = f"invalid value {token!r}"
        raise CronSyntaxError(msg)
    return int(token)


def _parse_field(
    field: str,
    low: int,
    high: int,
    names: dict[str, int] | None = None,
) -> frozenset[int]:
    values: set[int] = set()
    for part in field.split(","):
        if not part:
            msg = f"empty list item in {field!r}"
            raise CronSyntaxError(msg)
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                msg = f"invalid step {step_text!r}"
                raise CronSyntaxError(msg)
            step = int(step_text)
        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start = _parse_value(start_text, names)
            end = _parse_value(end_text, names)
        else:
            start = _parse_value(part, names)
            # "5/10" means every 10 starting at 5
            end = high if step > 1 else start
        if start < low or end > high or start > end:
            msg = f"{part!r} is outside {low}-{high}"
            raise CronSyntaxError(msg)
        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True, slots=True)
class CronExpression:
    """A parsed cron expression."""

    source: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    days_restricted: bool
    weekdays_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        """Parse a 5-field cron expression.

        Raises:
            CronSyntaxError: If the expression is malformed.
        """
        parts = expression.split()
        if len(parts) != 5:
            msg = f"expected 5 fields, got {len(parts)}"
            raise CronSyntaxError(msg)
        minute, hour, day, month, weekday = parts
        weekdays = _parse_field(weekday, 0, 7, _WEEKDAY_NAMES)
        if 7 in weekdays:
            weekdays = (weekdays - {7}) | {0}
        return cls(
            source=" ".join(parts),
            minutes=_parse_field(minute, 0, 59),
            hours=_parse_field(hour, 0, 23),
            days=_parse_field(day, 1, 31),
            months=_parse_field(month, 1, 12, _MONTH_NAMES),
            weekdays=weekdays,
            days_restricted=not day.startswith("*"),
            weekdays_restricted=not weekday.startswith("*"),
        )

    def _day_matches(self, day: date) -> bool:
        if day.month not in self.months:
            return False
        # isoweekday: Monday=1 .. Sunday=7; cron: Sunday=0
        cron_weekday = day.isoweekday() % 7
        day_ok = day.day in self.days
        weekday_ok = cron_weekday in self.weekdays
        if self.days_restricted and self.weekdays_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok

    def matches(self, moment: datetime, tz: ZoneInfo) -> bool:
        """Check whether the minute containing ``moment`` is scheduled."""
        local = moment.astimezone(tz)
        return (
            local.minute in self.minutes
            and local.hour in self.hours
            and self._day_matches(local.date())
        )

    def next_after(self, moment: datetime, tz: ZoneInfo) -> datetime:
        """Return the first scheduled minute strictly after ``moment`` (UTC).

        Wall-clock times skipped by a DST transition are not scheduled.
        """
        local = moment.astimezone(tz)
        start = local.replace(second=0, microsecond=0, tzinfo=None) + timedelta(minutes=1)
        hours = sorted(self.hours)
        minutes = sorted(self.minutes)
        day = start.date()
        for _ in range(_SEARCH_DAYS):
            if self._day_matches(day):
                for hour in hours:
                    for minute in minutes:
                        wall = datetime.combine(day, time(hour, minute))
                        if wall < start:
                            continue
                        candidate = wall.replace(tzinfo=tz)
                        utc = candidate.astimezone(UTC)
                        if utc.astimezone(tz).replace(tzinfo=None) != wall:
                            continue
                        return utc
            day += timedelta(days=1)
        msg = f"cron expression {self.source!r} never fires"
        raise CronSyntaxError(msg)

    def __str__(self) -> str:
        return self.source
