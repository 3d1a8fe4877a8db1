"""Next-run computation for recurrence cadences.

Weekday indices follow the Sunday=0 convention used by the stored profiles.
All arithmetic happens in the business timezone so that "09:00" means 09:00
at the depot regardless of the server clock.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from ...errors import ValidationError
from ...models.domain import Frequency
from ..timezones import business_zone

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time_of_day(value: str) -> time:
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM (24h)")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def normalize_days(days_of_week: Iterable[int]) -> list[int]:
    days = sorted({int(day) for day in days_of_week})
    if not days:
        raise ValidationError("daysOfWeek must contain at least one day")
    invalid = [day for day in days if day < 0 or day > 6]
    if invalid:
        raise ValidationError(f"daysOfWeek values must be between 0 (Sunday) and 6 (Saturday): {invalid}")
    return days


def sunday_index(value: date) -> int:
    return (value.weekday() + 1) % 7


def _business_zone(tz: ZoneInfo | None) -> ZoneInfo:
    return tz or business_zone()


def _at(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz)


def next_occurrence(
    days_of_week: Iterable[int],
    time_of_day: str,
    reference: datetime,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Return the earliest instant on one of ``days_of_week`` at ``time_of_day`` after ``reference``.

    Today counts only while its slot is still ahead of ``reference``; an
    exact match rolls over to the next eligible day, so the result is always
    strictly in the future.
    """
    days = normalize_days(days_of_week)
    at = parse_time_of_day(time_of_day)
    zone = _business_zone(tz)
    local = reference.astimezone(zone) if reference.tzinfo else reference.replace(tzinfo=zone)
    today = local.date()
    today_index = sunday_index(today)

    if today_index in days and _at(today, at, zone) > local:
        return _at(today, at, zone)

    later = [day for day in days if day > today_index]
    if later:
        delta = later[0] - today_index
    else:
        delta = 7 - (today_index - days[0])
    return _at(today + timedelta(days=delta), at, zone)


def _add_month(value: date) -> date:
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_run_for_frequency(
    frequency: Frequency,
    days_of_week: Iterable[int],
    time_of_day: str,
    reference: datetime,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Next run for a profile cadence.

    daily/weekly: next matching weekday slot.
    biweekly: same, but skipping a week whenever the search wraps past Saturday.
    monthly: first matching weekday slot on or after the same date next month.
    """
    days = normalize_days(days_of_week)
    zone = _business_zone(tz)
    candidate = next_occurrence(days, time_of_day, reference, zone)

    if frequency in (Frequency.DAILY, Frequency.WEEKLY):
        return candidate

    local_reference = reference.astimezone(zone) if reference.tzinfo else reference.replace(tzinfo=zone)
    if frequency is Frequency.BIWEEKLY:
        wrapped = sunday_index(candidate.date()) <= sunday_index(local_reference.date()) and candidate.date() > local_reference.date()
        return candidate + timedelta(days=7) if wrapped else candidate

    at = parse_time_of_day(time_of_day)
    anchor = _add_month(local_reference.date())
    for offset in range(7):
        day = anchor + timedelta(days=offset)
        if sunday_index(day) in days:
            return _at(day, at, zone)
    raise AssertionError("unreachable: a non-empty weekday set always matches within 7 days")
