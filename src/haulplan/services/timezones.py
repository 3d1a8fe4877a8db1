"""Business-timezone helpers.

Timestamps without an offset are read as wall-clock time at the depot
(``settings.business_timezone``), the same way recurrence times are.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import settings


def business_zone() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def localize(value: Optional[datetime]) -> Optional[datetime]:
    """Attach the business timezone to a naive datetime; aware values pass through."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=business_zone())
