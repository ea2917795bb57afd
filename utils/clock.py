"""Time helpers.

All persisted timestamps are naive UTC datetimes.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def subtract_months(value: datetime, months: int) -> datetime:
    """Move `value` back by whole calendar months.

    The day is clamped to the length of the target month, so
    31 May minus 3 months is the last day of February.
    """
    if months < 0:
        raise ValueError("months must be >= 0")

    total = value.year * 12 + (value.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
