from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Optional


def as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_bounds(yyyy_mm: str) -> tuple[date, date]:
    y, m = [int(x) for x in yyyy_mm.split("-")]
    last_day = calendar.monthrange(y, m)[1]
    return date(y, m, 1), date(y, m, last_day)


def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    idx = d.year * 12 + (d.month - 1) + int(months)
    y, m = divmod(idx, 12)
    m += 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def trailing_months(today: date, count: int) -> list[str]:
    """The `count` month keys ending with today's month, oldest first."""
    start = month_start(today)
    return [month_key(add_months(start, -i)) for i in range(count - 1, -1, -1)]


PERIOD_MONTHS = {"1month": 1, "3months": 3, "6months": 6, "12months": 12, "1year": 12}


def period_start(period: str, today: date) -> Optional[date]:
    """First day of the reporting window; None for "all"."""
    if period == "all":
        return None
    months = PERIOD_MONTHS.get(period)
    if months is None:
        raise ValueError(f"unknown period: {period}")
    return add_months(month_start(today), -(months - 1))
