"""Calendar bucketing keys.

Weeks follow ISO-8601 (Monday start, week 1 contains the first Thursday),
keyed "{iso_year}-W{week:02d}" so plain string order is chronological.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


def week_key(value: date | datetime) -> str:
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(value: date | datetime) -> str:
    return f"{value.year}-{value.month:02d}"


def quarter_key(value: date | datetime) -> str:
    return f"{value.year}-Q{(value.month - 1) // 3 + 1}"


def last_week_keys(now: date | datetime, count: int) -> list[str]:
    """The count most recent week keys ending with the week of now, oldest first."""
    return [week_key(now - timedelta(weeks=offset)) for offset in range(count - 1, -1, -1)]
