"""Calendar period helpers. All dates are UTC calendar dates."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta


def utc_today() -> date:
    return datetime.now(UTC).date()


def first_of_month(day: date, months: int = 0) -> date:
    """First day of the month `months` away from `day`'s month (negative goes back)."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_key(day: date) -> str:
    """Month label in YYYY-MM form."""
    return day.strftime("%Y-%m")


def current_month_date_range(today: date | None = None) -> tuple[str, str]:
    """
    Get the current month as (start, end).

    start is day 1 of the current month and end is day 1 of the following
    month (exclusive). December rolls into January of the next year.
    """
    today = today or utc_today()
    return first_of_month(today).isoformat(), first_of_month(today, 1).isoformat()


def last_n_days_range(days: int, today: date | None = None) -> tuple[str, str]:
    """Get (today - days, today) as inclusive ISO dates."""
    today = today or utc_today()
    return (today - timedelta(days=days)).isoformat(), today.isoformat()


def last_n_months_range(months: int, today: date | None = None) -> tuple[str, str]:
    """
    Get a window covering the current month and the months - 1 before it.

    Returns (first day of the oldest month, today).
    """
    today = today or utc_today()
    return first_of_month(today, -(months - 1)).isoformat(), today.isoformat()
