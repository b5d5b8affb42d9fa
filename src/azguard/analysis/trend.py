"""Period-over-period cost trend analysis."""

from typing import Literal

from pydantic import BaseModel

TrendDirection = Literal["increasing", "decreasing", "stable"]

DEFAULT_STABLE_THRESHOLD = 5.0  # Percent


class TrendAnalysis(BaseModel):
    """Comparison of the current month against the previous one."""

    current_month: float
    previous_month: float
    change_percent: float
    trend: TrendDirection
    average_monthly: float
    projection: float


def calculate_change(
    current: float,
    previous: float,
    stable_threshold: float = DEFAULT_STABLE_THRESHOLD,
) -> tuple[float, TrendDirection]:
    """
    Calculate the percentage change between two periods and classify it.

    The change is ((current - previous) / previous) * 100. Changes within
    +/- stable_threshold percent are "stable". With no previous spend the
    change is reported as +100% when there is current spend, otherwise 0%.

    Returns:
        Tuple of (change_percent, trend).
    """
    if previous == 0:
        if current > 0:
            return 100.0, "increasing"
        return 0.0, "stable"

    change_percent = (current - previous) / previous * 100

    if change_percent > stable_threshold:
        return change_percent, "increasing"
    if change_percent < -stable_threshold:
        return change_percent, "decreasing"
    return change_percent, "stable"


def analyze_trend(
    current: float,
    previous: float,
    monthly_totals: list[float],
    stable_threshold: float = DEFAULT_STABLE_THRESHOLD,
) -> TrendAnalysis:
    """
    Build a TrendAnalysis from two period totals and a window of monthly totals.

    Args:
        current: Current month's total.
        previous: Previous month's total.
        monthly_totals: Totals for the averaging window (months with data).
        stable_threshold: Percent band treated as stable.

    Returns:
        TrendAnalysis with a naive linear projection for the next month.
    """
    change_percent, trend = calculate_change(current, previous, stable_threshold)
    average = sum(monthly_totals) / len(monthly_totals) if monthly_totals else 0.0

    # Carry the last month-over-month delta forward one period
    projection = max(0.0, current + (current - previous))

    return TrendAnalysis(
        current_month=current,
        previous_month=previous,
        change_percent=change_percent,
        trend=trend,
        average_monthly=average,
        projection=projection,
    )
