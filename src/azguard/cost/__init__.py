"""Cost summaries, forecasts and reports."""

from azguard.cost.models import CostReport, CostSummary, Forecast, ServiceCost
from azguard.cost.periods import (
    current_month_date_range,
    last_n_days_range,
    last_n_months_range,
)
from azguard.cost.service import CostService

__all__ = [
    "CostService",
    "CostSummary",
    "CostReport",
    "Forecast",
    "ServiceCost",
    "current_month_date_range",
    "last_n_days_range",
    "last_n_months_range",
]
