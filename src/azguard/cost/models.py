"""Derived cost views. None of these are persisted."""

from typing import Literal

from pydantic import BaseModel, Field

from azguard.analysis.trend import TrendAnalysis
from azguard.storage.models import MonthlyCost


class Forecast(BaseModel):
    """Projected spend for the next period."""

    next_month: float
    confidence: Literal["low", "medium", "high"] = "medium"


class ServiceCost(BaseModel):
    """Total cost for one service."""

    service: str
    cost: float


class CostSummary(BaseModel):
    """
    Aggregated costs for a filter.

    total_cost is always the sum of by_service.
    """

    period: str
    total_cost: float
    currency: str = "USD"
    by_service: dict[str, float] = Field(default_factory=dict)
    by_resource_group: dict[str, float] = Field(default_factory=dict)
    forecast: Forecast | None = None
    monthly_breakdown: list[MonthlyCost] = Field(default_factory=list)
    trend: TrendAnalysis | None = None


class CostReport(BaseModel):
    """Multi-month cost report."""

    generated_at: str  # ISO 8601
    period: str
    total_cost: float
    currency: str = "USD"
    forecast: float | None = None
    top_services: list[ServiceCost] = Field(default_factory=list)
    monthly_data: list[MonthlyCost] = Field(default_factory=list)
