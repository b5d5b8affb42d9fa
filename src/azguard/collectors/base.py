"""Base classes for cost data collectors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from azguard.storage.models import GroupBy


@dataclass
class CostItem:
    """One normalized line item from a provider response."""

    service_name: str
    cost: float
    currency: str
    date: str  # YYYY-MM-DD
    resource_group: str | None = None


@dataclass
class CostQueryResult:
    """
    Parsed result of a provider cost query.

    This is the intermediate format between provider APIs and our storage models.
    Forecast queries carry only total_cost and currency, with no records.
    """

    records: list[CostItem] = field(default_factory=list)
    total_cost: float = 0.0
    currency: str = "USD"


class CostCollector(ABC):
    """Abstract base class for billing data collectors."""

    @property
    @abstractmethod
    def subscription_id(self) -> str | None:
        """Account identifier the collector queries, if configured."""
        pass

    @abstractmethod
    def query_costs(
        self,
        start_date: str,
        end_date: str,
        dimension: GroupBy = GroupBy.SERVICE_NAME,
    ) -> CostQueryResult:
        """
        Query actual costs for an inclusive date range.

        Args:
            start_date: First day (YYYY-MM-DD).
            end_date: Last day (YYYY-MM-DD). Must not precede start_date.
            dimension: Dimension the provider groups line items by.

        Returns:
            CostQueryResult with one record per returned line item.
        """
        pass

    @abstractmethod
    def get_forecast(self, granularity: str = "Monthly") -> CostQueryResult:
        """Query the provider's spend forecast. Returns a total only."""
        pass

    def query_costs_by_service(self, start_date: str, end_date: str) -> CostQueryResult:
        """Query actual costs grouped by service name."""
        return self.query_costs(start_date, end_date, GroupBy.SERVICE_NAME)

    def query_costs_by_resource_group(self, start_date: str, end_date: str) -> CostQueryResult:
        """Query actual costs grouped by resource group."""
        return self.query_costs(start_date, end_date, GroupBy.RESOURCE_GROUP)
