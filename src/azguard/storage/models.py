"""Data models for the local cost store."""

from enum import Enum

from pydantic import BaseModel, Field

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class GroupBy(str, Enum):
    """Dimension used to bucket costs in an aggregation."""

    SERVICE_NAME = "ServiceName"
    RESOURCE_GROUP = "ResourceGroup"


class CostRecord(BaseModel):
    """
    One normalized billing line item.

    Records are insert-only: once persisted they are never updated in place.
    """

    id: int | None = None  # Assigned by the store
    subscription_id: str
    resource_group: str | None = None
    service_name: str = Field(min_length=1)
    cost: float = Field(ge=0, allow_inf_nan=False)
    currency: str = Field(default="USD", min_length=1)
    date: str = Field(pattern=DATE_PATTERN)  # YYYY-MM-DD


class CostFilter(BaseModel):
    """
    Query predicate for records and aggregations.

    Empty fields impose no constraint. Date bounds are inclusive and compared
    as zero-padded ISO strings.
    """

    start_date: str | None = None
    end_date: str | None = None
    service_name: str | None = None
    group_by: GroupBy = GroupBy.SERVICE_NAME


class MonthlyCost(BaseModel):
    """Total cost for one calendar month."""

    month: str  # YYYY-MM
    total_cost: float
    currency: str = "USD"


class Alert(BaseModel):
    """A user-defined budget threshold for the current month's spend."""

    id: int | None = None
    name: str = Field(min_length=1)
    threshold: float
    subscription_id: str = ""
    enabled: bool = True
