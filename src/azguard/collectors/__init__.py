"""Billing data collectors for azguard."""

from azguard.collectors.base import CostCollector, CostItem, CostQueryResult
from azguard.collectors.azure_cost_management import CostManagementCollector

__all__ = [
    "CostCollector",
    "CostItem",
    "CostQueryResult",
    "CostManagementCollector",
]
