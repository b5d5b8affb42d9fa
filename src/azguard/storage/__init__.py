"""Storage layer for azguard."""

from azguard.storage.models import (
    Alert,
    CostFilter,
    CostRecord,
    GroupBy,
    MonthlyCost,
)
from azguard.storage.sqlite import SQLiteStorage

__all__ = [
    "CostRecord",
    "CostFilter",
    "GroupBy",
    "MonthlyCost",
    "Alert",
    "SQLiteStorage",
]
