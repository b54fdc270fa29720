"""Read-only query selectors."""

from dairy_kernel.selectors.base import BaseSelector
from dairy_kernel.selectors.period_aggregator import PeriodAggregator
from dairy_kernel.selectors.settlement_selector import SettlementSelector

__all__ = [
    "BaseSelector",
    "PeriodAggregator",
    "SettlementSelector",
]
