"""
Commission Strategy Base

Shared money rounding and the contract every commission method implements.
"""

from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from ..models import SessionTotals, StrategyOutcome


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class CommissionStrategy(ABC):
    """Turns aggregated totals and a validated tier table into a commission."""

    @abstractmethod
    def compute(self, totals: SessionTotals, table) -> StrategyOutcome:
        raise NotImplementedError
