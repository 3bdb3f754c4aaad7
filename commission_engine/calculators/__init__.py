"""
Calculators Package

Provides session aggregation and the commission method strategies.
"""

from ..models import CalculationMethod
from .aggregator import SessionAggregator
from .base import CommissionStrategy, quantize_money
from .graduated import GraduatedStrategy
from .progressive import ProgressiveStrategy

STRATEGIES: dict[CalculationMethod, CommissionStrategy] = {
    CalculationMethod.PROGRESSIVE: ProgressiveStrategy(),
    CalculationMethod.GRADUATED: GraduatedStrategy(),
}


def strategy_for(method) -> CommissionStrategy:
    """Strategy for a calculation method (enum or its string value)."""
    return STRATEGIES[CalculationMethod.parse(method)]


__all__ = [
    "SessionAggregator",
    "CommissionStrategy",
    "ProgressiveStrategy",
    "GraduatedStrategy",
    "STRATEGIES",
    "strategy_for",
    "quantize_money",
]
