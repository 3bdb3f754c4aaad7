"""
Progressive Commission Strategy

The rate of the tier reached by the total session count applies to ALL
qualifying value.
"""

from decimal import Decimal

from ..models import BracketBreakdown, SessionTotals, StrategyOutcome
from .base import CommissionStrategy, quantize_money


class ProgressiveStrategy(CommissionStrategy):
    """Single rate from the tier reached, applied to the entire value."""

    def compute(self, totals: SessionTotals, table) -> StrategyOutcome:
        """
        Calculate a progressive commission.

        - Exact boundaries follow the closed ranges of the table: a count equal
          to a tier's max_sessions stays in that tier.
        - Zero sessions earn nothing, even if a value was supplied.
        """
        tier_number = table.tier_number(totals.total_sessions)
        tier = table.tiers[tier_number - 1]

        if totals.total_sessions == 0:
            return StrategyOutcome(
                commission_amount=Decimal('0'),
                tier_reached=tier_number,
                tier=tier,
            )

        commission = quantize_money(totals.total_value * table.rate(tier))

        return StrategyOutcome(
            commission_amount=commission,
            tier_reached=tier_number,
            tier=tier,
            breakdown=(
                BracketBreakdown(
                    tier_number=tier_number,
                    tier=tier,
                    sessions=totals.total_sessions,
                    value=quantize_money(totals.total_value),
                    commission=commission,
                    rate=table.rate(tier),
                ),
            ),
        )
