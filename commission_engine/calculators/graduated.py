"""
Graduated Commission Strategy

Tax-bracket style: each tier's rate applies only to the sessions that fall
inside its range.
"""

from decimal import Decimal

from ..errors import TierConfigurationError
from ..models import BracketBreakdown, SessionTotals, StrategyOutcome
from .base import CommissionStrategy, quantize_money


class GraduatedStrategy(CommissionStrategy):
    """Bracket-by-bracket commission over the tier table."""

    def compute(self, totals: SessionTotals, table) -> StrategyOutcome:
        """
        Calculate a graduated commission.

        Only aggregate totals are available, so value is apportioned to each
        bracket by session count (every session is worth the period average).
        The total is rounded once from the exact bracket amounts; breakdown
        amounts are rounded per bracket for display and may not add up to it.
        """
        total = totals.total_sessions
        tier_number = table.tier_number(total)
        tier_reached = table.tiers[tier_number - 1]

        if total == 0:
            return StrategyOutcome(
                commission_amount=Decimal('0'),
                tier_reached=tier_number,
                tier=tier_reached,
            )

        breakdown = []
        assigned = 0
        exact_commission = Decimal('0')

        for number, tier in enumerate(table.tiers, start=1):
            if assigned >= total:
                break

            sessions = self._sessions_in_bracket(number, tier, total)
            if sessions == 0:
                continue

            rate = table.rate(tier)
            value = totals.total_value * sessions / total
            commission = value * rate
            exact_commission += commission

            breakdown.append(BracketBreakdown(
                tier_number=number,
                tier=tier,
                sessions=sessions,
                value=quantize_money(value),
                commission=quantize_money(commission),
                rate=rate,
            ))
            assigned += sessions

        if assigned != total:
            raise TierConfigurationError(
                f"Graduated brackets covered {assigned} of {total} sessions"
            )

        return StrategyOutcome(
            commission_amount=quantize_money(exact_commission),
            tier_reached=tier_number,
            tier=tier_reached,
            breakdown=tuple(breakdown),
        )

    @staticmethod
    def _sessions_in_bracket(number: int, tier, total: int) -> int:
        """
        Sessions (counted from 1) that land in this tier's closed range.

        The first tier starts at session 1 whatever its min_sessions, matching
        the tier table where the lowest tier catches counts below its minimum.
        """
        lower = 1 if number == 1 else tier.min_sessions
        upper = total if tier.max_sessions is None else min(total, tier.max_sessions)
        return max(0, upper - lower + 1)
