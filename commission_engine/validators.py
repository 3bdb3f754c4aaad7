"""
Tier Table Validation

Validates an organization's commission brackets as one unit before any
calculation runs or any replacement is persisted.
Raises InvalidTierSet with clear messages for any constraint violation.
"""

from .errors import InvalidTierSet
from .models import CommissionTier, PercentScale


class TierTableValidator:
    """Validates commission tiers according to the bracket rules."""

    def validate(self, tiers: list[CommissionTier], scale: PercentScale) -> list[CommissionTier]:
        """
        Run all validations. Raises InvalidTierSet if any check fails.

        Returns the tiers ordered by min_sessions ascending.
        """
        if not tiers:
            raise InvalidTierSet("Tier table is empty")

        ordered = sorted(tiers, key=lambda t: t.min_sessions)

        for number, tier in enumerate(ordered, start=1):
            self._validate_tier(number, tier, scale)

        self._validate_unbounded(ordered)
        self._validate_contiguity(ordered)
        return ordered

    def _validate_tier(self, number: int, tier: CommissionTier, scale: PercentScale) -> None:
        """Validate a single tier in isolation."""
        if tier.min_sessions < 0:
            raise InvalidTierSet(f"Tier {number} min_sessions cannot be negative, got: {tier.min_sessions}")

        if tier.max_sessions is not None and tier.max_sessions <= tier.min_sessions:
            raise InvalidTierSet(
                f"Tier {number} max_sessions must exceed min_sessions, "
                f"got: {tier.min_sessions}-{tier.max_sessions}"
            )

        if not (0 <= tier.percentage <= scale.upper_limit):
            raise InvalidTierSet(
                f"Tier {number} percentage must be between 0 and {scale.upper_limit} "
                f"for {scale.value} scale, got: {tier.percentage}"
            )

    def _validate_unbounded(self, ordered: list[CommissionTier]) -> None:
        """Exactly one unbounded tier, and it must be the highest."""
        unbounded = [t for t in ordered if t.is_unbounded]
        if len(unbounded) > 1:
            raise InvalidTierSet(f"Only one tier may be unbounded, found {len(unbounded)}")

        for number, tier in enumerate(ordered[:-1], start=1):
            if tier.is_unbounded:
                raise InvalidTierSet(f"Tier {number} has no max_sessions but is not the highest tier")

        if not ordered[-1].is_unbounded:
            raise InvalidTierSet(
                f"Highest tier must be unbounded, got max_sessions={ordered[-1].max_sessions}"
            )

    def _validate_contiguity(self, ordered: list[CommissionTier]) -> None:
        """Each tier must start right after the previous one ends."""
        for number, (lower, upper) in enumerate(zip(ordered, ordered[1:]), start=1):
            expected = lower.max_sessions + 1
            if upper.min_sessions > expected:
                raise InvalidTierSet(
                    f"Gap between tier {number} ({lower.label}) and tier {number + 1} ({upper.label})"
                )
            if upper.min_sessions < expected:
                raise InvalidTierSet(
                    f"Tier {number} ({lower.label}) overlaps tier {number + 1} ({upper.label})"
                )
