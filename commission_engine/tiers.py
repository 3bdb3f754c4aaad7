"""
Tier Table

A validated, immutable set of commission brackets for one organization,
plus the loader that seeds defaults and replaces tables wholesale.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from .errors import TierConfigurationError
from .models import CommissionTier, PercentScale
from .validators import TierTableValidator

logger = logging.getLogger(__name__)

# Default commission structure for new organizations (fractions of 1)
DEFAULT_COMMISSION_TIERS = (
    CommissionTier(min_sessions=1, max_sessions=10, percentage=Decimal("0.40")),
    CommissionTier(min_sessions=11, max_sessions=20, percentage=Decimal("0.50")),
    CommissionTier(min_sessions=21, max_sessions=None, percentage=Decimal("0.60")),
)


def default_tiers(scale: PercentScale) -> list[CommissionTier]:
    """Default tiers expressed in the organization's percent scale."""
    if scale is PercentScale.FRACTION:
        return list(DEFAULT_COMMISSION_TIERS)
    return [
        CommissionTier(t.min_sessions, t.max_sessions, t.percentage * Decimal("100"))
        for t in DEFAULT_COMMISSION_TIERS
    ]


@dataclass(frozen=True)
class TierTable:
    """Ordered, validated tiers. Build with from_tiers, never directly."""

    tiers: tuple[CommissionTier, ...]
    scale: PercentScale = PercentScale.FRACTION

    @classmethod
    def from_tiers(cls, tiers, scale: PercentScale = PercentScale.FRACTION) -> "TierTable":
        ordered = TierTableValidator().validate(list(tiers), scale)
        return cls(tiers=tuple(ordered), scale=scale)

    def __len__(self) -> int:
        return len(self.tiers)

    def __iter__(self):
        return iter(self.tiers)

    def rate(self, tier: CommissionTier) -> Decimal:
        return tier.rate(self.scale)

    def tier_number(self, session_count: int) -> int:
        """1-based index of the tier containing session_count."""
        if session_count < 0:
            raise ValueError(f"session_count cannot be negative, got: {session_count}")

        # The lowest tier also catches counts below its own minimum
        if session_count < self.tiers[0].min_sessions:
            return 1

        matches = [n for n, tier in enumerate(self.tiers, start=1) if tier.contains(session_count)]
        if len(matches) != 1:
            raise TierConfigurationError(
                f"{session_count} sessions matched {len(matches)} tiers in "
                f"[{', '.join(t.label for t in self.tiers)}]"
            )
        return matches[0]

    def tier_for(self, session_count: int) -> CommissionTier:
        return self.tiers[self.tier_number(session_count) - 1]


class TierTableLoader:
    """Loads, lazily seeds and replaces organization tier tables."""

    def __init__(self, repository):
        self.repository = repository

    def load(self, organization_id: str, scale: PercentScale = PercentScale.FRACTION) -> TierTable:
        """
        Load and validate the organization's table.

        An empty table is seeded with the defaults first. An existing table is
        never overwritten, even when it is invalid.
        """
        tiers = list(self.repository.get_tiers(organization_id))
        if not tiers:
            logger.info(f"No commission tiers for organization {organization_id}, seeding defaults")
            tiers = default_tiers(scale)
            self.repository.replace_tiers(organization_id, tiers)

        return TierTable.from_tiers(tiers, scale)

    def replace(self, organization_id: str, tiers, scale: PercentScale = PercentScale.FRACTION) -> TierTable:
        """Validate a complete new set, then swap it in as one unit."""
        table = TierTable.from_tiers(tiers, scale)
        self.repository.replace_tiers(organization_id, list(table.tiers))
        logger.info(
            f"Replaced commission tiers for organization {organization_id}: "
            f"{', '.join(t.label for t in table.tiers)}"
        )
        return table
