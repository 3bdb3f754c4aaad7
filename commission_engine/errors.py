"""
Error kinds raised by the commission engine.

Validation errors also subclass ValueError so the entry points can map them
to 400 responses the same way as malformed input.
"""


class CommissionEngineError(Exception):
    """Base class for all engine errors."""


class InvalidTierSet(CommissionEngineError, ValueError):
    """An organization's tier table breaks the boundary invariants."""


class TrainerNotEligible(CommissionEngineError, ValueError):
    """Trainer is inactive, outside the organization or outside the location filter."""


class AggregationFailed(CommissionEngineError):
    """The session store could not be queried. Safe to retry."""

    def __init__(self, trainer_id: str, message: str):
        super().__init__(f"Aggregation failed for trainer {trainer_id}: {message}")
        self.trainer_id = trainer_id


class SnapshotFailed(CommissionEngineError):
    """A computed result could not be persisted."""

    def __init__(self, trainer_id: str, message: str):
        super().__init__(f"Snapshot failed for trainer {trainer_id}: {message}")
        self.trainer_id = trainer_id


class TierConfigurationError(CommissionEngineError):
    """A session count matched no tier (or several) in a validated table."""


class CalculationCancelled(CommissionEngineError):
    """The caller abandoned a roster calculation."""
