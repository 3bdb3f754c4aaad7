"""
TRAINER COMMISSION ENGINE
Tiered monthly commissions for personal trainers
"""

from .errors import (
    AggregationFailed,
    CalculationCancelled,
    CommissionEngineError,
    InvalidTierSet,
    SnapshotFailed,
    TierConfigurationError,
    TrainerNotEligible,
)
from .models import (
    CalculationMethod,
    CalculationOptions,
    CommissionProfile,
    CommissionResult,
    CommissionTier,
    DatePeriod,
    MonthlyReport,
    PercentScale,
)
from .processor import CommissionProcessor, MonthlyCommissionCalculator
from .tiers import TierTable

__all__ = [
    'MonthlyCommissionCalculator',
    'CommissionProcessor',
    'TierTable',
    'CommissionTier',
    'CommissionProfile',
    'CommissionResult',
    'MonthlyReport',
    'CalculationMethod',
    'CalculationOptions',
    'DatePeriod',
    'PercentScale',
    'CommissionEngineError',
    'InvalidTierSet',
    'AggregationFailed',
    'TrainerNotEligible',
    'SnapshotFailed',
    'TierConfigurationError',
    'CalculationCancelled',
]
