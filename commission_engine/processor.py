"""
Monthly Commission Calculator - Main Orchestrator

Coordinates tier loading, session aggregation and the selected commission
method for one trainer or a whole roster.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Dict

from .calculators import SessionAggregator, strategy_for
from .errors import (
    CalculationCancelled,
    SnapshotFailed,
    TierConfigurationError,
    TrainerNotEligible,
)
from .models import (
    CalculationMethod,
    CalculationOptions,
    CommissionProfile,
    CommissionRequest,
    CommissionResult,
    DatePeriod,
    MonthlyReport,
    PercentScale,
    TrainerFailure,
    TrainerIdentity,
    TrainerOutcome,
)
from .output import ExportFormatter, OutputBuilder
from .stores import (
    InMemoryProfileRepository,
    InMemoryRoster,
    InMemorySessionStore,
    InMemorySnapshotStore,
    InMemoryTierRepository,
)
from .tiers import TierTable, TierTableLoader

logger = logging.getLogger(__name__)


def check_eligibility(trainer: TrainerIdentity, options: CalculationOptions) -> None:
    """Raise TrainerNotEligible unless the trainer may earn commission here."""
    if not trainer.active:
        raise TrainerNotEligible(f"Trainer {trainer.id} is not active")
    if not trainer.trains:
        raise TrainerNotEligible(f"User {trainer.id} ({trainer.role.value}) does not train clients")
    if trainer.organization_id != options.organization_id:
        raise TrainerNotEligible(
            f"Trainer {trainer.id} does not belong to organization {options.organization_id}"
        )
    if not trainer.has_location_access(options.location_ids):
        raise TrainerNotEligible(
            f"Trainer {trainer.id} has no access to locations {', '.join(options.location_ids)}"
        )


class MonthlyCommissionCalculator:
    """
    Main orchestrator for commission calculation.

    Pipeline per trainer:
    1. Check eligibility
    2. Load (or seed) and validate the tier table, or the trainer's profile table
    3. Aggregate qualifying sessions
    4. Apply the selected commission method
    5. Optionally persist an immutable snapshot

    For a roster each tier table is loaded and validated once, trainers are
    computed concurrently, and failures are collected per trainer.
    """

    def __init__(
        self,
        session_store,
        tier_repository,
        roster_source,
        snapshot_store=None,
        max_workers: int = 4,
        profile_repository=None
    ):
        self.aggregator = SessionAggregator(session_store)
        self.tier_loader = TierTableLoader(tier_repository)
        self.roster_source = roster_source
        self.snapshot_store = snapshot_store
        self.profile_repository = profile_repository
        self.max_workers = max(1, max_workers)

    def calculate_for_trainer(
        self,
        trainer_id: str,
        period: DatePeriod,
        options: CalculationOptions
    ) -> CommissionResult:
        """
        Calculate one trainer's commission for a period.

        Raises:
            TrainerNotEligible: unknown, inactive or out-of-scope trainer
            InvalidTierSet: the organization's or profile's tier table is invalid
            AggregationFailed: the session store failed
            SnapshotFailed: the configured snapshot store failed
        """
        trainer = self.roster_source.get_trainer(trainer_id)
        if trainer is None:
            raise TrainerNotEligible(f"Trainer {trainer_id} not found")
        check_eligibility(trainer, options)

        table = self.tier_loader.load(options.organization_id, options.percent_scale)
        profile, table = self._resolve_profiles([trainer], options, table)[trainer.id]
        result = self._compute(trainer, table, period, options, profile)

        save = True if options.save_calculation is None else options.save_calculation
        if save:
            result = self._save(result)
        return result

    def calculate_for_roster(
        self,
        period: DatePeriod,
        options: CalculationOptions,
        cancel_event: threading.Event | None = None
    ) -> MonthlyReport:
        """
        Calculate commissions for every eligible trainer.

        A trainer whose calculation fails is left out of the report and listed
        in report.failures. An invalid organization or profile tier table
        aborts before any trainer is computed. Setting cancel_event stops
        further aggregations and raises CalculationCancelled.
        """
        organization_table = self.tier_loader.load(options.organization_id, options.percent_scale)
        save = bool(options.save_calculation)

        trainers = self.roster_source.find_eligible_trainers(
            options.organization_id, options.location_ids
        )
        # Roster sources may be broader than the engine's eligibility rules
        eligible = [t for t in trainers if self._is_eligible(t, options)]
        resolved = self._resolve_profiles(eligible, options, organization_table)

        logger.info(
            f"Calculating {options.method_for().value} commissions for {len(eligible)} trainers "
            f"in organization {options.organization_id} ({period.label})"
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(
                    self._run_trainer, trainer, *resolved[trainer.id], period, options, save, cancel_event
                )
                for trainer in eligible
            ]
            outcomes = [future.result() for future in futures]

        if cancel_event is not None and cancel_event.is_set():
            raise CalculationCancelled(
                f"Roster calculation for organization {options.organization_id} was cancelled"
            )

        report = MonthlyReport(
            organization_id=options.organization_id,
            period=period,
            method=options.method_for(),
            location_ids=options.location_ids,
            trainers_requested=len(eligible),
        )

        for outcome in outcomes:
            if outcome.ok:
                report.results.append(outcome.result)
            else:
                report.failures.append(TrainerFailure.from_exception(outcome.trainer, outcome.error))
            if outcome.snapshot_error is not None:
                report.snapshot_failures.append(
                    TrainerFailure.from_exception(outcome.trainer, outcome.snapshot_error)
                )

        report.results.sort(key=lambda r: (-r.commission_amount, r.trainer.name))

        if report.failures:
            logger.warning(
                f"Computed {report.trainer_count} of {report.trainers_requested} trainers; "
                f"failed: {', '.join(f.trainer_name for f in report.failures)}"
            )
        return report

    def calculation_history(self, trainer_id: str, limit: int = 12) -> list[dict]:
        """Saved snapshots for a trainer, most recent period first."""
        if self.snapshot_store is None:
            return []
        return self.snapshot_store.history(trainer_id, limit)

    def replace_tiers(
        self,
        organization_id: str,
        tiers,
        scale: PercentScale = PercentScale.FRACTION
    ) -> TierTable:
        """Validate and swap in a complete new tier table."""
        return self.tier_loader.replace(organization_id, tiers, scale)

    def _resolve_profiles(
        self,
        trainers: list[TrainerIdentity],
        options: CalculationOptions,
        organization_table: TierTable
    ) -> dict[str, tuple[CommissionProfile | None, TierTable]]:
        """
        Profile and tier table for each trainer.

        Trainers without a profile, or whose profile has no tiers, use the
        organization table. Each profile table is validated once per call.
        """
        tables: dict[str, TierTable] = {}
        resolved = {}

        for trainer in trainers:
            profile = self._find_profile(trainer, options)
            if profile is None:
                resolved[trainer.id] = (None, organization_table)
                continue

            if profile.id not in tables:
                tables[profile.id] = (
                    TierTable.from_tiers(profile.tiers, options.percent_scale)
                    if profile.tiers else organization_table
                )
            resolved[trainer.id] = (profile, tables[profile.id])

        return resolved

    def _find_profile(self, trainer: TrainerIdentity, options: CalculationOptions) -> CommissionProfile | None:
        if not trainer.profile_id or self.profile_repository is None:
            return None
        profile = self.profile_repository.get_profile(options.organization_id, trainer.profile_id)
        if profile is None:
            logger.warning(
                f"Commission profile {trainer.profile_id} of {trainer.name} not found, "
                f"using organization tiers"
            )
        return profile

    def _run_trainer(self, trainer, profile, table, period, options, save, cancel_event) -> TrainerOutcome:
        """Compute one roster entry, capturing its error instead of raising."""
        if cancel_event is not None and cancel_event.is_set():
            return TrainerOutcome(trainer=trainer, error=CalculationCancelled("Cancelled before aggregation"))

        try:
            result = self._compute(trainer, table, period, options, profile)
        except TierConfigurationError:
            # Invariant violation: never skip a trainer over a broken table
            raise
        except Exception as exc:
            logger.error(f"Failed to calculate commission for {trainer.name}: {exc}", exc_info=True)
            return TrainerOutcome(trainer=trainer, error=exc)

        if not save:
            return TrainerOutcome(trainer=trainer, result=result)

        try:
            return TrainerOutcome(trainer=trainer, result=self._save(result))
        except SnapshotFailed as exc:
            logger.error(f"Commission computed but not saved for {trainer.name}: {exc}")
            return TrainerOutcome(trainer=trainer, result=result, snapshot_error=exc)

    def _compute(self, trainer, table, period, options, profile=None) -> CommissionResult:
        totals = self.aggregator.aggregate(
            trainer.id, period, options.organization_id, options.location_ids
        )
        method = options.method_for(profile)
        outcome = strategy_for(method).compute(totals, table)

        return CommissionResult(
            trainer=trainer,
            organization_id=options.organization_id,
            period=period,
            method=method,
            total_sessions=totals.total_sessions,
            total_value=totals.total_value,
            commission_amount=outcome.commission_amount,
            tier_reached=outcome.tier_reached,
            tier=outcome.tier,
            breakdown=outcome.breakdown,
            profile=profile,
        )

    def _save(self, result: CommissionResult) -> CommissionResult:
        if self.snapshot_store is None:
            logger.info(f"No snapshot store configured, commission for {result.trainer.name} not saved")
            return result
        try:
            snapshot_id = self.snapshot_store.save_snapshot(result)
        except Exception as exc:
            raise SnapshotFailed(result.trainer.id, str(exc) or type(exc).__name__) from exc
        return replace(result, snapshot_id=snapshot_id)

    @staticmethod
    def _is_eligible(trainer: TrainerIdentity, options: CalculationOptions) -> bool:
        try:
            check_eligibility(trainer, options)
        except TrainerNotEligible as exc:
            logger.info(f"Skipping {trainer.name}: {exc}")
            return False
        return True


class CommissionProcessor:
    """
    Stateless dictionary API used by the HTTP entry points.

    Each request carries the tiers, trainers and sessions it needs; they are
    loaded into in-memory stores for the duration of the call.
    """

    def __init__(self, default_method=CalculationMethod.PROGRESSIVE, max_workers: int = 4):
        self.default_method = CalculationMethod.parse(default_method)
        self.max_workers = max_workers
        self.output_builder = OutputBuilder()
        self.export_formatter = ExportFormatter()

    def calculate_trainer_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        request = CommissionRequest.from_dict(data, self.default_method)
        if not request.trainer_id:
            raise ValueError("trainer_id is required")
        calculator = self._build_calculator(request)
        result = calculator.calculate_for_trainer(request.trainer_id, request.period, request.options)
        return self.output_builder.build_result(result)

    def calculate_roster_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        report = self._roster_report(data)
        return self.output_builder.build_report(report)

    def export_from_dict(self, data: Dict[str, Any]) -> str:
        """Roster report rendered as CSV text."""
        report = self._roster_report(data)
        return self.export_formatter.to_csv(self.export_formatter.format_rows(report))

    def _roster_report(self, data: Dict[str, Any]) -> MonthlyReport:
        request = CommissionRequest.from_dict(data, self.default_method)
        calculator = self._build_calculator(request)
        return calculator.calculate_for_roster(request.period, request.options)

    def _build_calculator(self, request: CommissionRequest) -> MonthlyCommissionCalculator:
        tables = {request.options.organization_id: request.tiers} if request.tiers else {}
        return MonthlyCommissionCalculator(
            session_store=InMemorySessionStore(request.sessions),
            tier_repository=InMemoryTierRepository(tables),
            roster_source=InMemoryRoster(request.trainers),
            snapshot_store=InMemorySnapshotStore(),
            max_workers=self.max_workers,
            profile_repository=InMemoryProfileRepository({request.options.organization_id: request.profiles}),
        )
