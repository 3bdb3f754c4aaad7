"""
Domain Models for the Trainer Commission Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum


def to_decimal(value) -> Decimal:
    """
    Convert numbers and numeric strings to Decimal without float artifacts.

    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def _parse_moment(value) -> date:
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value))


# =============================================================================
# ENUMERATIONS
# =============================================================================


class CalculationMethod(str, Enum):
    """How tier percentages are applied to a trainer's session value."""

    PROGRESSIVE = "PROGRESSIVE"
    GRADUATED = "GRADUATED"

    @property
    def label(self) -> str:
        if self is CalculationMethod.PROGRESSIVE:
            return "Progressive Tier"
        return "Graduated Tier"

    @classmethod
    def parse(cls, value) -> "CalculationMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Invalid commission method: {value}. Must be 'PROGRESSIVE' or 'GRADUATED'"
            ) from None


class PercentScale(str, Enum):
    """Representation of tier percentages for one organization."""

    FRACTION = "fraction"  # 0.5 = 50%
    PERCENT_POINTS = "percent_points"  # 50 = 50%

    @property
    def upper_limit(self) -> Decimal:
        if self is PercentScale.FRACTION:
            return Decimal("1")
        return Decimal("100")

    @classmethod
    def parse(cls, value) -> "PercentScale":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid percent_scale: {value}. Must be 'fraction' or 'percent_points'"
            ) from None


class TrainerRole(str, Enum):
    TRAINER = "TRAINER"
    PT_MANAGER = "PT_MANAGER"
    CLUB_MANAGER = "CLUB_MANAGER"
    ADMIN = "ADMIN"


MANAGER_ROLES = frozenset({TrainerRole.PT_MANAGER, TrainerRole.CLUB_MANAGER})


# =============================================================================
# INPUT MODELS
# =============================================================================


@dataclass(frozen=True)
class CommissionTier:
    """A single bracket of an organization's commission table."""

    min_sessions: int
    max_sessions: int | None  # None = unbounded
    percentage: Decimal

    @property
    def is_unbounded(self) -> bool:
        return self.max_sessions is None

    def contains(self, session_count: int) -> bool:
        if session_count < self.min_sessions:
            return False
        return self.max_sessions is None or session_count <= self.max_sessions

    def rate(self, scale: PercentScale) -> Decimal:
        """Percentage normalized to a fraction of 1."""
        if scale is PercentScale.PERCENT_POINTS:
            return self.percentage / Decimal("100")
        return self.percentage

    @property
    def label(self) -> str:
        upper = self.max_sessions if self.max_sessions is not None else "+"
        return f"{self.min_sessions}-{upper}"

    def to_dict(self) -> dict:
        return {
            "min_sessions": self.min_sessions,
            "max_sessions": self.max_sessions,
            "percentage": str(self.percentage),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionTier":
        # Support both snake_case and the camelCase keys of exported tier tables
        minimum = data["min_sessions"] if "min_sessions" in data else data["minSessions"]
        maximum = data.get("max_sessions", data.get("maxSessions"))
        return cls(
            min_sessions=int(minimum),
            max_sessions=int(maximum) if maximum is not None else None,
            percentage=to_decimal(data["percentage"]),
        )


@dataclass(frozen=True)
class CommissionProfile:
    """
    Named commission plan assigned to trainers.

    A profile with tiers replaces the organization's tier table for its
    trainers. A profile without tiers only selects the calculation method.
    """

    id: str
    name: str
    method: CalculationMethod | None = None
    tiers: tuple[CommissionTier, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionProfile":
        method = data.get("method") or data.get("calculation_method")
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            method=CalculationMethod.parse(method) if method else None,
            tiers=tuple(CommissionTier.from_dict(t) for t in data.get("tiers", [])),
        )


@dataclass(frozen=True)
class DatePeriod:
    """Date window, inclusive of both bounds at day granularity."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Period end {self.end} is before start {self.start}")

    def contains(self, moment: date) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end

    @property
    def is_calendar_month(self) -> bool:
        last_day = calendar.monthrange(self.start.year, self.start.month)[1]
        return (
            self.start.day == 1
            and self.end == date(self.start.year, self.start.month, last_day)
        )

    @property
    def label(self) -> str:
        if self.is_calendar_month:
            return self.start.strftime("%B %Y")
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

    @classmethod
    def for_month(cls, year: int, month: int) -> "DatePeriod":
        last_day = calendar.monthrange(year, month)[1]
        return cls(start=date(year, month, 1), end=date(year, month, last_day))

    @classmethod
    def from_month_string(cls, value: str) -> "DatePeriod":
        """Parse a "YYYY-MM" month."""
        try:
            year, month = (int(part) for part in value.split("-"))
            return cls.for_month(year, month)
        except ValueError:
            raise ValueError(f"Invalid month: {value}. Expected format YYYY-MM") from None

    @classmethod
    def from_value(cls, value) -> "DatePeriod":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_month_string(value)
        return cls(start=_parse_date(value["start"]), end=_parse_date(value["end"]))


@dataclass(frozen=True)
class SessionRecord:
    """A training session as returned by the session store."""

    trainer_id: str
    session_date: date
    value: Decimal
    validated: bool
    cancelled: bool = False
    organization_id: str | None = None
    location_id: str | None = None
    session_id: str | None = None

    @property
    def qualifies(self) -> bool:
        """Only client-validated, non-cancelled sessions count for commission."""
        return self.validated and not self.cancelled

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        return cls(
            trainer_id=data["trainer_id"],
            session_date=_parse_moment(data["session_date"]),
            value=to_decimal(data.get("value", 0)),
            validated=data.get("validated", False),
            cancelled=data.get("cancelled", False),
            organization_id=data.get("organization_id"),
            location_id=data.get("location_id"),
            session_id=data.get("session_id"),
        )


@dataclass(frozen=True)
class TrainerIdentity:
    """A staff member who may earn commission."""

    id: str
    name: str
    email: str
    organization_id: str
    role: TrainerRole = TrainerRole.TRAINER
    active: bool = True
    can_train: bool = False
    location_ids: tuple[str, ...] = ()
    location_name: str | None = None
    profile_name: str | None = None
    profile_id: str | None = None

    @property
    def trains(self) -> bool:
        """Trainers always train; managers only when flagged as trainers too."""
        if self.role is TrainerRole.TRAINER:
            return True
        return self.role in MANAGER_ROLES and self.can_train

    def has_location_access(self, location_ids) -> bool:
        if not location_ids:
            return True
        return bool(set(self.location_ids) & set(location_ids))

    @classmethod
    def from_dict(cls, data: dict) -> "TrainerIdentity":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data.get("email", ""),
            organization_id=data["organization_id"],
            role=TrainerRole(data.get("role", TrainerRole.TRAINER.value)),
            active=data.get("active", True),
            can_train=data.get("can_train", False),
            location_ids=tuple(data.get("location_ids", ())),
            location_name=data.get("location_name"),
            profile_name=data.get("profile_name"),
            profile_id=data.get("profile_id"),
        )


@dataclass(frozen=True)
class CalculationOptions:
    """
    Per-call options. The organization default method is resolved by the
    caller beforehand; method, when set, overrides it and every profile.
    """

    organization_id: str
    method: CalculationMethod | None = None
    location_ids: tuple[str, ...] = ()
    save_calculation: bool | None = None  # None = True for one trainer, False for a roster
    percent_scale: PercentScale = PercentScale.FRACTION
    default_method: CalculationMethod = CalculationMethod.PROGRESSIVE

    def __post_init__(self):
        if not self.organization_id:
            raise ValueError("organization_id is required")

    def method_for(self, profile: CommissionProfile | None = None) -> CalculationMethod:
        """Per-call method, then the trainer's profile, then the organization default."""
        if self.method is not None:
            return self.method
        if profile is not None and profile.method is not None:
            return profile.method
        return self.default_method


@dataclass
class CommissionRequest:
    """Complete stateless request: options plus the data the stores serve."""

    options: CalculationOptions
    period: DatePeriod
    tiers: list[CommissionTier] = field(default_factory=list)
    trainers: list[TrainerIdentity] = field(default_factory=list)
    sessions: list[SessionRecord] = field(default_factory=list)
    profiles: list[CommissionProfile] = field(default_factory=list)
    trainer_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict, default_method=CalculationMethod.PROGRESSIVE) -> "CommissionRequest":
        method = data.get("method")
        options = CalculationOptions(
            organization_id=data.get("organization_id", ""),
            method=CalculationMethod.parse(method) if method else None,
            location_ids=tuple(data.get("location_ids", ())),
            save_calculation=data.get("save_calculation"),
            percent_scale=PercentScale.parse(data.get("percent_scale", PercentScale.FRACTION)),
            default_method=CalculationMethod.parse(default_method),
        )
        return cls(
            options=options,
            period=DatePeriod.from_value(data["period"]),
            tiers=[CommissionTier.from_dict(t) for t in data.get("tiers", [])],
            trainers=[TrainerIdentity.from_dict(t) for t in data.get("trainers", [])],
            sessions=[SessionRecord.from_dict(s) for s in data.get("sessions", [])],
            profiles=[CommissionProfile.from_dict(p) for p in data.get("profiles", [])],
            trainer_id=data.get("trainer_id"),
        )


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class SessionTotals:
    """Qualifying session count and value for one trainer and period."""

    total_sessions: int = 0
    total_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class BracketBreakdown:
    """Sessions, value and commission attributed to one tier."""

    tier_number: int
    tier: CommissionTier
    sessions: int
    value: Decimal
    commission: Decimal
    rate: Decimal  # fraction of 1, whatever the table's percent scale


@dataclass(frozen=True)
class StrategyOutcome:
    """What a commission method produces from aggregated totals."""

    commission_amount: Decimal
    tier_reached: int
    tier: CommissionTier
    breakdown: tuple[BracketBreakdown, ...] = ()


@dataclass(frozen=True)
class CommissionResult:
    """
    Commission for one trainer and period.

    Results are never edited. Persisting one returns a copy carrying the
    snapshot id, and re-running a calculation produces a new snapshot.
    """

    trainer: TrainerIdentity
    organization_id: str
    period: DatePeriod
    method: CalculationMethod
    total_sessions: int
    total_value: Decimal
    commission_amount: Decimal
    tier_reached: int
    tier: CommissionTier
    breakdown: tuple[BracketBreakdown, ...] = ()
    calculated_at: datetime = field(default_factory=utcnow)
    snapshot_id: str | None = None
    profile: CommissionProfile | None = None

    @property
    def profile_name(self) -> str | None:
        if self.profile is not None:
            return self.profile.name
        return self.trainer.profile_name

    @property
    def effective_rate(self) -> Decimal:
        """Commission as a fraction of qualifying value."""
        if self.total_value <= 0:
            return Decimal("0")
        return self.commission_amount / self.total_value

    def to_snapshot(self) -> dict:
        """Audit payload persisted for payroll."""
        return {
            "trainer_id": self.trainer.id,
            "trainer_name": self.trainer.name,
            "organization_id": self.organization_id,
            "period_start": self.period.start.isoformat(),
            "period_end": self.period.end.isoformat(),
            "calculation_method": self.method.value,
            "total_sessions": self.total_sessions,
            "total_value": str(self.total_value),
            "commission_amount": str(self.commission_amount),
            "tier_reached": self.tier_reached,
            "profile_id": self.profile.id if self.profile else None,
            "tier": self.tier.to_dict(),
            "breakdown": [
                {
                    "tier_number": b.tier_number,
                    "sessions": b.sessions,
                    "value": str(b.value),
                    "commission": str(b.commission),
                    "rate": str(b.rate),
                }
                for b in self.breakdown
            ],
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class TrainerFailure:
    """A trainer left out of a roster report, or whose snapshot was not saved."""

    trainer_id: str
    trainer_name: str
    error: str
    message: str

    @classmethod
    def from_exception(cls, trainer: TrainerIdentity, exc: Exception) -> "TrainerFailure":
        return cls(
            trainer_id=trainer.id,
            trainer_name=trainer.name,
            error=type(exc).__name__,
            message=str(exc),
        )


@dataclass(frozen=True)
class TrainerOutcome:
    """Per-trainer result of a roster fan-out: a result or the error that prevented it."""

    trainer: TrainerIdentity
    result: CommissionResult | None = None
    error: Exception | None = None
    snapshot_error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class MonthlyReport:
    """Per-trainer results for one roster and period, ranked by commission."""

    organization_id: str
    period: DatePeriod
    method: CalculationMethod
    location_ids: tuple[str, ...] = ()
    results: list[CommissionResult] = field(default_factory=list)
    failures: list[TrainerFailure] = field(default_factory=list)
    snapshot_failures: list[TrainerFailure] = field(default_factory=list)
    trainers_requested: int = 0
    generated_at: datetime = field(default_factory=utcnow)

    @property
    def trainer_count(self) -> int:
        return len(self.results)

    @property
    def total_sessions(self) -> int:
        return sum(r.total_sessions for r in self.results)

    @property
    def total_value(self) -> Decimal:
        return sum((r.total_value for r in self.results), Decimal("0"))

    @property
    def total_commission(self) -> Decimal:
        return sum((r.commission_amount for r in self.results), Decimal("0"))

    @property
    def is_complete(self) -> bool:
        return self.trainer_count == self.trainers_requested
