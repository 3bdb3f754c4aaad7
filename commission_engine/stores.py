"""
External Collaborators

Protocols for the stores the engine reads from and writes to, plus
thread-safe in-memory implementations used by the stateless API entry points.
"""

import threading
import uuid
from typing import Iterable, Protocol

from .models import (
    CommissionProfile,
    CommissionResult,
    CommissionTier,
    DatePeriod,
    SessionRecord,
    TrainerIdentity,
)


class SessionStore(Protocol):
    def find_sessions(
        self, trainer_id: str, period: DatePeriod, organization_id: str
    ) -> Iterable[SessionRecord]: ...


class TierRepository(Protocol):
    def get_tiers(self, organization_id: str) -> list[CommissionTier]: ...

    def replace_tiers(self, organization_id: str, tiers: list[CommissionTier]) -> None: ...


class ProfileRepository(Protocol):
    def get_profile(self, organization_id: str, profile_id: str) -> CommissionProfile | None: ...


class RosterSource(Protocol):
    def find_eligible_trainers(
        self, organization_id: str, location_ids: tuple[str, ...] = ()
    ) -> list[TrainerIdentity]: ...

    def get_trainer(self, trainer_id: str) -> TrainerIdentity | None: ...


class SnapshotStore(Protocol):
    def save_snapshot(self, result: CommissionResult) -> str: ...

    def history(self, trainer_id: str, limit: int = 12) -> list[dict]: ...


# =============================================================================
# IN-MEMORY IMPLEMENTATIONS
# =============================================================================


class InMemorySessionStore:
    """Serves sessions for a trainer within the period and organization."""

    def __init__(self, sessions: Iterable[SessionRecord] = ()):
        self._sessions = list(sessions)

    def add(self, session: SessionRecord) -> None:
        self._sessions.append(session)

    def find_sessions(self, trainer_id: str, period: DatePeriod, organization_id: str) -> list[SessionRecord]:
        return [
            s for s in self._sessions
            if s.trainer_id == trainer_id
            and period.contains(s.session_date)
            and s.organization_id in (None, organization_id)
        ]


class InMemoryTierRepository:
    """Tier tables per organization, replaced wholesale under a lock."""

    def __init__(self, tables: dict[str, list[CommissionTier]] | None = None):
        self._tables = {org: list(tiers) for org, tiers in (tables or {}).items()}
        self._lock = threading.Lock()

    def get_tiers(self, organization_id: str) -> list[CommissionTier]:
        with self._lock:
            return sorted(self._tables.get(organization_id, []), key=lambda t: t.min_sessions)

    def replace_tiers(self, organization_id: str, tiers: list[CommissionTier]) -> None:
        with self._lock:
            self._tables[organization_id] = list(tiers)


class InMemoryProfileRepository:
    """Commission profiles per organization."""

    def __init__(self, profiles: dict[str, list[CommissionProfile]] | None = None):
        self._profiles = {
            org: {p.id: p for p in org_profiles} for org, org_profiles in (profiles or {}).items()
        }

    def get_profile(self, organization_id: str, profile_id: str) -> CommissionProfile | None:
        return self._profiles.get(organization_id, {}).get(profile_id)


class InMemoryRoster:
    """Trainer directory. Eligibility is re-checked by the engine."""

    def __init__(self, trainers: Iterable[TrainerIdentity] = ()):
        self._trainers = {t.id: t for t in trainers}

    def find_eligible_trainers(self, organization_id: str, location_ids: tuple[str, ...] = ()) -> list[TrainerIdentity]:
        return [
            t for t in self._trainers.values()
            if t.organization_id == organization_id
            and t.active
            and t.trains
            and t.has_location_access(location_ids)
        ]

    def get_trainer(self, trainer_id: str) -> TrainerIdentity | None:
        return self._trainers.get(trainer_id)


class InMemorySnapshotStore:
    """Append-only snapshot log. Saved snapshots are never edited."""

    def __init__(self):
        self._snapshots: list[dict] = []
        self._lock = threading.Lock()

    def save_snapshot(self, result: CommissionResult) -> str:
        snapshot_id = uuid.uuid4().hex
        payload = dict(result.to_snapshot(), id=snapshot_id)
        with self._lock:
            self._snapshots.append(payload)
        return snapshot_id

    def history(self, trainer_id: str, limit: int = 12) -> list[dict]:
        with self._lock:
            rows = [dict(s) for s in self._snapshots if s["trainer_id"] == trainer_id]
        rows.sort(key=lambda s: (s["period_end"], s["calculated_at"]), reverse=True)
        return rows[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
