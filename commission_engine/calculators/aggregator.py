"""
Session Aggregator

Reduces a trainer's sessions for a period to the qualifying count and value.
"""

from decimal import Decimal

from ..errors import AggregationFailed
from ..models import DatePeriod, SessionRecord, SessionTotals


class SessionAggregator:
    """Collects qualifying session totals from the session store."""

    def __init__(self, session_store):
        self.session_store = session_store

    def aggregate(
        self,
        trainer_id: str,
        period: DatePeriod,
        organization_id: str,
        location_ids: tuple[str, ...] = ()
    ) -> SessionTotals:
        """
        Sum qualifying sessions for one trainer.

        A session counts only if it is validated AND not cancelled. Scope
        (trainer, period, organization, locations) is re-checked here rather
        than trusted from the store.

        Raises AggregationFailed when the store fails or returns a malformed
        record, so zero totals always mean "no qualifying sessions".
        """
        try:
            sessions = list(self.session_store.find_sessions(trainer_id, period, organization_id))
        except Exception as exc:
            raise AggregationFailed(trainer_id, str(exc) or type(exc).__name__) from exc

        total_sessions = 0
        total_value = Decimal('0')

        for session in sessions:
            if not self._in_scope(session, trainer_id, period, organization_id, location_ids):
                continue
            if not session.qualifies:
                continue
            if session.value < 0:
                raise AggregationFailed(
                    trainer_id,
                    f"session {session.session_id or session.session_date} has negative value {session.value}"
                )

            total_sessions += 1
            total_value += session.value

        return SessionTotals(total_sessions=total_sessions, total_value=total_value)

    @staticmethod
    def _in_scope(
        session: SessionRecord,
        trainer_id: str,
        period: DatePeriod,
        organization_id: str,
        location_ids: tuple[str, ...]
    ) -> bool:
        if session.trainer_id != trainer_id:
            return False
        if not period.contains(session.session_date):
            return False
        if session.organization_id is not None and session.organization_id != organization_id:
            return False
        # Under a location filter, sessions without a location are out of scope
        if location_ids and session.location_id not in location_ids:
            return False
        return True
