"""
Output Builder and Export Formatter

Constructs API responses from results and reports, and flattens reports into
delimited rows for CSV export.
"""

from datetime import datetime
from decimal import Decimal

from .models import CommissionResult, MonthlyReport, TrainerFailure


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return round(float(value), 2)


def _fmt(value) -> str:
    """Format a number as currency string."""
    return f"${value:,.2f}"


def _pct(rate: Decimal) -> str:
    """Format a fraction of 1 as a percentage string."""
    return f"{float(rate) * 100:.1f}%"


class OutputBuilder:
    """Builds JSON-ready dictionaries for API responses."""

    def build_result(self, result: CommissionResult) -> dict:
        """Construct the response for one trainer's commission."""
        trainer = result.trainer
        return {
            "trainer": {
                "id": trainer.id,
                "name": trainer.name,
                "email": trainer.email,
                "location_name": trainer.location_name,
                "profile_name": result.profile_name,
            },
            "organization_id": result.organization_id,
            "period": {
                "start": result.period.start.isoformat(),
                "end": result.period.end.isoformat(),
                "label": result.period.label,
            },
            "method": result.method.value,
            "total_sessions": result.total_sessions,
            "total_value": to_money(result.total_value),
            "commission_amount": to_money(result.commission_amount),
            "effective_rate": round(float(result.effective_rate) * 100, 2),
            "tier_reached": result.tier_reached,
            "tier": {
                "min_sessions": result.tier.min_sessions,
                "max_sessions": result.tier.max_sessions,
                "percentage": float(result.tier.percentage),
            },
            "breakdown": [
                {
                    "tier_number": b.tier_number,
                    "sessions": b.sessions,
                    "value": to_money(b.value),
                    "commission": to_money(b.commission),
                    "rate": round(float(b.rate) * 100, 2),
                    "description": (
                        f"{b.sessions} sessions in tier {b.tier_number} ({b.tier.label}): "
                        f"{_fmt(b.value)} × {_pct(b.rate)} = {_fmt(b.commission)}"
                    ),
                }
                for b in result.breakdown
            ],
            "calculated_at": result.calculated_at.isoformat(),
            "snapshot_id": result.snapshot_id,
            "profile_id": result.profile.id if result.profile else None,
        }

    def build_report(self, report: MonthlyReport) -> dict:
        """Construct the response for a roster report."""
        return {
            "organization_id": report.organization_id,
            "period": {
                "start": report.period.start.isoformat(),
                "end": report.period.end.isoformat(),
                "label": report.period.label,
            },
            "method": report.method.value,
            "location_ids": list(report.location_ids),
            "results": [self.build_result(r) for r in report.results],
            "totals": {
                "trainer_count": report.trainer_count,
                "trainers_requested": report.trainers_requested,
                "total_sessions": report.total_sessions,
                "total_value": to_money(report.total_value),
                "total_commission": to_money(report.total_commission),
            },
            "complete": report.is_complete,
            "failures": [self._build_failure(f) for f in report.failures],
            "snapshot_failures": [self._build_failure(f) for f in report.snapshot_failures],
            "generated_at": report.generated_at.isoformat(),
        }

    def _build_failure(self, failure: TrainerFailure) -> dict:
        return {
            "trainer_id": failure.trainer_id,
            "trainer_name": failure.trainer_name,
            "error": failure.error,
            "message": failure.message,
        }


class ExportFormatter:
    """Flattens a report into rows of strings. No business logic."""

    HEADERS = [
        "Trainer Name",
        "Email",
        "Location",
        "Total Sessions",
        "Total Value",
        "Commission Rate",
        "Commission Amount",
        "Tier Reached",
        "Method",
        "Profile",
    ]

    def format_rows(self, report: MonthlyReport, generated_at: datetime | None = None) -> list[list[str]]:
        """
        Rows in export order:
        header, one row per trainer, blank, TOTALS, blank, metadata.
        """
        generated = generated_at or report.generated_at
        rows = [list(self.HEADERS)]

        for result in report.results:
            rows.append(self._trainer_row(result))

        rows.append([])
        rows.append([
            "TOTALS",
            "",
            f"{report.trainer_count} trainers",
            str(report.total_sessions),
            _fmt(report.total_value),
            "",
            _fmt(report.total_commission),
        ])

        rows.append([])
        rows.append(["Generated:", generated.strftime("%Y-%m-%d %H:%M:%S")])
        rows.append(["Period:", report.period.label])
        rows.append(["Method:", report.method.label])
        if report.location_ids:
            rows.append(["Location Filter:", ", ".join(report.location_ids)])
        rows.append(["Trainers Computed:", f"{report.trainer_count} of {report.trainers_requested}"])
        return rows

    def to_csv(self, rows: list[list[str]]) -> str:
        """Join rows with commas, quoting fields that contain commas, quotes or line breaks."""
        return "".join(",".join(self.escape(field) for field in row) + "\n" for row in rows)

    @staticmethod
    def escape(value) -> str:
        text = "" if value is None else str(value)
        if any(c in text for c in (",", '"', "\n", "\r")):
            return '"' + text.replace('"', '""') + '"'
        return text

    def _trainer_row(self, result: CommissionResult) -> list[str]:
        trainer = result.trainer
        return [
            trainer.name,
            trainer.email,
            trainer.location_name or "N/A",
            str(result.total_sessions),
            _fmt(result.total_value),
            _pct(result.effective_rate),
            _fmt(result.commission_amount),
            f"Tier {result.tier_reached} ({result.tier.label})",
            result.method.label,
            result.profile_name or "",
        ]
