"""
Tests for the Output Builder and Export Formatter
"""

import csv
import io
import pytest
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from commission_engine.models import (
    BracketBreakdown, CalculationMethod, CommissionProfile, CommissionResult, CommissionTier, DatePeriod,
    MonthlyReport, TrainerFailure, TrainerIdentity
)
from commission_engine.output import ExportFormatter, OutputBuilder

OCTOBER = DatePeriod.for_month(2026, 10)
TIER_2 = CommissionTier(11, 20, Decimal('0.50'))
TIER_3 = CommissionTier(21, None, Decimal('0.60'))
GENERATED = datetime(2026, 11, 1, 9, 30, 0)


def make_result(name, sessions, value, commission, tier_reached=2, tier=TIER_2, **trainer_fields):
    trainer = TrainerIdentity(
        id=f"t-{name.lower().split()[0]}",
        name=name,
        email=f"{name.lower().split()[0]}@gym.test",
        organization_id="org-1",
        **trainer_fields,
    )
    return CommissionResult(
        trainer=trainer,
        organization_id="org-1",
        period=OCTOBER,
        method=CalculationMethod.PROGRESSIVE,
        total_sessions=sessions,
        total_value=Decimal(value),
        commission_amount=Decimal(commission),
        tier_reached=tier_reached,
        tier=tier,
        breakdown=(BracketBreakdown(
            tier_reached, tier, sessions, Decimal(value), Decimal(commission), tier.percentage
        ),),
    )


@pytest.fixture
def report():
    return MonthlyReport(
        organization_id="org-1",
        period=OCTOBER,
        method=CalculationMethod.PROGRESSIVE,
        results=[
            make_result("Carol", 25, '2500.00', '1500.00', 3, TIER_3, location_name="Downtown", profile_name="Senior"),
            make_result("Alice", 15, '1500.00', '750.00'),
        ],
        trainers_requested=2,
        generated_at=GENERATED,
    )


class TestExportRows:
    """Test the row layout of the export."""

    def test_header_row(self, report):
        rows = ExportFormatter().format_rows(report)
        assert rows[0] == ExportFormatter.HEADERS
        assert rows[0][0] == "Trainer Name"
        assert rows[0][-1] == "Profile"

    def test_trainer_row(self, report):
        rows = ExportFormatter().format_rows(report)

        assert rows[1] == [
            "Carol", "carol@gym.test", "Downtown", "25", "$2,500.00", "60.0%", "$1,500.00",
            "Tier 3 (21-+)", "Progressive Tier", "Senior",
        ]

    def test_missing_location_and_profile(self, report):
        row = ExportFormatter().format_rows(report)[2]

        assert row[2] == "N/A"
        assert row[-1] == ""

    def test_totals_row_after_blank(self, report):
        rows = ExportFormatter().format_rows(report)

        assert rows[3] == []
        assert rows[4] == ["TOTALS", "", "2 trainers", "40", "$4,000.00", "", "$2,250.00"]

    def test_metadata_rows(self, report):
        rows = ExportFormatter().format_rows(report)

        assert rows[5] == []
        assert rows[6:] == [
            ["Generated:", "2026-11-01 09:30:00"],
            ["Period:", "October 2026"],
            ["Method:", "Progressive Tier"],
            ["Trainers Computed:", "2 of 2"],
        ]

    def test_location_filter_row(self, report):
        report.location_ids = ("loc-a", "loc-b")
        rows = ExportFormatter().format_rows(report)

        assert ["Location Filter:", "loc-a, loc-b"] in rows

    def test_custom_period_label(self, report):
        report.period = DatePeriod(date(2026, 10, 1), date(2026, 10, 15))
        rows = ExportFormatter().format_rows(report)

        assert ["Period:", "2026-10-01 to 2026-10-15"] in rows

    def test_generated_at_override(self, report):
        rows = ExportFormatter().format_rows(report, generated_at=datetime(2027, 1, 2, 3, 4, 5))
        assert ["Generated:", "2027-01-02 03:04:05"] in rows

    def test_incomplete_roster_shown(self, report):
        report.trainers_requested = 3
        rows = ExportFormatter().format_rows(report)
        assert rows[-1] == ["Trainers Computed:", "2 of 3"]

    def test_empty_report(self):
        empty = MonthlyReport("org-1", OCTOBER, CalculationMethod.GRADUATED, generated_at=GENERATED)
        rows = ExportFormatter().format_rows(empty)

        assert rows[1] == []
        assert rows[2] == ["TOTALS", "", "0 trainers", "0", "$0.00", "", "$0.00"]
        assert ["Method:", "Graduated Tier"] in rows


class TestCsvEscaping:
    """Fields with commas, quotes or line breaks are quoted, inner quotes doubled."""

    @pytest.mark.parametrize("value,expected", [
        ("plain", "plain"),
        ("Smith, John", '"Smith, John"'),
        ("Line\nBreak", '"Line\nBreak"'),
        ("Carriage\rReturn", '"Carriage\rReturn"'),
        ('The "Rock"', '"The ""Rock"""'),
        ("", ""),
        (None, ""),
        (25, "25"),
    ])
    def test_escape(self, value, expected):
        assert ExportFormatter.escape(value) == expected

    def test_csv_parses_back_to_rows(self, report):
        report.results[0] = make_result('Carol "CJ" Jones, Jr.', 25, '2500.00', '1500.00', 3, TIER_3)
        formatter = ExportFormatter()
        rows = formatter.format_rows(report)

        parsed = list(csv.reader(io.StringIO(formatter.to_csv(rows))))

        assert parsed == rows
        assert parsed[1][0] == 'Carol "CJ" Jones, Jr.'

    def test_line_break_in_name_stays_in_one_row(self, report):
        report.results[1] = make_result("Alice\nSmith", 15, '1500.00', '750.00')
        formatter = ExportFormatter()

        parsed = list(csv.reader(io.StringIO(formatter.to_csv(formatter.format_rows(report)))))

        assert parsed[2][0] == "Alice\nSmith"
        assert parsed[4][0] == "TOTALS"

    def test_money_with_thousands_separator_is_quoted(self, report):
        text = ExportFormatter().to_csv(ExportFormatter().format_rows(report))
        assert '"$2,500.00"' in text

    def test_every_row_ends_with_newline(self, report):
        formatter = ExportFormatter()
        text = formatter.to_csv(formatter.format_rows(report))

        assert text.endswith("\n")
        assert text.count("\n") == len(formatter.format_rows(report))


class TestOutputBuilder:
    """Test JSON response construction."""

    def test_result_fields(self, report):
        output = OutputBuilder().build_result(report.results[1])

        assert output["trainer"]["name"] == "Alice"
        assert output["period"]["label"] == "October 2026"
        assert output["method"] == "PROGRESSIVE"
        assert output["total_sessions"] == 15
        assert output["total_value"] == 1500.0
        assert output["commission_amount"] == 750.0
        assert output["effective_rate"] == 50.0
        assert output["tier"] == {"min_sessions": 11, "max_sessions": 20, "percentage": 0.5}
        assert output["snapshot_id"] is None

    def test_breakdown_description(self, report):
        output = OutputBuilder().build_result(report.results[1])

        assert output["breakdown"][0]["description"] == \
            "15 sessions in tier 2 (11-20): $1,500.00 × 50.0% = $750.00"

    def test_percent_point_rate_described_as_percentage(self):
        tier = CommissionTier(11, 20, Decimal('50'))
        result = replace(make_result("Alice", 15, '1500.00', '750.00', 2, tier), breakdown=(
            BracketBreakdown(2, tier, 15, Decimal('1500.00'), Decimal('750.00'), Decimal('0.5')),
        ))

        breakdown = OutputBuilder().build_result(result)["breakdown"][0]

        assert breakdown["description"].endswith("× 50.0% = $750.00")
        assert breakdown["rate"] == 50.0

    def test_profile_name_from_assigned_profile(self):
        result = replace(
            make_result("Alice", 15, '1500.00', '750.00', profile_name="Legacy label"),
            profile=CommissionProfile("p-senior", "Senior Trainer"),
        )

        assert OutputBuilder().build_result(result)["trainer"]["profile_name"] == "Senior Trainer"
        assert ExportFormatter()._trainer_row(result)[-1] == "Senior Trainer"

    def test_zero_value_effective_rate(self):
        result = make_result("Bob", 0, '0', '0', 1, CommissionTier(1, 10, Decimal('0.40')))
        assert OutputBuilder().build_result(result)["effective_rate"] == 0.0

    def test_report_totals(self, report):
        output = OutputBuilder().build_report(report)

        assert output["totals"] == {
            "trainer_count": 2,
            "trainers_requested": 2,
            "total_sessions": 40,
            "total_value": 4000.0,
            "total_commission": 2250.0,
        }
        assert output["complete"] is True
        assert [r["trainer"]["name"] for r in output["results"]] == ["Carol", "Alice"]

    def test_report_failures(self, report):
        report.trainers_requested = 3
        report.failures.append(TrainerFailure("t-bob", "Bob", "AggregationFailed", "timeout"))
        output = OutputBuilder().build_report(report)

        assert output["complete"] is False
        assert output["failures"] == [
            {"trainer_id": "t-bob", "trainer_name": "Bob", "error": "AggregationFailed", "message": "timeout"}
        ]
