"""Tests for the CSV, Excel and JSON report exporters."""

import csv
import json
from datetime import datetime, timezone

import pytest
from openpyxl import load_workbook

from src.intune.api.exceptions import ConfigurationError
from src.intune.assignments.adapters.report_exporter import (
    CsvReportExporter,
    ExcelReportExporter,
    JsonReportExporter,
    exporter_for,
)
from src.intune.assignments.domain.entities import (
    CategoryResult,
    Group,
    RunSummary,
    SkippedObject,
    SkippedRecord,
)
from src.intune.assignments.use_cases.build_report import AssignmentReport


@pytest.fixture
def report():
    started = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    sales = Group(
        id="g1",
        display_name="Sales",
        created_date_time=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
    )
    sales.add_entry("intents", "+ Baseline A;")
    sales.add_entry("intents", "- Baseline B;")
    contractors = Group(id="g2", display_name="Contractors")
    contractors.add_entry("mobileApps", "+ Teams;")

    summary = RunSummary(
        started_at=started,
        completed_at=started,
        categories=[
            CategoryResult("mobileApps", objects_processed=1, entries_added=1),
            CategoryResult(
                "intents",
                objects_processed=2,
                entries_added=2,
                skipped_objects=[SkippedObject("intents", "o9", "Broken", "timed out")],
                skipped_records=[SkippedRecord("intents", "o1", "Assignment record has no target object")],
            ),
        ],
        skipped_categories={"deviceHealthScripts": "forbidden"},
    )
    return AssignmentReport(
        groups=[sales, contractors],
        categories=["mobileApps", "intents", "deviceHealthScripts"],
        summary=summary,
        unresolved_groups=["Nobody"],
    )


class TestCsvExporter:

    def test_writes_one_row_per_group(self, report, tmp_path):
        path = CsvReportExporter().export(report, tmp_path / "report.csv")

        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))

        assert list(rows[0].keys()) == [
            "id", "displayName", "createdDateTime", "mobileApps", "intents", "deviceHealthScripts",
        ]
        assert rows[0]["intents"] == "+ Baseline A;- Baseline B;"
        assert rows[0]["createdDateTime"] == "2024-01-15T10:30:00+00:00"
        assert rows[1]["mobileApps"] == "+ Teams;"
        assert rows[1]["deviceHealthScripts"] == ""


class TestJsonExporter:

    def test_includes_summary(self, report, tmp_path):
        path = JsonReportExporter().export(report, tmp_path / "report.json")

        document = json.loads(path.read_text(encoding="utf-8"))

        assert document["categories"] == ["mobileApps", "intents", "deviceHealthScripts"]
        assert document["groups"][0]["intents"] == "+ Baseline A;- Baseline B;"
        assert document["unresolved_groups"] == ["Nobody"]
        assert document["summary"]["skipped_categories"] == {"deviceHealthScripts": "forbidden"}
        assert document["summary"]["skipped_objects"][0]["id"] == "o9"
        assert document["summary"]["normalization_errors"] == 1
        assert document["summary"]["skipped_records"][0]["id"] == "o1"


class TestExcelExporter:

    def test_assignments_sheet(self, report, tmp_path):
        path = ExcelReportExporter().export(report, tmp_path / "report.xlsx")

        wb = load_workbook(path)
        ws = wb["Assignments"]

        headers = [cell.value for cell in ws[1]]
        assert headers == [
            "id", "displayName", "createdDateTime", "mobileApps", "intents", "deviceHealthScripts",
        ]
        assert ws.cell(row=2, column=5).value == "+ Baseline A;- Baseline B;"
        assert ws.cell(row=3, column=4).value == "+ Teams;"
        assert ws.cell(row=1, column=1).font.bold
        assert ws.column_dimensions["E"].width == len("+ Baseline A;- Baseline B;") + 2
        assert ws.column_dimensions["D"].width == len("mobileApps") + 2

    def test_summary_sheet(self, report, tmp_path):
        path = ExcelReportExporter().export(report, tmp_path / "report.xlsx")

        ws = load_workbook(path)["Summary"]
        values = [cell.value for row in ws.iter_rows() for cell in row if cell.value is not None]

        assert "Intune Assignment Report" in values
        assert "deviceHealthScripts" in values
        assert "Broken" in values
        assert "Nobody" in values
        assert "Malformed Records:" in values
        assert "Assignment record has no target object" in values


class TestExporterFor:

    @pytest.mark.parametrize("fmt,cls", [
        ("csv", CsvReportExporter),
        ("XLSX", ExcelReportExporter),
        ("json", JsonReportExporter),
    ])
    def test_known_formats(self, fmt, cls):
        assert isinstance(exporter_for(fmt), cls)

    def test_unknown_format(self):
        with pytest.raises(ConfigurationError):
            exporter_for("pdf")
