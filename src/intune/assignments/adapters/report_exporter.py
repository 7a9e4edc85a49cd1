"""Report exporters.

Implementations of IReportExporter that write the per-group assignment
report to CSV, Excel or JSON. Columns are the group identity columns
followed by one trail column per category, in category table order.
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ...api.exceptions import ConfigurationError
from ..domain.ports import IReportExporter

if TYPE_CHECKING:
    from ..use_cases.build_report import AssignmentReport

logger = logging.getLogger(__name__)


class CsvReportExporter(IReportExporter):
    """Writes one CSV row per group."""

    def export(self, report: "AssignmentReport", path: Path) -> Path:
        path = Path(path)
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=report.columns)
            writer.writeheader()
            writer.writerows(report.rows())

        logger.info(f"Wrote {len(report.groups)} groups to {path}")
        return path


class JsonReportExporter(IReportExporter):
    """Writes groups and the run summary as one JSON document."""

    def export(self, report: "AssignmentReport", path: Path) -> Path:
        path = Path(path)
        document = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "categories": list(report.categories),
            "groups": report.rows(),
            "unresolved_groups": list(report.unresolved_groups),
            "summary": report.summary.to_dict(),
        }
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")

        logger.info(f"Wrote {len(report.groups)} groups to {path}")
        return path


class ExcelReportExporter(IReportExporter):
    """Writes an Excel workbook with an Assignments sheet and a Summary sheet."""

    HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    HEADER_FONT = Font(bold=True, color="FFFFFF")
    WARNING_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )
    MAX_COLUMN_WIDTH = 60

    def export(self, report: "AssignmentReport", path: Path) -> Path:
        path = Path(path)
        wb = Workbook()

        self._write_assignments(wb.active, report)
        self._write_summary(wb.create_sheet("Summary"), report)

        wb.save(path)
        logger.info(f"Wrote {len(report.groups)} groups to {path}")
        return path

    def _write_assignments(self, ws, report: "AssignmentReport") -> None:
        ws.title = "Assignments"

        columns = report.columns
        for col, header in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = self.HEADER_FILL
            cell.font = self.HEADER_FONT
            cell.border = self.THIN_BORDER

        rows = report.rows()
        for row_idx, row in enumerate(rows, 2):
            for col, header in enumerate(columns, 1):
                cell = ws.cell(row=row_idx, column=col, value=row[header])
                cell.border = self.THIN_BORDER
                cell.alignment = Alignment(wrap_text=True, vertical="top")

        # Width follows the longest value, capped so trails wrap
        for col, header in enumerate(columns, 1):
            longest = max([len(header)] + [len(str(r[header])) for r in rows])
            ws.column_dimensions[get_column_letter(col)].width = min(
                longest + 2, self.MAX_COLUMN_WIDTH
            )

        ws.freeze_panes = "B2"

    def _write_summary(self, ws, report: "AssignmentReport") -> None:
        summary = report.summary

        ws["A1"] = "Intune Assignment Report"
        ws["A1"].font = Font(bold=True, size=16)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Generated At:"
        ws["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        stats_data = [
            ("Groups:", len(report.groups)),
            ("Categories Processed:", len(summary.categories)),
            ("Categories Skipped:", len(summary.skipped_categories)),
            ("Objects Skipped:", len(summary.skipped_objects)),
            ("Malformed Records:", summary.normalization_errors),
            ("Trail Entries:", summary.entries_added),
        ]
        for i, (label, value) in enumerate(stats_data, start=5):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        row = 5 + len(stats_data) + 1

        if summary.skipped_categories:
            ws.cell(row=row, column=1, value="Skipped Categories").font = Font(bold=True, size=12)
            row += 1
            for name, reason in summary.skipped_categories.items():
                ws.cell(row=row, column=1, value=name).fill = self.WARNING_FILL
                ws.cell(row=row, column=2, value=reason)
                row += 1
            row += 1

        if summary.skipped_objects:
            ws.cell(row=row, column=1, value="Skipped Objects").font = Font(bold=True, size=12)
            row += 1
            for col, header in enumerate(["Category", "Object", "Id", "Reason"], 1):
                cell = ws.cell(row=row, column=col, value=header)
                cell.fill = self.HEADER_FILL
                cell.font = self.HEADER_FONT
                cell.border = self.THIN_BORDER
            row += 1
            for skipped in summary.skipped_objects:
                values = [skipped.category, skipped.display_name, skipped.object_id, skipped.reason]
                for col, value in enumerate(values, 1):
                    ws.cell(row=row, column=col, value=value).border = self.THIN_BORDER
                row += 1
            row += 1

        if summary.skipped_records:
            ws.cell(row=row, column=1, value="Malformed Records").font = Font(bold=True, size=12)
            row += 1
            for record in summary.skipped_records:
                values = [record.category, record.object_id, record.reason]
                for col, value in enumerate(values, 1):
                    ws.cell(row=row, column=col, value=value).border = self.THIN_BORDER
                row += 1
            row += 1

        if report.unresolved_groups:
            ws.cell(row=row, column=1, value="Unresolved Groups").font = Font(bold=True, size=12)
            row += 1
            for name in report.unresolved_groups:
                ws.cell(row=row, column=1, value=name).fill = self.WARNING_FILL
                row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40
        ws.column_dimensions["C"].width = 40
        ws.column_dimensions["D"].width = 50


EXPORTERS: dict[str, type[IReportExporter]] = {
    "csv": CsvReportExporter,
    "xlsx": ExcelReportExporter,
    "json": JsonReportExporter,
}


def exporter_for(fmt: str) -> IReportExporter:
    """Get an exporter instance by format name.

    Raises:
        ConfigurationError: If the format is not supported.
    """
    try:
        return EXPORTERS[fmt.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unsupported report format '{fmt}'",
            details={"supported": sorted(EXPORTERS)},
        )
