from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from ..models.import_result import ImportRunReport
from ..models.import_row import JurisdictionType
from ..services.catalog import ReferenceCatalog
from ..services.registry import OfficeholderRegistry

"""Workbook output: error report, registry export and import template.

All three are written with pandas.ExcelWriter (openpyxl engine); styling,
widths and dropdowns are applied on the openpyxl worksheets afterwards.
"""

__all__ = [
    "ERROR_REPORT_SHEET",
    "ERROR_REPORT_HEADERS",
    "ERROR_TABLE_HEADER_ROW",
    "EXPORT_SHEET",
    "EXPORT_COLUMNS",
    "TEMPLATE_COLUMNS",
    "error_report_rows",
    "write_error_report",
    "export_rows",
    "write_registry_export",
    "write_import_template",
]

logger = logging.getLogger(__name__)

ERROR_REPORT_SHEET = "Import Errors"
ERROR_REPORT_HEADERS = ["Row", "Field", "Error", "Value", "Suggestions"]
ERROR_TABLE_HEADER_ROW = 8  # 1-based; summary block occupies rows 1-6
SUGGESTION_SEPARATOR = ", "
REPORT_TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"

EXPORT_SHEET = "Politicians"
EXPORT_COLUMNS = [
    "Name",
    "Position",
    "Jurisdiction Type",
    "Jurisdiction Name",
    "Party",
    "Term Start",
    "Term End",
    "Photo URL",
    "Short Bio",
]

# (header, required, example)
TEMPLATE_COLUMNS: list[tuple[str, bool, str]] = [
    ("Name", True, "Juan Dela Cruz"),
    ("Position", True, "City Mayor"),
    ("Jurisdiction Type", True, "city"),
    ("Jurisdiction Name", True, "Makati City"),
    ("Party", True, "PDP-LABAN"),
    ("Term Start", True, "2022-06-30"),
    ("Term End", False, "2025-06-30"),
    ("Photo URL", False, "https://example.com/photo.jpg"),
    ("Short Bio", False, "Brief biography..."),
    ("Birth Date", False, "1970-01-31"),
]
TEMPLATE_WIDTHS = [25, 25, 20, 25, 20, 15, 15, 40, 50, 15]
DROPDOWN_LAST_ROW = 1000

HEADER_FONT = Font(bold=True, size=12, color="FFFFFF")
HEADER_FILL = PatternFill("solid", fgColor="4472C4")
REFERENCE_HEADER_FILL = PatternFill("solid", fgColor="D9D9D9")
EXAMPLE_FILL = PatternFill("solid", fgColor="E7E6E6")

INSTRUCTIONS = [
    "POLITICIAN IMPORT TEMPLATE - INSTRUCTIONS",
    "",
    "Required Fields (marked with *):",
    "  - Name: Full name of the politician",
    "  - Position: Must match a position from the 'Valid Positions' sheet",
    "  - Jurisdiction Type: One of: " + ", ".join(JurisdictionType.names()),
    "  - Jurisdiction Name: Name of the jurisdiction (e.g. 'Makati City'); leave blank for national",
    "  - Party: Must match a party from the 'Valid Parties' sheet",
    "  - Term Start: Date in format YYYY-MM-DD (e.g. 2022-06-30)",
    "",
    "Optional Fields:",
    "  - Term End: Date in format YYYY-MM-DD, not before Term Start",
    "  - Photo URL: URL to the politician's photo",
    "  - Short Bio: Brief biography or description",
    "  - Birth Date: Date in format YYYY-MM-DD; tells apart politicians with the same name",
    "",
    "Important Notes:",
    "  1. Do not modify the header row (row 1)",
    "  2. Row 2 contains an example; delete it before importing",
    "  3. Use the dropdown menus for Position, Party and Jurisdiction Type",
    "  4. Rows with an empty first cell are skipped",
    "  5. Only one politician can hold a position in a jurisdiction at a time",
    "  6. Importing the current holder again updates the record without creating history",
    "  7. Importing a different politician to an occupied position archives the current holder",
]


def _fmt_date(value: date | None) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else ""


def _style_header_row(ws: Worksheet, row: int, ncols: int, fill: PatternFill = HEADER_FILL, font: Font = HEADER_FONT) -> None:
    for col in range(1, ncols + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _set_widths(ws: Worksheet, widths: Iterable[float]) -> None:
    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


# -- error report ------------------------------------------------------


def error_report_rows(report: ImportRunReport) -> list[list[Any]]:
    """Row | Field | Error | Value | Suggestions, validation errors first.

    Reconciliation failures follow with field 'registry' and no value.
    """
    rows: list[list[Any]] = [
        [
            err.row,
            err.field,
            err.message,
            err.offending_value if err.offending_value is not None else "",
            SUGGESTION_SEPARATOR.join(err.suggestions),
        ]
        for err in report.errors
    ]
    rows.extend([failure.row, "registry", failure.message, "", ""] for failure in report.reconciliation_failures)
    return rows


def write_error_report(report: ImportRunReport, path: Path, *, generated_at: datetime | None = None) -> Path:
    """Write the error report workbook and return its path."""
    generated_at = generated_at or datetime.now()
    summary = pd.DataFrame(
        [
            ["IMPORT ERROR REPORT", ""],
            ["Filename:", report.source_filename],
            ["Import Date:", generated_at.strftime(REPORT_TIMESTAMP_FMT)],
            ["Total Rows:", report.total_rows],
            ["Successful:", report.successful_imports],
            ["Failed:", report.failed_imports],
        ]
    )
    details = pd.DataFrame(error_report_rows(report), columns=ERROR_REPORT_HEADERS)

    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name=ERROR_REPORT_SHEET, header=False, index=False)
        details.to_excel(writer, sheet_name=ERROR_REPORT_SHEET, startrow=ERROR_TABLE_HEADER_ROW - 1, index=False)
        ws = writer.sheets[ERROR_REPORT_SHEET]
        ws["A1"].font = Font(bold=True, size=14)
        for row in range(2, 7):
            ws.cell(row=row, column=1).font = Font(bold=True)
        _style_header_row(ws, ERROR_TABLE_HEADER_ROW, len(ERROR_REPORT_HEADERS))
        _set_widths(ws, [14, 20, 60, 30, 40])
    logger.info(f"error report written: {path} ({len(details)} error row(s))")
    return path


# -- registry export ---------------------------------------------------


def export_rows(registry: OfficeholderRegistry, catalog: ReferenceCatalog) -> list[dict[str, str]]:
    """Current officeholders with names resolved, in EXPORT_COLUMNS order.

    Assignments whose politician or position cannot be resolved are skipped
    with a warning; they could not be re-imported anyway.
    """
    rows: list[dict[str, str]] = []
    for assignment in registry.list_current():
        politician = registry.get_politician(assignment.politician_id)
        position = catalog.position_by_id(assignment.position_id)
        if politician is None or position is None:
            logger.warning(f"export: skipping assignment {assignment.id} (unresolved politician or position)")
            continue
        party = catalog.party_by_id(assignment.party_id)
        jurisdiction = assignment.jurisdiction
        rows.append(
            {
                "Name": politician.name,
                "Position": position.name,
                "Jurisdiction Type": jurisdiction.type.value,
                "Jurisdiction Name": "" if jurisdiction.is_national else (jurisdiction.name or ""),
                "Party": party.name if party is not None else "",
                "Term Start": _fmt_date(assignment.term_start),
                "Term End": _fmt_date(assignment.term_end),
                "Photo URL": politician.photo_url or "",
                "Short Bio": politician.short_bio or "",
            }
        )
    return rows


def write_registry_export(registry: OfficeholderRegistry, catalog: ReferenceCatalog, path: Path) -> Path:
    """Write the current-officeholder export; it reads back as a valid upload."""
    df = pd.DataFrame(export_rows(registry, catalog), columns=EXPORT_COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=EXPORT_SHEET, index=False)
        ws = writer.sheets[EXPORT_SHEET]
        _style_header_row(ws, 1, len(EXPORT_COLUMNS))
        _set_widths(ws, [20] * len(EXPORT_COLUMNS))
        ws.freeze_panes = "A2"
    logger.info(f"registry export written: {path} ({len(df)} officeholder(s))")
    return path


# -- import template ---------------------------------------------------


def _list_validation(formula: str, column_index: int) -> DataValidation:
    col = get_column_letter(column_index)
    dv = DataValidation(type="list", formula1=formula, allow_blank=True)
    dv.add(f"{col}3:{col}{DROPDOWN_LAST_ROW}")
    return dv


def write_import_template(catalog: ReferenceCatalog, path: Path) -> Path:
    """Write a blank upload template with dropdowns and reference sheets.

    Dropdowns for Position and Party point at the reference sheets instead of
    inline lists, which Excel caps at 255 characters.
    """
    headers = [name + (" *" if required else "") for name, required, _ in TEMPLATE_COLUMNS]
    template = pd.DataFrame([[example for _, _, example in TEMPLATE_COLUMNS]], columns=headers)
    positions = pd.DataFrame(
        [[p.name, p.level or "", p.branch or ""] for p in catalog.positions],
        columns=["Position Name", "Level", "Branch"],
    )
    parties = pd.DataFrame(
        [[p.name, p.abbreviation or ""] for p in catalog.parties],
        columns=["Party Name", "Abbreviation"],
    )
    instructions = pd.DataFrame(INSTRUCTIONS)

    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        template.to_excel(writer, sheet_name=EXPORT_SHEET, index=False)
        positions.to_excel(writer, sheet_name="Valid Positions", index=False)
        parties.to_excel(writer, sheet_name="Valid Parties", index=False)
        instructions.to_excel(writer, sheet_name="Instructions", header=False, index=False)

        ws = writer.sheets[EXPORT_SHEET]
        _style_header_row(ws, 1, len(headers))
        for col in range(1, len(headers) + 1):
            cell = ws.cell(row=2, column=col)
            cell.fill = EXAMPLE_FILL
            cell.font = Font(italic=True)
        _set_widths(ws, TEMPLATE_WIDTHS)
        ws.freeze_panes = "A2"

        column_of = {name: i for i, (name, _, _) in enumerate(TEMPLATE_COLUMNS, start=1)}
        # 参照シートが空だと範囲式が壊れるので最低 2 行目まで
        last_position = max(len(positions) + 1, 2)
        last_party = max(len(parties) + 1, 2)
        validations = [
            _list_validation(f"'Valid Positions'!$A$2:$A${last_position}", column_of["Position"]),
            _list_validation(f"'Valid Parties'!$A$2:$A${last_party}", column_of["Party"]),
            _list_validation('"' + ",".join(JurisdictionType.names()) + '"', column_of["Jurisdiction Type"]),
        ]
        for dv in validations:
            ws.add_data_validation(dv)

        for sheet_name, ncols in (("Valid Positions", 3), ("Valid Parties", 2)):
            ref = writer.sheets[sheet_name]
            _style_header_row(ref, 1, ncols, fill=REFERENCE_HEADER_FILL, font=Font(bold=True))
            _set_widths(ref, [25] * ncols)

        instructions_ws = writer.sheets["Instructions"]
        instructions_ws["A1"].font = Font(bold=True, size=14)
        instructions_ws.column_dimensions["A"].width = 100
    logger.info(f"import template written: {path}")
    return path
