from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path

from openpyxl import load_workbook

from officeholder_import.excel.reader import read_import_rows
from officeholder_import.excel.writer import (
    ERROR_REPORT_HEADERS,
    EXPORT_COLUMNS,
    error_report_rows,
    export_rows,
    write_error_report,
    write_import_template,
    write_registry_export,
)
from officeholder_import.models import (
    ImportRunReport,
    ImportStatus,
    JurisdictionRef,
    JurisdictionType,
    ReconciliationFailure,
    ValidationError,
)
from officeholder_import.services.catalog import ReferenceCatalog
from officeholder_import.services.registry import InMemoryRegistry
from officeholder_import.services.validator import validate_row

T0 = datetime(2024, 3, 1, 9, 30, 0, tzinfo=UTC)


def _report() -> ImportRunReport:
    return ImportRunReport(
        source_filename="upload.xlsx",
        started_at=T0,
        finished_at=T0,
        status=ImportStatus.COMPLETED,
        total_rows=4,
        errors=(
            ValidationError(3, "position", "Position 'Govenor' not found", "Govenor", ("Governor", "Vice Governor")),
            ValidationError(4, "name", "Name is required", ""),
        ),
        reconciliation_failures=(ReconciliationFailure(5, "deadlock detected"),),
    )


def test_error_report_rows():
    assert error_report_rows(_report()) == [
        [3, "position", "Position 'Govenor' not found", "Govenor", "Governor, Vice Governor"],
        [4, "name", "Name is required", "", ""],
        [5, "registry", "deadlock detected", "", ""],
    ]


def test_error_report_layout(tmp_path: Path):
    path = write_error_report(_report(), tmp_path / "reports" / "errors.xlsx", generated_at=datetime(2024, 3, 1, 9, 30))
    ws = load_workbook(path)["Import Errors"]
    assert ws["A1"].value == "IMPORT ERROR REPORT"
    assert [ws.cell(row=r, column=1).value for r in range(2, 7)] == [
        "Filename:", "Import Date:", "Total Rows:", "Successful:", "Failed:",
    ]
    assert ws["B2"].value == "upload.xlsx"
    assert ws["B3"].value == "2024-03-01 09:30:00"
    assert ws["B4"].value == 4
    assert ws["B5"].value == 0
    assert ws["B6"].value == 1
    assert ws["A7"].value is None
    assert [c.value for c in ws[8]] == ERROR_REPORT_HEADERS
    assert ws["A9"].value == 3
    assert ws["E9"].value == "Governor, Vice Governor"
    assert ws["B11"].value == "registry"
    assert ws["A8"].font.bold


def _seed(registry: InMemoryRegistry) -> None:
    juan = registry.create_politician("Juan Dela Cruz", photo_url="http://x/juan.jpg", short_bio="Former councilor")
    maria = registry.create_politician("Maria Santos")
    registry.create_assignment(
        juan.id, "pos-governor", JurisdictionRef(JurisdictionType.PROVINCE, "prov-cebu", "Cebu"),
        date(2022, 6, 30), date(2025, 6, 30), party_id="party-pdp",
    )
    registry.create_assignment(maria.id, "pos-president", JurisdictionRef.national(), date(2022, 6, 30), party_id="party-lp")


def test_export_rows_resolve_names(catalog: ReferenceCatalog, registry: InMemoryRegistry):
    _seed(registry)
    rows = export_rows(registry, catalog)
    assert rows[0] == {
        "Name": "Juan Dela Cruz",
        "Position": "Governor",
        "Jurisdiction Type": "province",
        "Jurisdiction Name": "Cebu",
        "Party": "PDP-LABAN",
        "Term Start": "2022-06-30",
        "Term End": "2025-06-30",
        "Photo URL": "http://x/juan.jpg",
        "Short Bio": "Former councilor",
    }
    assert rows[1]["Jurisdiction Type"] == "national"
    assert rows[1]["Jurisdiction Name"] == ""
    assert rows[1]["Term End"] == ""


def test_export_skips_unknown_position(catalog: ReferenceCatalog, registry: InMemoryRegistry):
    p = registry.create_politician("Ghost")
    registry.create_assignment(p.id, "pos-deleted", JurisdictionRef.national(), date(2020, 1, 1))
    assert export_rows(registry, catalog) == []


def test_export_reads_back_as_valid_upload(tmp_path: Path, catalog: ReferenceCatalog, registry: InMemoryRegistry):
    _seed(registry)
    path = write_registry_export(registry, catalog, tmp_path / "export.xlsx")
    wb = load_workbook(path)
    assert wb.sheetnames == ["Politicians"]
    assert [c.value for c in wb["Politicians"][1]] == EXPORT_COLUMNS

    rows = read_import_rows(path)
    assert [r.name for r in rows] == ["Juan Dela Cruz", "Maria Santos"]
    assert all(validate_row(r, catalog).is_valid for r in rows)


def test_template_sheets_and_dropdowns(tmp_path: Path, catalog: ReferenceCatalog):
    path = write_import_template(catalog, tmp_path / "template.xlsx")
    wb = load_workbook(path)
    assert wb.sheetnames == ["Politicians", "Valid Positions", "Valid Parties", "Instructions"]

    ws = wb["Politicians"]
    assert ws["A1"].value == "Name *"
    assert ws["G1"].value == "Term End"
    formulas = sorted(dv.formula1 for dv in ws.data_validations.dataValidation)
    assert "'Valid Positions'!$A$2:$A$5" in formulas
    assert "'Valid Parties'!$A$2:$A$4" in formulas
    assert '"national,region,province,city,barangay,district"' in formulas

    assert [c.value for c in wb["Valid Positions"]["A"]][1:] == [p.name for p in catalog.positions]
    assert wb["Instructions"]["A1"].value == "POLITICIAN IMPORT TEMPLATE - INSTRUCTIONS"


def test_template_example_row_is_a_valid_upload(tmp_path: Path, catalog: ReferenceCatalog):
    path = write_import_template(catalog, tmp_path / "template.xlsx")
    rows = read_import_rows(path)
    assert len(rows) == 1
    assert validate_row(rows[0], catalog).is_valid
