from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd

import officeholder_import.cli.__main__ as cli_module
from officeholder_import.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main
from officeholder_import.models import JurisdictionRef, JurisdictionType
from officeholder_import.services.registry import InMemoryRegistry

GOOD = ["Juan Dela Cruz", "Governor", "province", "Cebu", "PDP-LABAN", "2022-06-30", "", "", "", ""]
MAYOR = ["Pedro Penduko", "City Mayor", "city", "makati city", "National Unity Party", "2022-06-30", "2025-06-30", "", "", ""]
BAD_DATE = ["Maria Santos", "Vice Governor", "province", "Bohol", "Liberal Party", "06/30/2022", "", "", "", ""]


def test_offline_dry_run_all_valid(write_config: Path, make_upload, capsys):
    upload = make_upload([GOOD, MAYOR])
    code = main([str(upload), "--offline"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert re.search(
        r"^SUMMARY file=upload\.xlsx rows=2 valid=2 invalid=0 created=2 updated=0 archived=0 failed=0 elapsed_sec=\S+$",
        out,
        re.MULTILINE,
    )


def test_invalid_row_writes_report_and_error_log(write_config: Path, temp_workdir: Path, make_upload, capsys):
    upload = make_upload([GOOD, BAD_DATE])
    code = main([str(upload), "--offline"])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "invalid=1" in out

    reports = list((temp_workdir / "reports").glob("upload-errors-*.xlsx"))
    assert len(reports) == 1
    details = pd.read_excel(reports[0], header=7)
    assert details["Row"].tolist() == [3]
    assert details["Field"].tolist() == ["term_start"]

    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    assert '"field": "term_start"' in logs[0].read_text(encoding="utf-8")


def test_explicit_report_path(write_config: Path, temp_workdir: Path, make_upload):
    target = temp_workdir / "out" / "report.xlsx"
    assert main([str(make_upload([BAD_DATE])), "--offline", "--report", str(target)]) == EXIT_PARTIAL_FAILURE
    assert target.exists()


def test_validate_only_does_not_need_a_database(write_config: Path, make_upload, capsys):
    code = main([str(make_upload([GOOD])), "--validate-only"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "valid=1" in out
    assert "created=0" in out


def test_offline_dry_run_export(write_config: Path, temp_workdir: Path, make_upload):
    target = temp_workdir / "export.xlsx"
    assert main([str(make_upload([GOOD, MAYOR])), "--offline", "--export", str(target)]) == EXIT_SUCCESS_ALL
    df = pd.read_excel(target)
    assert df["Name"].tolist() == ["Juan Dela Cruz", "Pedro Penduko"]
    assert df["Jurisdiction Name"].tolist() == ["Cebu", "Makati City"]


def test_template(write_config: Path, temp_workdir: Path):
    target = temp_workdir / "template.xlsx"
    assert main(["--template", str(target)]) == EXIT_SUCCESS_ALL
    assert pd.ExcelFile(target).sheet_names == ["Politicians", "Valid Positions", "Valid Parties", "Instructions"]


def test_inspect_data(write_config: Path, make_upload, capsys):
    assert main([str(make_upload([GOOD])), "--inspect-data"]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "FILE: upload.xlsx" in out
    assert "row 2:" in out
    assert "data_rows=1" in out


def test_unreadable_upload_is_fatal(write_config: Path, temp_workdir: Path, capsys):
    bogus = temp_workdir / "data" / "notes.xlsx"
    bogus.write_text("not a workbook", encoding="utf-8")
    assert main([str(bogus), "--validate-only"]) == EXIT_FATAL
    assert "ERROR input:" in capsys.readouterr().out
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_missing_config_is_fatal(temp_workdir: Path, make_upload, capsys):
    assert main([str(make_upload([GOOD])), "--offline", "--config", "nope.yml"]) == EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_nothing_to_do(write_config: Path, capsys):
    assert main([]) == EXIT_FATAL
    assert "nothing to do" in capsys.readouterr().out


def test_missing_upload(write_config: Path, capsys):
    assert main(["data/missing.xlsx", "--offline"]) == EXIT_FATAL
    assert "file not found" in capsys.readouterr().out


def _live_registry_with_governor() -> InMemoryRegistry:
    live = InMemoryRegistry()
    holder = live.create_politician("Juan Dela Cruz")
    live.create_assignment(
        holder.id, "pos-governor", JurisdictionRef(JurisdictionType.PROVINCE, "prov-cebu", "Cebu"),
        date(2019, 6, 30), party_id="party-pdp",
    )
    return live


def _patch_database(monkeypatch, live: InMemoryRegistry) -> MagicMock:
    connect = MagicMock()

    @contextmanager
    def fake_db_cursor(db_cfg):
        connect(db_cfg)
        yield MagicMock()

    monkeypatch.setattr(cli_module, "db_cursor", fake_db_cursor)
    monkeypatch.setattr(cli_module, "PostgresRegistry", lambda cursor: live)
    return connect


def test_dry_run_starts_from_current_holders(write_config: Path, temp_workdir: Path, make_upload, monkeypatch, capsys):
    live = _live_registry_with_governor()
    connect = _patch_database(monkeypatch, live)
    successor = ["Gwen Garcia", "Governor", "province", "Cebu", "National Unity Party", "2022-06-30", "", "", "", ""]
    export = temp_workdir / "export.xlsx"

    code = main([str(make_upload([successor])), "--dry-run", "--export", str(export)])
    out = capsys.readouterr().out

    assert code == EXIT_SUCCESS_ALL
    connect.assert_called_once()
    assert "created=1 updated=0 archived=1" in out
    assert pd.read_excel(export)["Name"].tolist() == ["Gwen Garcia"]
    # nothing written back
    [current] = live.list_current()
    assert live.get_politician(current.politician_id).name == "Juan Dela Cruz"


def test_offline_dry_run_never_opens_the_database(write_config: Path, make_upload, monkeypatch, capsys):
    connect = _patch_database(monkeypatch, _live_registry_with_governor())
    assert main([str(make_upload([GOOD])), "--offline"]) == EXIT_SUCCESS_ALL
    connect.assert_not_called()
    assert "created=1 updated=0 archived=0" in capsys.readouterr().out
