# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from officeholder_import.logging.init import reset_logging
from officeholder_import.models import JurisdictionType, Party, Position
from officeholder_import.services.catalog import InMemoryJurisdictionDirectory, ReferenceCatalog
from officeholder_import.services.registry import InMemoryRegistry

UPLOAD_HEADER = [
    "Name",
    "Position",
    "Jurisdiction Type",
    "Jurisdiction Name",
    "Party",
    "Term Start",
    "Term End",
    "Photo URL",
    "Short Bio",
    "Birth Date",
]


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def reference_yaml() -> str:
    return """positions:
  - {id: pos-governor, name: Governor, level: provincial, branch: executive}
  - {id: pos-vice-governor, name: Vice Governor, level: provincial, branch: executive}
  - {id: pos-mayor, name: City Mayor, level: city, branch: executive}
  - {id: pos-president, name: President, level: national, branch: executive}
parties:
  - {id: party-pdp, name: PDP-LABAN, abbreviation: PDP}
  - {id: party-lp, name: Liberal Party, abbreviation: LP}
  - {id: party-nup, name: National Unity Party, abbreviation: NUP}
jurisdictions:
  province:
    - {id: prov-cebu, name: Cebu}
    - {id: prov-bohol, name: Bohol}
  city:
    - {id: city-makati, name: Makati City}
    - {id: city-cebu, name: Cebu City}
  region:
    - {id: reg-ncr, name: NCR}
"""


@pytest.fixture()
def sample_config_yaml() -> str:
    return """reference_data: reference.yml
reports_directory: ../reports
logs_directory: ../logs
suggestion_limit: 3
lookup_timeout_ms: 2000
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str, reference_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / "config" / "reference.yml").write_text(reference_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def catalog() -> ReferenceCatalog:
    positions = [
        Position(id="pos-governor", name="Governor", level="provincial", branch="executive"),
        Position(id="pos-vice-governor", name="Vice Governor", level="provincial", branch="executive"),
        Position(id="pos-mayor", name="City Mayor", level="city", branch="executive"),
        Position(id="pos-president", name="President", level="national", branch="executive"),
    ]
    parties = [
        Party(id="party-pdp", name="PDP-LABAN", abbreviation="PDP"),
        Party(id="party-lp", name="Liberal Party", abbreviation="LP"),
        Party(id="party-nup", name="National Unity Party", abbreviation="NUP"),
    ]
    directory = InMemoryJurisdictionDirectory(
        {
            JurisdictionType.PROVINCE: [("prov-cebu", "Cebu"), ("prov-bohol", "Bohol")],
            JurisdictionType.CITY: [("city-makati", "Makati City"), ("city-cebu", "Cebu City")],
            JurisdictionType.REGION: [("reg-ncr", "NCR")],
        }
    )
    return ReferenceCatalog(positions, parties, directory)


@pytest.fixture()
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


def _make_excel(path: Path, rows: list[list[object]], sheet: str = "Politicians") -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def make_upload(tmp_path: Path) -> Callable[..., Path]:
    """Write an upload workbook: header row (UPLOAD_HEADER by default) + data rows."""

    def _make(rows: list[list[object]], *, header: list[object] | None = None, name: str = "upload.xlsx") -> Path:
        return _make_excel(tmp_path / name, [header if header is not None else UPLOAD_HEADER, *rows])

    return _make
