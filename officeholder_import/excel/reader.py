from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from ..models.import_row import FIRST_DATA_ROW, ImportRow, RawRow

"""Spreadsheet reader for officeholder uploads.

Only the first sheet is read. Row 1 is the header; headers are trimmed and
lower-cased (a trailing ' *' required-marker from the import template is
dropped) and must then match the expected names exactly. Rows whose first
cell is blank are separator rows and are skipped silently. Every kept value
is trimmed text; no semantic validation happens here.
"""

__all__ = [
    "REQUIRED_COLUMNS",
    "OPTIONAL_COLUMNS",
    "ImportStructureError",
    "MalformedInputError",
    "MissingColumnError",
    "NoDataRowsError",
    "SheetData",
    "read_first_sheet",
    "normalize_rows",
    "read_import_file",
    "read_import_rows",
]

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = (
    "name",
    "position",
    "jurisdiction type",
    "jurisdiction name",
    "party",
    "term start",
)
OPTIONAL_COLUMNS: tuple[str, ...] = (
    "term end",
    "photo url",
    "short bio",
    "birth date",
)

Source = bytes | Path | BinaryIO


class ImportStructureError(Exception):
    """Structural problem with the upload; fatal to the whole run."""


class MalformedInputError(ImportStructureError):
    """Raised when the document cannot be read or lacks a usable first sheet."""


class MissingColumnError(MalformedInputError):
    """Raised when a required header is absent."""

    def __init__(self, column_name: str) -> None:
        super().__init__(f"missing required column: {column_name}")
        self.column_name = column_name


class NoDataRowsError(MalformedInputError):
    """Raised when no non-blank data row follows the header."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]  # normalized header names, in sheet order
    rows: list[RawRow]


def _normalize_header(value: Any) -> str:
    text = _cell_text(value).lower()
    # テンプレートの必須マーカー "Name *" を除去
    if text.endswith("*"):
        text = text[:-1].rstrip()
    return text


def _cell_text(value: Any) -> str:
    """Render a cell as trimmed text.

    Excel dates come back from pandas as Timestamps; they are rendered as
    YYYY-MM-DD so typed date cells validate the same as text ones.
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value).strip()
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.strftime("%Y-%m-%d")
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def read_first_sheet(source: Source) -> pd.DataFrame:
    """Read the first sheet of a workbook as a raw header-less DataFrame.

    Parameters
    ----------
    source: workbook bytes, a path, or a binary file object
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        xls = pd.ExcelFile(source)
    except Exception as e:  # pandas/openpyxl raise a variety of types for unreadable input
        raise MalformedInputError(f"failed to open spreadsheet: {e}") from e
    with xls:
        if not xls.sheet_names:
            raise MalformedInputError("spreadsheet has no sheets")
        first = xls.sheet_names[0]
        # 型変換なしで生読み (空セルは NaN のまま _cell_text で吸収)
        df = xls.parse(first, header=None, dtype=object)
    df.attrs["sheet_name"] = str(first)
    return df


def normalize_rows(df: pd.DataFrame, sheet_name: str | None = None) -> SheetData:
    """Normalize a raw DataFrame using the first row as header.

    Steps:
    1. Validate at least 2 rows exist (header + one data row)
    2. Build the normalized header -> column index map
    3. Check required columns
    4. Skip rows with a blank first cell, trim every kept value
    """
    sheet_name = sheet_name or df.attrs.get("sheet_name", "Sheet1")
    if df.shape[0] == 0:
        raise MalformedInputError(f"sheet '{sheet_name}' is empty")
    if df.shape[0] < 2:
        raise NoDataRowsError(f"sheet '{sheet_name}' must have a header row and at least one data row")

    col_index: dict[str, int] = {}
    for idx, raw_header in enumerate(df.iloc[0].tolist()):
        header = _normalize_header(raw_header)
        if not header:
            continue
        if header in col_index:
            logger.warning("duplicate column '%s' in sheet '%s'; using the first occurrence", header, sheet_name)
            continue
        col_index[header] = idx

    for column in REQUIRED_COLUMNS:
        if column not in col_index:
            raise MissingColumnError(column)

    rows: list[RawRow] = []
    for position, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None)):
        cells = list(raw)
        if not cells or _cell_text(cells[0]) == "":
            continue  # 区切り用の空行
        values = {
            header: (_cell_text(cells[idx]) if idx < len(cells) else "")
            for header, idx in col_index.items()
        }
        rows.append(RawRow(row_number=position + FIRST_DATA_ROW, values=values))

    if not rows:
        raise NoDataRowsError(f"no data rows found in sheet '{sheet_name}'")

    return SheetData(sheet_name=sheet_name, columns=list(col_index), rows=rows)


def read_import_file(source: Source) -> SheetData:
    """Read an upload into RawRows. Raises ImportStructureError subclasses."""
    df = read_first_sheet(source)
    sheet = normalize_rows(df)
    logger.debug("read %d data rows from sheet '%s'", len(sheet.rows), sheet.sheet_name)
    return sheet


def read_import_rows(source: Source) -> list[ImportRow]:
    return [ImportRow.from_raw(raw) for raw in read_import_file(source).rows]
