from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Row models for the officeholder import pipeline.

RawRow is what the spreadsheet reader produces: trimmed cell text keyed by
normalized header name. ImportRow narrows a RawRow to the columns the import
cares about. Neither performs any semantic validation.
"""

__all__ = [
    "JurisdictionType",
    "RawRow",
    "ImportRow",
    "FIRST_DATA_ROW",
]

# 1 行目はヘッダ
FIRST_DATA_ROW = 2


class JurisdictionType(Enum):
    """Scope a position applies to.

    NATIONAL positions carry no jurisdiction name; every other type must be
    resolved against the jurisdiction directory.
    """
    NATIONAL = "national"
    REGION = "region"
    PROVINCE = "province"
    CITY = "city"
    BARANGAY = "barangay"
    DISTRICT = "district"

    @classmethod
    def parse(cls, value: str | None) -> JurisdictionType | None:
        """Case-insensitive lookup; returns None for blank or unknown values."""
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def names(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class RawRow:
    """One spreadsheet line after header normalization.

    The row_number is the 1-based spreadsheet row (header = row 1), kept for
    error messages only.
    """
    row_number: int
    values: dict[str, str]  # normalized header -> trimmed cell text

    def get(self, column: str) -> str:
        return self.values.get(column, "")

    def get_optional(self, column: str) -> str | None:
        value = self.values.get(column, "")
        return value if value != "" else None


@dataclass(frozen=True)
class ImportRow:
    """The import-relevant subset of a RawRow (free text, not yet validated)."""
    row_number: int
    name: str
    position: str
    jurisdiction_type: str
    jurisdiction_name: str
    party: str
    term_start: str
    term_end: str | None = None
    photo_url: str | None = None
    short_bio: str | None = None
    birth_date: str | None = None

    def __post_init__(self) -> None:
        if self.row_number < FIRST_DATA_ROW:
            raise ValueError(f"row_number must be >= {FIRST_DATA_ROW} (row 1 is the header), got {self.row_number}")

    @classmethod
    def from_raw(cls, raw: RawRow) -> ImportRow:
        return cls(
            row_number=raw.row_number,
            name=raw.get("name"),
            position=raw.get("position"),
            jurisdiction_type=raw.get("jurisdiction type").lower(),
            jurisdiction_name=raw.get("jurisdiction name"),
            party=raw.get("party"),
            term_start=raw.get("term start"),
            term_end=raw.get_optional("term end"),
            photo_url=raw.get_optional("photo url"),
            short_bio=raw.get_optional("short bio"),
            birth_date=raw.get_optional("birth date"),
        )
