from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .import_row import JurisdictionType

"""Reference entities: positions, parties, jurisdictions and politicians.

These mirror the registry tables (government_positions, political_parties,
the location tables and politicians) but carry only what the import needs.
"""

__all__ = [
    "Position",
    "Party",
    "JurisdictionRef",
    "Politician",
    "normalize_person_name",
]


@dataclass(frozen=True)
class Position:
    id: str
    name: str
    level: str | None = None
    branch: str | None = None


@dataclass(frozen=True)
class Party:
    id: str
    name: str
    abbreviation: str | None = None


@dataclass(frozen=True)
class JurisdictionRef:
    """Resolved jurisdiction.

    id is None exactly for national jurisdictions. Equality uses (type, id)
    only; name is for display/export.
    """
    type: JurisdictionType
    id: str | None
    name: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if (self.type is JurisdictionType.NATIONAL) != (self.id is None):
            raise ValueError(f"jurisdiction id must be None only for national, got type={self.type.value} id={self.id!r}")

    @classmethod
    def national(cls) -> JurisdictionRef:
        return cls(type=JurisdictionType.NATIONAL, id=None)

    @property
    def is_national(self) -> bool:
        return self.type is JurisdictionType.NATIONAL

    @property
    def key(self) -> str:
        """Stable text key, e.g. ``city:abc-123`` or ``national``."""
        if self.id is None:
            return self.type.value
        return f"{self.type.value}:{self.id}"


@dataclass(frozen=True)
class Politician:
    id: str
    name: str
    birth_date: date | None = None
    photo_url: str | None = None
    short_bio: str | None = None

    def matches(self, name: str, birth_date: date | None) -> bool:
        """Identity check used by reconciliation.

        Names compare case-insensitively with whitespace collapsed. Birth dates
        only have to agree when both sides have one.
        """
        if normalize_person_name(self.name) != normalize_person_name(name):
            return False
        if self.birth_date is None or birth_date is None:
            return True
        return self.birth_date == birth_date


def normalize_person_name(name: str) -> str:
    return " ".join(name.split()).casefold()
