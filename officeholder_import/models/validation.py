from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .import_row import JurisdictionType
from .reference import JurisdictionRef

"""Validation result models.

ValidationError is one field-level problem; ValidatedImportRow is an
ImportRow resolved against a reference catalog snapshot, carrying every
error found for that row.
"""

__all__ = [
    "ValidationError",
    "ValidatedImportRow",
]


@dataclass(frozen=True)
class ValidationError:
    """Field-level validation problem for a single row."""
    row: int
    field: str  # name / position / jurisdiction_type / jurisdiction_name / party / term_start / term_end / birth_date
    message: str
    offending_value: str | None = None
    suggestions: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        return {
            "row": self.row,
            "field": self.field,
            "error": self.message,
            "value": self.offending_value,
            "suggestions": list(self.suggestions),
        }


@dataclass
class ValidatedImportRow:
    """ImportRow resolved against the catalog.

    Resolved ids stay None for fields that failed validation. Consumed once by
    the reconciliation engine, and only when is_valid.
    """
    row_number: int
    name: str
    position_id: str | None = None
    position_name: str | None = None
    jurisdiction_type: JurisdictionType | None = None
    jurisdiction: JurisdictionRef | None = None
    party_id: str | None = None
    party_name: str | None = None
    term_start: date | None = None
    term_end: date | None = None
    birth_date: date | None = None
    photo_url: str | None = None
    short_bio: str | None = None
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def is_national(self) -> bool:
        return self.jurisdiction_type is JurisdictionType.NATIONAL

    def add_error(
        self,
        field_name: str,
        message: str,
        value: str | None,
        suggestions: list[str] | tuple[str, ...] = (),
    ) -> None:
        self.errors.append(
            ValidationError(
                row=self.row_number,
                field=field_name,
                message=message,
                offending_value=value,
                suggestions=tuple(suggestions),
            )
        )
