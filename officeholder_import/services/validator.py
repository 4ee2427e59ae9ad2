from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date

from ..models.import_row import ImportRow, JurisdictionType
from ..models.validation import ValidatedImportRow
from .catalog import CatalogError, JurisdictionNotFound, ReferenceCatalog
from .suggest import DEFAULT_SUGGESTION_LIMIT, suggest

"""Row validator: resolve one ImportRow against a ReferenceCatalog.

Every field is checked even after an earlier one fails, so a single pass
reports all independent problems of a row. validate_row never raises; the
row's errors list carries everything.

Field order: name, position, jurisdiction_type (+ jurisdiction_name), party,
term_start, term_end, birth_date. photo_url / short_bio are copied through.
"""

__all__ = [
    "DATE_FORMAT_LABEL",
    "parse_iso_date",
    "validate_row",
    "validate_rows",
]

logger = logging.getLogger(__name__)

DATE_FORMAT_LABEL = "YYYY-MM-DD"
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> date | None:
    """Strict YYYY-MM-DD parse; None when malformed or not a real calendar date."""
    value = value.strip()
    if not _DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _check_name(row: ImportRow, out: ValidatedImportRow) -> None:
    if not row.name.strip():
        out.add_error("name", "Name is required", row.name)


def _check_position(row: ImportRow, catalog: ReferenceCatalog, out: ValidatedImportRow, limit: int) -> None:
    if not row.position.strip():
        out.add_error("position", "Position is required", row.position)
        return
    position = catalog.find_position(row.position)
    if position is None:
        out.add_error(
            "position",
            f"Position '{row.position}' not found",
            row.position,
            suggest(row.position, catalog.position_names(), limit),
        )
        return
    out.position_id = position.id
    out.position_name = position.name


def _check_jurisdiction(row: ImportRow, catalog: ReferenceCatalog, out: ValidatedImportRow) -> None:
    if not row.jurisdiction_type.strip():
        out.add_error("jurisdiction_type", "Jurisdiction type is required", row.jurisdiction_type)
        return
    jtype = JurisdictionType.parse(row.jurisdiction_type)
    if jtype is None:
        out.add_error(
            "jurisdiction_type",
            f"Invalid jurisdiction type '{row.jurisdiction_type}'",
            row.jurisdiction_type,
            JurisdictionType.names(),
        )
        return
    out.jurisdiction_type = jtype

    if jtype is JurisdictionType.NATIONAL:
        # national は jurisdiction name 不要
        out.jurisdiction = catalog.lookup_jurisdiction(jtype, "")
        return

    if not row.jurisdiction_name.strip():
        out.add_error(
            "jurisdiction_name",
            "Jurisdiction name is required for non-national positions",
            row.jurisdiction_name,
        )
        return
    try:
        out.jurisdiction = catalog.lookup_jurisdiction(jtype, row.jurisdiction_name)
    except JurisdictionNotFound:
        out.add_error(
            "jurisdiction_name",
            f"Jurisdiction '{row.jurisdiction_name}' not found for type '{jtype.value}'",
            row.jurisdiction_name,
        )
    except CatalogError as e:
        logger.warning(f"row {row.row_number}: jurisdiction lookup failed: {e}")
        out.add_error(
            "jurisdiction_name",
            f"Jurisdiction lookup failed for '{row.jurisdiction_name}' ({jtype.value}): {e}",
            row.jurisdiction_name,
        )


def _check_party(row: ImportRow, catalog: ReferenceCatalog, out: ValidatedImportRow, limit: int) -> None:
    if not row.party.strip():
        out.add_error("party", "Party is required", row.party)
        return
    party = catalog.find_party(row.party)
    if party is None:
        out.add_error(
            "party",
            f"Party '{row.party}' not found",
            row.party,
            suggest(row.party, catalog.party_names(), limit),
        )
        return
    out.party_id = party.id
    out.party_name = party.name


def _parse_date_field(field_name: str, value: str, out: ValidatedImportRow) -> date | None:
    parsed = parse_iso_date(value)
    if parsed is None:
        out.add_error(field_name, f"Invalid date format '{value}'. Expected {DATE_FORMAT_LABEL}", value)
    return parsed


def _check_dates(row: ImportRow, out: ValidatedImportRow) -> None:
    if not row.term_start.strip():
        out.add_error("term_start", "Term start date is required", row.term_start)
    else:
        out.term_start = _parse_date_field("term_start", row.term_start, out)

    if row.term_end is not None and row.term_end.strip():
        term_end = _parse_date_field("term_end", row.term_end, out)
        if term_end is not None:
            out.term_end = term_end
            if out.term_start is not None and term_end < out.term_start:
                out.add_error("term_end", "Term end must not be before term start", row.term_end)

    if row.birth_date is not None and row.birth_date.strip():
        out.birth_date = _parse_date_field("birth_date", row.birth_date, out)


def validate_row(
    row: ImportRow,
    catalog: ReferenceCatalog,
    *,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> ValidatedImportRow:
    """Validate one row; never raises."""
    out = ValidatedImportRow(row_number=row.row_number, name=row.name.strip())
    _check_name(row, out)
    _check_position(row, catalog, out, suggestion_limit)
    _check_jurisdiction(row, catalog, out)
    _check_party(row, catalog, out, suggestion_limit)
    _check_dates(row, out)
    out.photo_url = row.photo_url
    out.short_bio = row.short_bio
    return out


def validate_rows(
    rows: Iterable[ImportRow],
    catalog: ReferenceCatalog,
    *,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[ValidatedImportRow]:
    """Validate rows in file order."""
    results = []
    for row in rows:
        validated = validate_row(row, catalog, suggestion_limit=suggestion_limit)
        if not validated.is_valid:
            logger.debug("row %d invalid: %d error(s)", row.row_number, len(validated.errors))
        results.append(validated)
    return results
