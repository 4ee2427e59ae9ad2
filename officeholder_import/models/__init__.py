"""Domain models for the officeholder import pipeline.

Rows as read from the upload, catalog/reference entities, validation results,
position-history assignments and the per-run report.
"""

from .assignment import ENDED_REASON_REPLACED, OfficeholderAssignment
from .error_record import FILE_LEVEL_ROW, ErrorRecord
from .import_result import (
    ImportRunReport,
    ImportStatus,
    ReconciliationAction,
    ReconciliationFailure,
    ReconciliationOutcome,
)
from .import_row import FIRST_DATA_ROW, ImportRow, JurisdictionType, RawRow
from .reference import JurisdictionRef, Party, Politician, Position, normalize_person_name
from .validation import ValidatedImportRow, ValidationError

__all__ = [
    # Rows
    "RawRow",
    "ImportRow",
    "JurisdictionType",
    "FIRST_DATA_ROW",
    # Reference data
    "Position",
    "Party",
    "JurisdictionRef",
    "Politician",
    "normalize_person_name",
    # Validation
    "ValidationError",
    "ValidatedImportRow",
    # Registry
    "OfficeholderAssignment",
    "ENDED_REASON_REPLACED",
    # Run results
    "ImportStatus",
    "ReconciliationAction",
    "ReconciliationOutcome",
    "ReconciliationFailure",
    "ImportRunReport",
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]
