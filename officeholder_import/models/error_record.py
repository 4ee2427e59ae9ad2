from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .validation import ValidationError

"""ErrorRecord model for the JSON Lines error log.

Every row-level validation error, reconciliation failure and structural
failure of a run becomes one ErrorRecord. row=-1 marks file-level errors
where no row applies.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded filename being imported
        row: spreadsheet row number (1-based). -1 for file-level errors
        field: offending field, or '' when the error is not field specific
        error_type: classification in UPPER_SNAKE_CASE
        message: human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int
    field: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int, field: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            field=field,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_validation_error(file: str, error: ValidationError) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            row=error.row,
            field=error.field,
            error_type="VALIDATION_ERROR",
            message=error.message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
