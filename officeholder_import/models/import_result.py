from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .validation import ValidatedImportRow, ValidationError

"""Import run result models.

ImportRunReport aggregates one run of the pipeline: validation results,
reconciliation outcomes and registry-side failures. The counters exposed here
feed both the SUMMARY line and the error report workbook.
"""

__all__ = [
    "ImportStatus",
    "ReconciliationAction",
    "ReconciliationOutcome",
    "ReconciliationFailure",
    "ImportRunReport",
]


class ImportStatus(Enum):
    """Run lifecycle.

    State transitions: pending → processing → (completed | failed)

    - PROCESSING starts once the upload has been read.
    - FAILED covers structural failures (no report at all) and a failed
      run transaction (report without outcomes).
    - A run where every row is invalid is still COMPLETED.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReconciliationAction(Enum):
    CREATE = "create"
    UPDATE = "update"
    ARCHIVE_AND_CREATE = "archive_and_create"


@dataclass(frozen=True)
class ReconciliationOutcome:
    """What the engine did with one valid row."""
    row: int
    action: ReconciliationAction
    assignment_id: str
    politician_id: str
    archived_assignment_id: str | None = None
    changed: bool = True  # UPDATE で差分なしの場合 False (no-op)


@dataclass(frozen=True)
class ReconciliationFailure:
    """Registry-side failure for a row that passed validation.

    Kept apart from ValidationError: the data was fine, the write was not.
    Such rows are safe to retry on their own.
    """
    row: int
    message: str


@dataclass(frozen=True)
class ImportRunReport:
    source_filename: str
    started_at: datetime
    finished_at: datetime
    status: ImportStatus
    total_rows: int
    validated_rows: tuple[ValidatedImportRow, ...] = ()
    errors: tuple[ValidationError, ...] = ()
    outcomes: tuple[ReconciliationOutcome, ...] = ()
    reconciliation_failures: tuple[ReconciliationFailure, ...] = ()
    validate_only: bool = False
    error_log_path: str | None = field(default=None, compare=False)

    @property
    def valid_rows(self) -> int:
        return sum(1 for r in self.validated_rows if r.is_valid)

    @property
    def invalid_rows(self) -> int:
        return sum(1 for r in self.validated_rows if not r.is_valid)

    @property
    def politicians_created(self) -> int:
        return sum(
            1 for o in self.outcomes
            if o.action in (ReconciliationAction.CREATE, ReconciliationAction.ARCHIVE_AND_CREATE)
        )

    @property
    def politicians_updated(self) -> int:
        return sum(1 for o in self.outcomes if o.action is ReconciliationAction.UPDATE and o.changed)

    @property
    def unchanged_rows(self) -> int:
        return sum(1 for o in self.outcomes if o.action is ReconciliationAction.UPDATE and not o.changed)

    @property
    def positions_archived(self) -> int:
        return sum(1 for o in self.outcomes if o.action is ReconciliationAction.ARCHIVE_AND_CREATE)

    @property
    def successful_imports(self) -> int:
        if self.validate_only:
            return self.valid_rows
        return len(self.outcomes)

    @property
    def failed_imports(self) -> int:
        return self.invalid_rows + len(self.reconciliation_failures)

    @property
    def elapsed_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def has_failures(self) -> bool:
        return self.failed_imports > 0
