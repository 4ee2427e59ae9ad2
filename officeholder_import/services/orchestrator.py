from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from ..excel.reader import (
    ImportStructureError,
    MissingColumnError,
    NoDataRowsError,
    Source,
    read_import_file,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_result import ImportRunReport, ImportStatus
from ..models.import_row import ImportRow
from ..models.validation import ValidatedImportRow, ValidationError
from .catalog import ReferenceCatalog
from .progress import ProgressTracker
from .reconciliation import ReconciliationEngine, ReconciliationResult
from .registry import OfficeholderRegistry, RegistryError
from .suggest import DEFAULT_SUGGESTION_LIMIT
from .validator import validate_row

"""Import pipeline orchestration.

read -> validate (every row) -> reconcile (valid rows, file order) -> report

Status: pending -> processing (upload read) -> completed | failed

- Structural failures are logged to the error log and re-raised; no row is
  touched and no report is produced. The status still ends as failed.
- Row validation errors and per-row reconciliation failures never abort the
  run; they end up in the ImportRunReport and the error log.
- Reconciliation runs inside one outer registry.atomic() block (the run
  transaction); each row is a nested block of its own. When that block
  fails, ProcessingError carries a failed report with no outcomes.
"""

__all__ = [
    "ProcessingError",
    "run_import",
    "structural_error_type",
]

logger = logging.getLogger(__name__)

RECONCILIATION_FIELD = "registry"

StatusCallback = Callable[[ImportStatus], None]


class ProcessingError(Exception):
    """Fatal orchestration failure after the upload was read (e.g. commit failed)."""

    def __init__(self, message: str, report: ImportRunReport | None = None) -> None:
        super().__init__(message)
        self.report = report


def structural_error_type(error: ImportStructureError) -> str:
    if isinstance(error, MissingColumnError):
        return "MISSING_COLUMN"
    if isinstance(error, NoDataRowsError):
        return "NO_DATA_ROWS"
    return "MALFORMED_INPUT"


def _structural_record(filename: str, error: ImportStructureError) -> ErrorRecord:
    return ErrorRecord.create(
        file=filename,
        row=FILE_LEVEL_ROW,
        field=getattr(error, "column_name", ""),
        error_type=structural_error_type(error),
        message=str(error),
    )


def _flush(error_log: ErrorLogBuffer) -> Path | None:
    try:
        return error_log.flush()
    except OSError as e:
        # エラーログ書き込み失敗で実行全体は落とさない
        logger.warning(f"failed to write error log {error_log.file_path}: {e}")
        return None


def run_import(
    source: Source,
    filename: str,
    catalog: ReferenceCatalog,
    registry: OfficeholderRegistry | None = None,
    *,
    validate_only: bool = False,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
    error_log: ErrorLogBuffer | None = None,
    on_status: StatusCallback | None = None,
) -> ImportRunReport:
    """Run one upload through the pipeline and return its report.

    Args:
        source: workbook bytes, path or binary file object
        filename: name reported in the error log, summary and error report
        catalog: reference snapshot loaded once for this run
        registry: registry to reconcile into; required unless validate_only
        validate_only: stop after validation (nothing is written)
        suggestion_limit: max suggestions per unmatched position / party
        error_log: JSON Lines buffer; a fresh one under ./logs when None
        on_status: called on every status change (pending first, then
            processing, then completed or failed)

    Raises:
        ImportStructureError: the upload is unusable (nothing was processed)
        ProcessingError: no registry given, or the run transaction failed
    """
    if registry is None and not validate_only:
        raise ProcessingError("a registry is required unless validate_only is set")
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    started_at = datetime.now(UTC)

    def set_status(status: ImportStatus) -> None:
        logger.debug(f"{filename}: status {status.value}")
        if on_status is not None:
            on_status(status)

    set_status(ImportStatus.PENDING)
    try:
        sheet = read_import_file(source)
    except ImportStructureError as e:
        logger.error(f"{filename}: {e}")
        error_log.append(_structural_record(filename, e))
        _flush(error_log)
        set_status(ImportStatus.FAILED)
        raise
    set_status(ImportStatus.PROCESSING)

    rows = [ImportRow.from_raw(raw) for raw in sheet.rows]
    logger.info(f"{filename}: {len(rows)} data row(s) in sheet '{sheet.sheet_name}'")

    validated: list[ValidatedImportRow] = []
    result = ReconciliationResult()
    with ProgressTracker(len(rows), filename=filename) as progress:
        progress.start_phase("validate")
        for row in rows:
            validated.append(validate_row(row, catalog, suggestion_limit=suggestion_limit))
            progress.advance()
        errors = tuple(err for v in validated for err in v.errors)
        progress.set_postfix(invalid=sum(1 for v in validated if not v.is_valid))

        if validate_only or registry is None:
            logger.info(f"{filename}: validate-only run, registry untouched")
        else:
            engine = ReconciliationEngine(registry)
            progress.start_phase("reconcile")
            try:
                with registry.atomic():
                    result = engine.reconcile(validated, on_row=progress.advance)
            except RegistryError as e:
                _append_validation_records(error_log, filename, errors)
                error_log.append(
                    ErrorRecord.create(filename, FILE_LEVEL_ROW, RECONCILIATION_FIELD, "TRANSACTION_ERROR", str(e))
                )
                log_path = _flush(error_log)
                set_status(ImportStatus.FAILED)
                report = ImportRunReport(
                    source_filename=filename,
                    started_at=started_at,
                    finished_at=datetime.now(UTC),
                    status=ImportStatus.FAILED,
                    total_rows=len(rows),
                    validated_rows=tuple(validated),
                    errors=errors,
                    error_log_path=str(log_path) if log_path is not None else None,
                )
                raise ProcessingError(f"run transaction failed, all changes rolled back: {e}", report) from e

    _append_validation_records(error_log, filename, errors)
    for failure in result.failures:
        error_log.append(
            ErrorRecord.create(filename, failure.row, RECONCILIATION_FIELD, "RECONCILIATION_FAILED", failure.message)
        )
    log_path = _flush(error_log)

    report = ImportRunReport(
        source_filename=filename,
        started_at=started_at,
        finished_at=datetime.now(UTC),
        status=ImportStatus.COMPLETED,
        total_rows=len(rows),
        validated_rows=tuple(validated),
        errors=errors,
        outcomes=tuple(result.outcomes),
        reconciliation_failures=tuple(result.failures),
        validate_only=validate_only,
        error_log_path=str(log_path) if log_path is not None else None,
    )
    set_status(ImportStatus.COMPLETED)
    if report.has_failures:
        logger.warning(
            f"{filename}: {report.invalid_rows} invalid row(s), "
            f"{len(report.reconciliation_failures)} reconciliation failure(s)"
        )
    logger.info(
        f"{filename}: created={report.politicians_created} updated={report.politicians_updated} "
        f"unchanged={report.unchanged_rows} archived={report.positions_archived}"
    )
    return report


def _append_validation_records(error_log: ErrorLogBuffer, filename: str, errors: tuple[ValidationError, ...]) -> None:
    for err in errors:
        error_log.append(ErrorRecord.from_validation_error(filename, err))
