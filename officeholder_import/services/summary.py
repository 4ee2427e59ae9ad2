from __future__ import annotations

from ..models.import_result import ImportRunReport

"""SUMMARY line rendering.

Format:
SUMMARY file=<name> rows=<total> valid=<n> invalid=<n> created=<n>
updated=<n> archived=<n> failed=<n> elapsed_sec=<s>
"""

__all__ = [
    "render_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Compact seconds: integers without a fraction, no scientific notation.

    >>> format_elapsed(2.0)
    '2'
    >>> format_elapsed(0.000012)
    '0.000012'
    >>> format_elapsed(1.25)
    '1.25'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(report: ImportRunReport) -> str:
    """Render the SUMMARY line for one run.

    Filenames containing whitespace are quoted so the line stays
    ``key=value`` separable.

    >>> from datetime import datetime, timezone
    >>> from officeholder_import.models import ImportRunReport, ImportStatus
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_summary_line(ImportRunReport("a.xlsx", t, t, ImportStatus.COMPLETED, 0))
    'SUMMARY file=a.xlsx rows=0 valid=0 invalid=0 created=0 updated=0 archived=0 failed=0 elapsed_sec=0'
    """
    name = report.source_filename
    if any(ch.isspace() for ch in name):
        name = '"' + name.replace('"', "'") + '"'
    return (
        f"SUMMARY file={name} "
        f"rows={report.total_rows} "
        f"valid={report.valid_rows} "
        f"invalid={report.invalid_rows} "
        f"created={report.politicians_created} "
        f"updated={report.politicians_updated} "
        f"archived={report.positions_archived} "
        f"failed={report.failed_imports} "
        f"elapsed_sec={format_elapsed(report.elapsed_seconds)}"
    )
