from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..models.assignment import ENDED_REASON_REPLACED, OfficeholderAssignment
from ..models.import_result import ReconciliationAction, ReconciliationFailure, ReconciliationOutcome
from ..models.reference import Politician
from ..models.validation import ValidatedImportRow
from .registry import OfficeholderRegistry, RegistryError

"""Reconciliation engine: turn valid rows into registry mutations.

Per (position, jurisdiction) key, against the registry state at the time the
row is processed:

- no current holder            -> CREATE
- current holder is the person -> UPDATE (in place, no new history row)
- current holder is someone else -> ARCHIVE_AND_CREATE (close old, insert new)

Each row runs inside registry.atomic(), so an archive is never visible
without its create. Rows are processed in file order and each sees the
effects of the previous ones, so two rows for the same key in one upload
end with the later person current and the earlier one archived.
"""

__all__ = [
    "ReconciliationFailed",
    "ReconciliationResult",
    "ReconciliationEngine",
    "backfill_term_end",
]

logger = logging.getLogger(__name__)


class ReconciliationFailed(Exception):
    """A row could not be applied; nothing from it reached the registry."""

    def __init__(self, row: int, message: str) -> None:
        super().__init__(f"row {row}: {message}")
        self.row = row
        self.message = message


@dataclass
class ReconciliationResult:
    outcomes: list[ReconciliationOutcome] = field(default_factory=list)
    failures: list[ReconciliationFailure] = field(default_factory=list)


def backfill_term_end(previous: OfficeholderAssignment, new_term_start: date) -> date:
    """term_end for an archived assignment.

    An explicit term_end is kept. An open one becomes the day before the new
    term starts, but never earlier than the archived term's own start.
    """
    if previous.term_end is not None:
        return previous.term_end
    return max(previous.term_start, new_term_start - timedelta(days=1))


class ReconciliationEngine:
    def __init__(self, registry: OfficeholderRegistry) -> None:
        self.registry = registry

    def reconcile(
        self,
        rows: Iterable[ValidatedImportRow],
        on_row: Callable[[ValidatedImportRow], None] | None = None,
    ) -> ReconciliationResult:
        """Apply valid rows in order; invalid rows are skipped.

        Registry failures are recorded per row and never abort the batch.
        """
        result = ReconciliationResult()
        for row in rows:
            if row.is_valid:
                try:
                    outcome = self.reconcile_row(row)
                except ReconciliationFailed as e:
                    logger.warning(f"reconciliation failed: {e}")
                    result.failures.append(ReconciliationFailure(row=e.row, message=e.message))
                else:
                    result.outcomes.append(outcome)
            if on_row is not None:
                on_row(row)
        return result

    def reconcile_row(self, row: ValidatedImportRow) -> ReconciliationOutcome:
        if not row.is_valid:
            raise ValueError(f"row {row.row_number} is not valid and cannot be reconciled")
        if row.position_id is None or row.jurisdiction is None or row.term_start is None:
            raise ValueError(f"row {row.row_number} is missing a resolved position, jurisdiction or term start")

        try:
            with self.registry.atomic():
                current = self.registry.get_current(row.position_id, row.jurisdiction)
                if current is None:
                    return self._create(row)
                holder = self.registry.get_politician(current.politician_id)
                if holder is not None and holder.matches(row.name, row.birth_date):
                    return self._update(row, current, holder)
                return self._archive_and_create(row, current)
        except RegistryError as e:
            raise ReconciliationFailed(row.row_number, str(e)) from e

    # -- actions -------------------------------------------------------

    def _find_or_create_politician(self, row: ValidatedImportRow) -> Politician:
        politician = self.registry.find_politician(row.name, row.birth_date)
        if politician is None:
            return self.registry.create_politician(
                name=row.name,
                birth_date=row.birth_date,
                photo_url=row.photo_url,
                short_bio=row.short_bio,
            )
        self._merge_politician(row, politician)
        return politician

    def _merge_politician(self, row: ValidatedImportRow, politician: Politician) -> bool:
        """Overwrite profile fields the row provides; blank cells keep what is stored."""
        birth_date = politician.birth_date or row.birth_date
        photo_url = row.photo_url if row.photo_url is not None else politician.photo_url
        short_bio = row.short_bio if row.short_bio is not None else politician.short_bio
        if (birth_date, photo_url, short_bio) == (politician.birth_date, politician.photo_url, politician.short_bio):
            return False
        self.registry.update_politician(
            politician.id, birth_date=birth_date, photo_url=photo_url, short_bio=short_bio
        )
        return True

    def _create(self, row: ValidatedImportRow) -> ReconciliationOutcome:
        politician = self._find_or_create_politician(row)
        assignment = self.registry.create_assignment(
            politician_id=politician.id,
            position_id=row.position_id,
            jurisdiction=row.jurisdiction,
            term_start=row.term_start,
            term_end=row.term_end,
            party_id=row.party_id,
        )
        logger.debug("row %d: create %s -> %s", row.row_number, politician.id, assignment.id)
        return ReconciliationOutcome(
            row=row.row_number,
            action=ReconciliationAction.CREATE,
            assignment_id=assignment.id,
            politician_id=politician.id,
        )

    def _update(
        self,
        row: ValidatedImportRow,
        current: OfficeholderAssignment,
        holder: Politician,
    ) -> ReconciliationOutcome:
        changed = self._merge_politician(row, holder)
        if (current.term_start, current.term_end, current.party_id) != (row.term_start, row.term_end, row.party_id):
            self.registry.update_assignment(
                current.id, term_start=row.term_start, term_end=row.term_end, party_id=row.party_id
            )
            changed = True
        logger.debug("row %d: update %s changed=%s", row.row_number, current.id, changed)
        return ReconciliationOutcome(
            row=row.row_number,
            action=ReconciliationAction.UPDATE,
            assignment_id=current.id,
            politician_id=holder.id,
            changed=changed,
        )

    def _archive_and_create(self, row: ValidatedImportRow, current: OfficeholderAssignment) -> ReconciliationOutcome:
        self.registry.close_assignment(
            current.id, backfill_term_end(current, row.term_start), ENDED_REASON_REPLACED
        )
        created = self._create(row)
        logger.debug("row %d: archived %s", row.row_number, current.id)
        return ReconciliationOutcome(
            row=row.row_number,
            action=ReconciliationAction.ARCHIVE_AND_CREATE,
            assignment_id=created.assignment_id,
            politician_id=created.politician_id,
            archived_assignment_id=current.id,
        )
