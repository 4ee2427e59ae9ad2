from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import date
from typing import Protocol

from ..models.assignment import OfficeholderAssignment
from ..models.reference import JurisdictionRef, Politician

"""Officeholder registry collaborator.

OfficeholderRegistry is the interface the reconciliation engine writes
through. InMemoryRegistry is the staged implementation used for dry runs and
tests; db.postgres.PostgresRegistry is the database-backed one.

Both implement atomic(): everything done inside the block becomes visible
together or not at all.
"""

__all__ = [
    "RegistryError",
    "OfficeholderRegistry",
    "InMemoryRegistry",
]

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Registry-side failure (constraint violation, connection loss, ...)."""


class OfficeholderRegistry(Protocol):
    def atomic(self) -> AbstractContextManager[None]: ...

    def get_current(self, position_id: str, jurisdiction: JurisdictionRef) -> OfficeholderAssignment | None: ...

    def get_politician(self, politician_id: str) -> Politician | None: ...

    def find_politician(self, name: str, birth_date: date | None) -> Politician | None: ...

    def create_politician(
        self,
        name: str,
        birth_date: date | None = None,
        photo_url: str | None = None,
        short_bio: str | None = None,
    ) -> Politician: ...

    def update_politician(
        self,
        politician_id: str,
        *,
        birth_date: date | None,
        photo_url: str | None,
        short_bio: str | None,
    ) -> None: ...

    def create_assignment(
        self,
        politician_id: str,
        position_id: str,
        jurisdiction: JurisdictionRef,
        term_start: date,
        term_end: date | None = None,
        party_id: str | None = None,
    ) -> OfficeholderAssignment: ...

    def update_assignment(
        self,
        assignment_id: str,
        *,
        term_start: date,
        term_end: date | None,
        party_id: str | None,
    ) -> None: ...

    def close_assignment(self, assignment_id: str, term_end: date, reason: str) -> None: ...

    def list_current(self) -> list[OfficeholderAssignment]: ...


class InMemoryRegistry:
    """Staged registry held in memory.

    Enforces the one-current-holder-per-key invariant the same way the unique
    partial indexes do in the database: creating a second current assignment
    for a key raises RegistryError.
    """

    def __init__(
        self,
        politicians: list[Politician] | None = None,
        assignments: list[OfficeholderAssignment] | None = None,
    ) -> None:
        self._politicians: dict[str, Politician] = {p.id: p for p in politicians or []}
        self._assignments: dict[str, OfficeholderAssignment] = {a.id: a for a in assignments or []}
        self._snapshots: list[tuple[dict[str, Politician], dict[str, OfficeholderAssignment]]] = []

    @classmethod
    def seeded_from(cls, source: OfficeholderRegistry) -> InMemoryRegistry:
        """Copy the current assignments of ``source`` and their holders.

        Used for dry runs: reconciliation sees the same seat holders a live
        run would, and nothing is written back to ``source``.
        """
        assignments = source.list_current()
        politicians: dict[str, Politician] = {}
        for a in assignments:
            if a.politician_id in politicians:
                continue
            holder = source.get_politician(a.politician_id)
            if holder is None:
                logger.warning(f"seed: politician {a.politician_id} of assignment {a.id} not found")
                continue
            politicians[holder.id] = holder
        logger.debug(f"seeded in-memory registry: {len(assignments)} assignment(s), {len(politicians)} politician(s)")
        return cls(list(politicians.values()), assignments)

    # -- transaction ---------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        # records are frozen, so copying the dicts is a full snapshot
        self._snapshots.append((dict(self._politicians), dict(self._assignments)))
        try:
            yield
        except BaseException:
            self._politicians, self._assignments = self._snapshots.pop()
            raise
        else:
            self._snapshots.pop()

    # -- reads ---------------------------------------------------------

    def get_current(self, position_id: str, jurisdiction: JurisdictionRef) -> OfficeholderAssignment | None:
        for a in self._assignments.values():
            if a.is_current and a.position_id == position_id and a.jurisdiction == jurisdiction:
                return a
        return None

    def get_politician(self, politician_id: str) -> Politician | None:
        return self._politicians.get(politician_id)

    def find_politician(self, name: str, birth_date: date | None) -> Politician | None:
        matches = [p for p in self._politicians.values() if p.matches(name, birth_date)]
        if not matches:
            return None
        # 生年月日まで一致するものを優先
        exact = [p for p in matches if birth_date is not None and p.birth_date == birth_date]
        return (exact or matches)[0]

    def list_current(self) -> list[OfficeholderAssignment]:
        return [a for a in self._assignments.values() if a.is_current]

    def history(self, position_id: str, jurisdiction: JurisdictionRef) -> list[OfficeholderAssignment]:
        """All assignments (current and archived) for a key, oldest first."""
        return sorted(
            (a for a in self._assignments.values() if a.position_id == position_id and a.jurisdiction == jurisdiction),
            key=lambda a: (a.term_start, not a.is_current),
        )

    # -- writes --------------------------------------------------------

    def create_politician(
        self,
        name: str,
        birth_date: date | None = None,
        photo_url: str | None = None,
        short_bio: str | None = None,
    ) -> Politician:
        politician = Politician(
            id=str(uuid.uuid4()),
            name=name,
            birth_date=birth_date,
            photo_url=photo_url,
            short_bio=short_bio,
        )
        self._politicians[politician.id] = politician
        return politician

    def update_politician(
        self,
        politician_id: str,
        *,
        birth_date: date | None,
        photo_url: str | None,
        short_bio: str | None,
    ) -> None:
        current = self._politicians.get(politician_id)
        if current is None:
            raise RegistryError(f"politician not found: {politician_id}")
        self._politicians[politician_id] = replace(
            current, birth_date=birth_date, photo_url=photo_url, short_bio=short_bio
        )

    def create_assignment(
        self,
        politician_id: str,
        position_id: str,
        jurisdiction: JurisdictionRef,
        term_start: date,
        term_end: date | None = None,
        party_id: str | None = None,
    ) -> OfficeholderAssignment:
        if politician_id not in self._politicians:
            raise RegistryError(f"politician not found: {politician_id}")
        existing = self.get_current(position_id, jurisdiction)
        if existing is not None:
            raise RegistryError(
                f"position {position_id} in {jurisdiction.key} already has a current holder ({existing.id})"
            )
        assignment = OfficeholderAssignment(
            id=str(uuid.uuid4()),
            politician_id=politician_id,
            position_id=position_id,
            jurisdiction=jurisdiction,
            term_start=term_start,
            term_end=term_end,
            party_id=party_id,
        )
        self._assignments[assignment.id] = assignment
        return assignment

    def update_assignment(
        self,
        assignment_id: str,
        *,
        term_start: date,
        term_end: date | None,
        party_id: str | None,
    ) -> None:
        current = self._assignments.get(assignment_id)
        if current is None:
            raise RegistryError(f"assignment not found: {assignment_id}")
        self._assignments[assignment_id] = replace(
            current, term_start=term_start, term_end=term_end, party_id=party_id
        )

    def close_assignment(self, assignment_id: str, term_end: date, reason: str) -> None:
        current = self._assignments.get(assignment_id)
        if current is None:
            raise RegistryError(f"assignment not found: {assignment_id}")
        if not current.is_current:
            raise RegistryError(f"assignment already closed: {assignment_id}")
        self._assignments[assignment_id] = replace(
            current, is_current=False, term_end=term_end, ended_reason=reason
        )
        logger.debug("closed assignment %s term_end=%s reason=%s", assignment_id, term_end, reason)
