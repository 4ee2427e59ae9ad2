from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .reference import JurisdictionRef

"""OfficeholderAssignment model (one row of position history).

For a given (position_id, jurisdiction) key at most one assignment may have
is_current=True. The registry owns these records; the reconciliation engine
enforces the invariant when it writes them.
"""

__all__ = [
    "OfficeholderAssignment",
    "ENDED_REASON_REPLACED",
]

ENDED_REASON_REPLACED = "replaced"


@dataclass(frozen=True)
class OfficeholderAssignment:
    id: str
    politician_id: str
    position_id: str
    jurisdiction: JurisdictionRef
    term_start: date
    term_end: date | None = None
    party_id: str | None = None
    is_current: bool = True
    ended_reason: str | None = None  # 'replaced' など (archive 時のみ)

    @property
    def key(self) -> tuple[str, JurisdictionRef]:
        return (self.position_id, self.jurisdiction)
