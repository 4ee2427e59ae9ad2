from __future__ import annotations

from collections.abc import Iterable

from rapidfuzz import fuzz

"""Near-miss suggestions for free-text reference fields.

Priority order:
1. candidate contains / starts with the input
2. input contains / starts with the candidate
3. close spelling (rapidfuzz ratio >= FUZZY_MATCH_THRESHOLD), best score first

Reference lists are small (tens to low hundreds of names), so every candidate
is scored. Callers only depend on suggest(target, candidates, limit).
"""

__all__ = [
    "DEFAULT_SUGGESTION_LIMIT",
    "FUZZY_MATCH_THRESHOLD",
    "suggest",
]

DEFAULT_SUGGESTION_LIMIT = 3
FUZZY_MATCH_THRESHOLD = 85


def _rank(target: str, candidate: str) -> tuple[int, float] | None:
    """(priority, -score) for a lower-cased pair, None when unrelated."""
    if target in candidate or candidate.startswith(target):
        return (0, 0.0)
    if candidate in target or target.startswith(candidate):
        return (1, 0.0)
    score = fuzz.ratio(target, candidate)
    if score >= FUZZY_MATCH_THRESHOLD:
        return (2, -score)
    return None


def suggest(target: str, candidates: Iterable[str], limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[str]:
    """Return up to ``limit`` candidates close to ``target``.

    Matching is case-insensitive. Within a priority the candidate order is
    preserved (fuzzy matches: higher score first).

    >>> suggest("Gov", ["Mayor", "Vice Governor", "Governor"])
    ['Vice Governor', 'Governor']
    >>> suggest("Govenor", ["Mayor", "Governor"])
    ['Governor']
    >>> suggest("Liberal Party of the Philippines", ["Liberal", "Nacionalista"])
    ['Liberal']
    """
    needle = target.strip().lower()
    if not needle or limit <= 0:
        return []
    ranked: list[tuple[int, float, int, str]] = []
    for order, candidate in enumerate(candidates):
        rank = _rank(needle, candidate.lower())
        if rank is not None:
            ranked.append((rank[0], rank[1], order, candidate))
    ranked.sort()
    return [c for *_, c in ranked[:limit]]
