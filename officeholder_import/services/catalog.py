from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import yaml

from ..models.import_row import JurisdictionType
from ..models.reference import JurisdictionRef, Party, Position

"""Reference catalog: positions, parties and jurisdiction lookup.

A ReferenceCatalog is a read-only snapshot built once per import run and
passed explicitly to the validator. Position/party lookups are in-memory;
jurisdiction lookups are delegated to a JurisdictionDirectory, which may be
backed by the database (see db.postgres.PostgresJurisdictionDirectory).
"""

__all__ = [
    "CatalogError",
    "JurisdictionNotFound",
    "JurisdictionDirectory",
    "InMemoryJurisdictionDirectory",
    "ReferenceCatalog",
    "load_catalog_from_yaml",
]

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Reference data could not be loaded."""


class JurisdictionNotFound(LookupError):
    def __init__(self, jurisdiction_type: JurisdictionType, name: str) -> None:
        super().__init__(f"jurisdiction '{name}' not found for type '{jurisdiction_type.value}'")
        self.jurisdiction_type = jurisdiction_type
        self.name = name


class JurisdictionDirectory(Protocol):
    def lookup(self, jurisdiction_type: JurisdictionType, name: str) -> JurisdictionRef:
        """Resolve a non-national jurisdiction; raise JurisdictionNotFound on miss."""
        ...


class InMemoryJurisdictionDirectory:
    """Case-insensitive name lookup over fixed (id, name) pairs per type."""

    def __init__(self, entries: dict[JurisdictionType, Iterable[tuple[str, str]]] | None = None) -> None:
        self._by_name: dict[tuple[JurisdictionType, str], JurisdictionRef] = {}
        for jtype, pairs in (entries or {}).items():
            if jtype is JurisdictionType.NATIONAL:
                continue
            for jid, name in pairs:
                key = (jtype, name.strip().lower())
                if key in self._by_name:
                    logger.warning("duplicate %s name '%s' in jurisdiction directory; keeping first", jtype.value, name)
                    continue
                self._by_name[key] = JurisdictionRef(type=jtype, id=str(jid), name=name)

    def lookup(self, jurisdiction_type: JurisdictionType, name: str) -> JurisdictionRef:
        ref = self._by_name.get((jurisdiction_type, name.strip().lower()))
        if ref is None:
            raise JurisdictionNotFound(jurisdiction_type, name)
        return ref

    def names(self, jurisdiction_type: JurisdictionType) -> list[str]:
        return [ref.name or "" for (jtype, _), ref in self._by_name.items() if jtype is jurisdiction_type]


class ReferenceCatalog:
    """Read-only snapshot of valid positions and parties.

    Safe to share between runs; nothing here mutates after construction.
    """

    def __init__(
        self,
        positions: Iterable[Position],
        parties: Iterable[Party],
        jurisdictions: JurisdictionDirectory,
    ) -> None:
        self._positions = tuple(positions)
        self._parties = tuple(parties)
        self._jurisdictions = jurisdictions
        self._positions_by_name = _index_by_name(self._positions, "position")
        self._parties_by_name = _index_by_name(self._parties, "party")
        self._positions_by_id = {p.id: p for p in self._positions}
        self._parties_by_id = {p.id: p for p in self._parties}

    @property
    def positions(self) -> tuple[Position, ...]:
        return self._positions

    @property
    def parties(self) -> tuple[Party, ...]:
        return self._parties

    def find_position(self, name: str) -> Position | None:
        return self._positions_by_name.get(name.strip().lower())

    def find_party(self, name: str) -> Party | None:
        return self._parties_by_name.get(name.strip().lower())

    def position_by_id(self, position_id: str) -> Position | None:
        return self._positions_by_id.get(position_id)

    def party_by_id(self, party_id: str | None) -> Party | None:
        if party_id is None:
            return None
        return self._parties_by_id.get(party_id)

    def position_names(self) -> list[str]:
        return [p.name for p in self._positions]

    def party_names(self) -> list[str]:
        return [p.name for p in self._parties]

    def lookup_jurisdiction(self, jurisdiction_type: JurisdictionType, name: str) -> JurisdictionRef:
        """Resolve (type, name). National never hits the directory."""
        if jurisdiction_type is JurisdictionType.NATIONAL:
            return JurisdictionRef.national()
        return self._jurisdictions.lookup(jurisdiction_type, name)


def _index_by_name(items: tuple[Any, ...], kind: str) -> dict[str, Any]:
    index: dict[str, Any] = {}
    for item in items:
        key = item.name.strip().lower()
        if key in index:
            logger.warning("duplicate %s name '%s' in catalog; keeping first", kind, item.name)
            continue
        index[key] = item
    return index


def load_catalog_from_yaml(path: Path) -> ReferenceCatalog:
    """Build a catalog from a reference-data YAML file.

    Expected layout::

        positions: [{id: ..., name: ..., level: ..., branch: ...}]
        parties: [{id: ..., name: ..., abbreviation: ...}]
        jurisdictions:
          city: [{id: ..., name: ...}]
    """
    if not path.exists():
        raise CatalogError(f"reference data file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise CatalogError(f"invalid reference data yaml: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError("reference data must be a mapping")

    try:
        positions = [
            Position(id=str(p["id"]), name=str(p["name"]), level=p.get("level"), branch=p.get("branch"))
            for p in data.get("positions") or []
        ]
        parties = [
            Party(id=str(p["id"]), name=str(p["name"]), abbreviation=p.get("abbreviation"))
            for p in data.get("parties") or []
        ]
        entries: dict[JurisdictionType, list[tuple[str, str]]] = {}
        for type_name, items in (data.get("jurisdictions") or {}).items():
            jtype = JurisdictionType.parse(str(type_name))
            if jtype is None:
                raise CatalogError(f"unknown jurisdiction type in reference data: {type_name}")
            entries[jtype] = [(str(j["id"]), str(j["name"])) for j in items or []]
    except (KeyError, TypeError, AttributeError) as e:
        raise CatalogError(f"malformed reference data: {e}") from e

    logger.info(f"reference data loaded: positions={len(positions)} parties={len(parties)}")
    return ReferenceCatalog(positions, parties, InMemoryJurisdictionDirectory(entries))
