from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from typing import Any

import psycopg2

from ..models.assignment import OfficeholderAssignment
from ..models.import_row import JurisdictionType
from ..models.reference import JurisdictionRef, Party, Politician, Position, normalize_person_name
from ..services.catalog import CatalogError, JurisdictionNotFound, ReferenceCatalog
from ..services.registry import RegistryError

"""PostgreSQL-backed catalog, jurisdiction directory and officeholder registry.

Tables (schema owned by the web application):
- government_positions, political_parties
- regions, provinces, cities_municipalities, barangays, congressional_districts
- politicians, politician_position_history

All classes take a psycopg2 cursor on an autocommit connection (see
db.connection.db_cursor). psycopg2 errors are wrapped into CatalogError /
RegistryError so callers never see driver exceptions.
"""

__all__ = [
    "JURISDICTION_TABLES",
    "JURISDICTION_COLUMNS",
    "PostgresJurisdictionDirectory",
    "load_catalog_from_db",
    "PostgresRegistry",
]

logger = logging.getLogger(__name__)

JURISDICTION_TABLES: dict[JurisdictionType, str] = {
    JurisdictionType.REGION: "regions",
    JurisdictionType.PROVINCE: "provinces",
    JurisdictionType.CITY: "cities_municipalities",
    JurisdictionType.BARANGAY: "barangays",
    JurisdictionType.DISTRICT: "congressional_districts",
}
# politician_position_history の jurisdiction 列
JURISDICTION_COLUMNS: dict[JurisdictionType, str] = {
    JurisdictionType.REGION: "region_id",
    JurisdictionType.PROVINCE: "province_id",
    JurisdictionType.CITY: "city_id",
    JurisdictionType.BARANGAY: "barangay_id",
    JurisdictionType.DISTRICT: "district_id",
}


class PostgresJurisdictionDirectory:
    """Case-insensitive jurisdiction lookup against the location tables.

    A statement timeout bounds each lookup; there is no retry here.
    """

    def __init__(self, cursor: Any, timeout_ms: int = 5000) -> None:
        self.cursor = cursor
        self.timeout_ms = timeout_ms
        try:
            cursor.execute("SET statement_timeout = %s", (timeout_ms,))
        except psycopg2.Error as e:
            raise CatalogError(f"failed to set statement timeout: {e}") from e

    def lookup(self, jurisdiction_type: JurisdictionType, name: str) -> JurisdictionRef:
        table = JURISDICTION_TABLES.get(jurisdiction_type)
        if table is None:
            raise JurisdictionNotFound(jurisdiction_type, name)
        try:
            self.cursor.execute(
                f"SELECT id, name FROM {table} WHERE lower(name) = lower(%s) AND deleted_at IS NULL LIMIT 1",
                (name.strip(),),
            )
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            raise CatalogError(f"jurisdiction lookup failed ({table}): {e}") from e
        if row is None:
            raise JurisdictionNotFound(jurisdiction_type, name)
        return JurisdictionRef(type=jurisdiction_type, id=str(row[0]), name=row[1])


def load_catalog_from_db(cursor: Any, timeout_ms: int = 5000) -> ReferenceCatalog:
    """Load positions and active parties once for the run."""
    directory = PostgresJurisdictionDirectory(cursor, timeout_ms=timeout_ms)
    try:
        cursor.execute("SELECT id, name, level, branch FROM government_positions ORDER BY display_order, name")
        positions = [
            Position(id=str(r[0]), name=r[1], level=_text(r[2]), branch=_text(r[3]))
            for r in cursor.fetchall()
        ]
        cursor.execute(
            "SELECT id, name, abbreviation FROM political_parties "
            "WHERE deleted_at IS NULL AND is_active = TRUE ORDER BY name"
        )
        parties = [Party(id=str(r[0]), name=r[1], abbreviation=r[2]) for r in cursor.fetchall()]
    except psycopg2.Error as e:
        raise CatalogError(f"failed to load reference data: {e}") from e
    logger.info(f"reference data loaded from database: positions={len(positions)} parties={len(parties)}")
    return ReferenceCatalog(positions, parties, directory)


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


def _slugify(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "politician"
    return f"{base}-{uuid.uuid4().hex[:8]}"


_ASSIGNMENT_COLUMNS = (
    "ph.id, ph.politician_id, ph.position_id, ph.party_id, "
    "ph.region_id, ph.province_id, ph.city_id, ph.barangay_id, ph.district_id, ph.is_national, "
    "ph.term_start, ph.term_end, ph.is_current, ph.ended_reason"
)

_JURISDICTION_NAME_JOINS = (
    " LEFT JOIN regions r ON r.id = ph.region_id"
    " LEFT JOIN provinces p ON p.id = ph.province_id"
    " LEFT JOIN cities_municipalities c ON c.id = ph.city_id"
    " LEFT JOIN barangays b ON b.id = ph.barangay_id"
    " LEFT JOIN congressional_districts d ON d.id = ph.district_id"
)


def _row_to_assignment(row: Sequence[Any], jurisdiction_name: str | None = None) -> OfficeholderAssignment:
    (aid, politician_id, position_id, party_id, region_id, province_id, city_id, barangay_id, district_id,
     is_national, term_start, term_end, is_current, ended_reason) = row[:14]
    if is_national:
        jurisdiction = JurisdictionRef.national()
    else:
        ids = {
            JurisdictionType.REGION: region_id,
            JurisdictionType.PROVINCE: province_id,
            JurisdictionType.CITY: city_id,
            JurisdictionType.BARANGAY: barangay_id,
            JurisdictionType.DISTRICT: district_id,
        }
        jtype, jid = next(((t, i) for t, i in ids.items() if i is not None), (None, None))
        if jtype is None:
            raise RegistryError(f"assignment {aid} has no jurisdiction")
        jurisdiction = JurisdictionRef(type=jtype, id=str(jid), name=jurisdiction_name)
    return OfficeholderAssignment(
        id=str(aid),
        politician_id=str(politician_id),
        position_id=str(position_id),
        jurisdiction=jurisdiction,
        term_start=term_start,
        term_end=term_end,
        party_id=_text(party_id),
        is_current=bool(is_current),
        ended_reason=ended_reason,
    )


class PostgresRegistry:
    """Registry over politicians / politician_position_history.

    atomic() nests: the outermost block is a transaction (BEGIN/COMMIT), inner
    blocks are savepoints. get_current() takes a transaction-scoped advisory
    lock on the (position, jurisdiction) key, serializing concurrent runs
    that touch the same key.
    """

    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor
        self._depth = 0
        self._savepoint_seq = 0

    def _execute(self, query: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.cursor.execute(query, params)
        except psycopg2.Error as e:
            raise RegistryError(str(e).strip()) from e

    def _fetchone(self) -> Any:
        try:
            return self.cursor.fetchone()
        except psycopg2.Error as e:
            raise RegistryError(str(e).strip()) from e

    def _fetchall(self) -> list[Any]:
        try:
            return self.cursor.fetchall()
        except psycopg2.Error as e:
            raise RegistryError(str(e).strip()) from e

    # -- transaction ---------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth == 0:
            begin, commit, rollback = "BEGIN", "COMMIT", "ROLLBACK"
        else:
            self._savepoint_seq += 1
            name = f"officeholder_sp_{self._savepoint_seq}"
            begin, commit, rollback = f"SAVEPOINT {name}", f"RELEASE SAVEPOINT {name}", f"ROLLBACK TO SAVEPOINT {name}"
        self._execute(begin)
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            try:
                self.cursor.execute(rollback)
            except psycopg2.Error:
                logger.error(f"{rollback} failed", exc_info=True)
            raise
        else:
            self._depth -= 1
            self._execute(commit)

    # -- reads ---------------------------------------------------------

    def _jurisdiction_clause(self, jurisdiction: JurisdictionRef) -> tuple[str, tuple[Any, ...]]:
        if jurisdiction.is_national:
            return "ph.is_national = TRUE", ()
        column = JURISDICTION_COLUMNS[jurisdiction.type]
        return f"ph.is_national = FALSE AND ph.{column} = %s", (jurisdiction.id,)

    def get_current(self, position_id: str, jurisdiction: JurisdictionRef) -> OfficeholderAssignment | None:
        self._execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (f"{position_id}|{jurisdiction.key}",))
        clause, params = self._jurisdiction_clause(jurisdiction)
        self._execute(
            f"SELECT {_ASSIGNMENT_COLUMNS} FROM politician_position_history ph "
            f"WHERE ph.position_id = %s AND ph.is_current = TRUE AND {clause} LIMIT 1",
            (position_id, *params),
        )
        row = self._fetchone()
        return None if row is None else _row_to_assignment(row, jurisdiction.name)

    def get_politician(self, politician_id: str) -> Politician | None:
        self._execute(
            "SELECT id, name, birth_date, photo, short_bio FROM politicians WHERE id = %s AND deleted_at IS NULL",
            (politician_id,),
        )
        row = self._fetchone()
        if row is None:
            return None
        return Politician(id=str(row[0]), name=row[1], birth_date=row[2], photo_url=row[3], short_bio=row[4])

    def find_politician(self, name: str, birth_date: date | None) -> Politician | None:
        self._execute(
            "SELECT id, name, birth_date, photo, short_bio FROM politicians "
            "WHERE lower(regexp_replace(btrim(name), '\\s+', ' ', 'g')) = %s AND deleted_at IS NULL "
            "AND (birth_date IS NULL OR %s::date IS NULL OR birth_date = %s::date) "
            "ORDER BY (birth_date = %s::date) DESC NULLS LAST, id LIMIT 1",
            (normalize_person_name(name), birth_date, birth_date, birth_date),
        )
        row = self._fetchone()
        if row is None:
            return None
        return Politician(id=str(row[0]), name=row[1], birth_date=row[2], photo_url=row[3], short_bio=row[4])

    def list_current(self) -> list[OfficeholderAssignment]:
        self._execute(
            f"SELECT {_ASSIGNMENT_COLUMNS}, COALESCE(r.name, p.name, c.name, b.name, d.name) "
            f"FROM politician_position_history ph{_JURISDICTION_NAME_JOINS} "
            "WHERE ph.is_current = TRUE ORDER BY ph.position_id, ph.term_start"
        )
        return [_row_to_assignment(row, row[14]) for row in self._fetchall()]

    # -- writes --------------------------------------------------------

    def create_politician(
        self,
        name: str,
        birth_date: date | None = None,
        photo_url: str | None = None,
        short_bio: str | None = None,
    ) -> Politician:
        self._execute(
            "INSERT INTO politicians (name, slug, birth_date, photo, short_bio) "
            "VALUES (%s, %s, %s, %s, %s) RETURNING id",
            (name, _slugify(name), birth_date, photo_url, short_bio),
        )
        row = self._fetchone()
        return Politician(id=str(row[0]), name=name, birth_date=birth_date, photo_url=photo_url, short_bio=short_bio)

    def update_politician(
        self,
        politician_id: str,
        *,
        birth_date: date | None,
        photo_url: str | None,
        short_bio: str | None,
    ) -> None:
        self._execute(
            "UPDATE politicians SET birth_date = %s, photo = %s, short_bio = %s, updated_at = NOW() WHERE id = %s",
            (birth_date, photo_url, short_bio, politician_id),
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
        location_ids = {column: None for column in JURISDICTION_COLUMNS.values()}
        if not jurisdiction.is_national:
            location_ids[JURISDICTION_COLUMNS[jurisdiction.type]] = jurisdiction.id
        columns = ", ".join(location_ids)
        self._execute(
            "INSERT INTO politician_position_history "
            f"(politician_id, position_id, party_id, {columns}, is_national, term_start, term_end, is_current) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, TRUE) RETURNING id",
            (
                politician_id, position_id, party_id, *location_ids.values(),
                jurisdiction.is_national, term_start, term_end,
            ),
        )
        row = self._fetchone()
        return OfficeholderAssignment(
            id=str(row[0]),
            politician_id=politician_id,
            position_id=position_id,
            jurisdiction=jurisdiction,
            term_start=term_start,
            term_end=term_end,
            party_id=party_id,
        )

    def update_assignment(
        self,
        assignment_id: str,
        *,
        term_start: date,
        term_end: date | None,
        party_id: str | None,
    ) -> None:
        self._execute(
            "UPDATE politician_position_history SET term_start = %s, term_end = %s, party_id = %s, "
            "updated_at = NOW() WHERE id = %s",
            (term_start, term_end, party_id, assignment_id),
        )

    def close_assignment(self, assignment_id: str, term_end: date, reason: str) -> None:
        self._execute(
            "UPDATE politician_position_history SET is_current = FALSE, term_end = %s, ended_reason = %s, "
            "updated_at = NOW() WHERE id = %s AND is_current = TRUE",
            (term_end, reason, assignment_id),
        )
        if self.cursor.rowcount != 1:
            raise RegistryError(f"assignment not current or missing: {assignment_id}")
