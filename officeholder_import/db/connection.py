from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..config.loader import DatabaseConfig

"""psycopg2 connection handling.

Resolution order for connection parameters:
    1. DATABASE_URL / PGDSN (whole DSN)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the `database` section of the import config (fallback for anything unset)

The connection runs in autocommit mode; transaction boundaries are issued
explicitly (BEGIN / SAVEPOINT / COMMIT) by PostgresRegistry.atomic().
"""

__all__ = [
    "resolve_dsn",
    "db_cursor",
]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_cursor(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper; needs a live server)
    """Yield a cursor on a fresh autocommit connection; closes both on exit."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = True
    cur = None
    try:
        cur = conn.cursor()
        yield cur
    finally:
        if cur is not None:
            try:
                cur.close()
            except psycopg2.Error:
                logger.debug("cursor close failed", exc_info=True)
        conn.close()
