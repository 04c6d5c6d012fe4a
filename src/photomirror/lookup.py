from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

LOOKUP_TABLES = ("country", "city")


class CachedLookupTable:
    """Name -> id access to an append-only lookup table, cached per instance."""

    def __init__(self, conn: sqlite3.Connection, table: str):
        if table not in LOOKUP_TABLES:
            raise ValueError(f"unknown lookup table: {table}")
        self.conn = conn
        self.table = table
        self._cache: dict[str, int] = {}

    def get_id(self, name: str | None) -> int | None:
        if not name:
            return None
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        row = self.conn.execute(f"SELECT id FROM {self.table} WHERE name = ?", (name,)).fetchone()
        if row is None:
            cur = self.conn.execute(f"INSERT INTO {self.table}(name) VALUES(?)", (name,))
            self.conn.commit()
            value = int(cur.lastrowid)
            logger.debug("added %s %r as %d", self.table, name, value)
        else:
            value = int(row["id"])
        self._cache[name] = value
        return value
