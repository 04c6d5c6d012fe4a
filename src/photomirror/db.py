from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Iterator

from photomirror.util.time import now_iso

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  version INTEGER NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS country (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS city (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS asset (
  id TEXT PRIMARY KEY,
  asset_type INTEGER NOT NULL,
  asset_library INTEGER NOT NULL,
  created_at TEXT,
  updated_at TEXT,
  imported_at TEXT NOT NULL,
  is_favourite INTEGER NOT NULL DEFAULT 0,
  geo_lat REAL,
  geo_long REAL,
  aesthetic_score INTEGER NOT NULL DEFAULT 0,
  is_deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS file (
  id TEXT PRIMARY KEY,
  file_type INTEGER NOT NULL,
  original_file_name TEXT NOT NULL,
  file_size INTEGER NOT NULL,
  pixel_width INTEGER NOT NULL,
  pixel_height INTEGER NOT NULL,
  imported_at TEXT NOT NULL,
  imported_file_dir TEXT NOT NULL,
  geo_lat REAL,
  geo_long REAL,
  country_id INTEGER REFERENCES country(id),
  city_id INTEGER REFERENCES city(id),
  was_copied INTEGER NOT NULL DEFAULT 0,
  is_deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS asset_file (
  asset_id TEXT NOT NULL REFERENCES asset(id),
  file_id TEXT NOT NULL REFERENCES file(id),
  is_deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT,
  PRIMARY KEY (asset_id, file_id)
);
CREATE INDEX IF NOT EXISTS idx_asset_file_file ON asset_file(file_id);

CREATE TABLE IF NOT EXISTS folder (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  parent_id TEXT REFERENCES folder(id),
  is_deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_folder_parent ON folder(parent_id);

CREATE TABLE IF NOT EXISTS album (
  id TEXT PRIMARY KEY,
  album_type INTEGER NOT NULL,
  folder_id TEXT NOT NULL REFERENCES folder(id),
  name TEXT NOT NULL,
  asset_ids TEXT NOT NULL DEFAULT '[]',
  is_deleted INTEGER NOT NULL DEFAULT 0,
  deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_album_folder ON album(folder_id);

CREATE TABLE IF NOT EXISTS pending_removal (
  path TEXT PRIMARY KEY,
  queued_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS export_result_history (
  id TEXT PRIMARY KEY,
  created_at TEXT NOT NULL,
  export_result TEXT NOT NULL,
  asset_count INTEGER NOT NULL,
  file_count INTEGER NOT NULL,
  album_count INTEGER NOT NULL,
  folder_count INTEGER NOT NULL,
  file_size_total INTEGER NOT NULL,
  run_time REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_created ON export_result_history(created_at);
"""


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type IN ('table','view') AND name = ?",
        (name,),
    ).fetchone()
    return row is not None


def schema_version(conn: sqlite3.Connection) -> int:
    if not _table_exists(conn, "schema_version"):
        return 0
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row["version"]) if row else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO schema_version(id, version, updated_at)
        VALUES(1, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
          version=excluded.version,
          updated_at=excluded.updated_at
        """,
        (version, now_iso()),
    )


class Database:
    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            if schema_version(conn) < SCHEMA_VERSION:
                _set_schema_version(conn, SCHEMA_VERSION)
