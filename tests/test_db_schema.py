from pathlib import Path

import pytest

from photomirror.db import SCHEMA_VERSION, Database, schema_version
from photomirror.lookup import CachedLookupTable


REQUIRED_TABLES = {
    "schema_version",
    "country",
    "city",
    "asset",
    "file",
    "asset_file",
    "folder",
    "album",
    "pending_removal",
    "export_result_history",
}


def test_schema_tables_exist(tmp_path: Path) -> None:
    db = Database(tmp_path / "export.sqlite")
    db.initialize()
    with db.connect() as conn:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table','view')"
        ).fetchall()
        version = schema_version(conn)
    names = {r["name"] for r in rows}
    assert REQUIRED_TABLES.issubset(names)
    assert version == SCHEMA_VERSION


def test_initialize_is_repeatable(tmp_path: Path) -> None:
    db = Database(tmp_path / "nested" / "export.sqlite")
    db.initialize()
    with db.connect() as conn:
        conn.execute("INSERT INTO country(name) VALUES('Iceland')")
    db.initialize()
    with db.connect() as conn:
        names = [r["name"] for r in conn.execute("SELECT name FROM country").fetchall()]
        fk = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    assert names == ["Iceland"]
    assert fk == 1


def test_lookup_table_assigns_stable_ids(tmp_path: Path) -> None:
    db = Database(tmp_path / "export.sqlite")
    db.initialize()
    with db.connect() as conn:
        countries = CachedLookupTable(conn, "country")
        norway = countries.get_id("Norway")
        assert countries.get_id("Norway") == norway
        assert countries.get_id("Sweden") != norway
        assert countries.get_id(None) is None
        assert countries.get_id("") is None
        # a fresh instance reads the stored row back
        assert CachedLookupTable(conn, "country").get_id("Norway") == norway
        rows = conn.execute("SELECT COUNT(*) AS n FROM country").fetchone()

    assert rows["n"] == 2
    with pytest.raises(ValueError):
        CachedLookupTable(conn, "asset")
