from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import sqlite3
from typing import Any, Generic, Iterable, TypeVar

from photomirror.diff import DiffResult, record_differ
from photomirror.models import (
    PRIMARY_FILE_RANK,
    AlbumType,
    Album,
    Asset,
    AssetFile,
    AssetLibrary,
    AssetType,
    File,
    FileType,
    Folder,
    HistoryEntry,
)
from photomirror.paths import FILES_DIR
from photomirror.util.time import from_iso, to_iso

E = TypeVar("E")
K = TypeVar("K")


def _upsert_sql(table: str, columns: tuple[str, ...], key_columns: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" for _ in columns)
    updates = ",\n  ".join(f"{c}=excluded.{c}" for c in columns if c not in key_columns)
    return (
        f"INSERT INTO {table}({', '.join(columns)}) VALUES ({placeholders})\n"
        f"ON CONFLICT({', '.join(key_columns)}) DO UPDATE SET\n  {updates}"
    )


class EntityStore(Generic[E, K]):
    """Persisted side of one entity type.

    Subclasses name the table, its columns in row order and the conversions
    between rows and records. Writes do not commit; the reconciler commits
    once per entity decision.
    """

    kind: str = ""
    table: str = ""
    columns: tuple[str, ...] = ()
    key_columns: tuple[str, ...] = ("id",)

    def key(self, entity: E) -> K:
        return entity.id  # type: ignore[attr-defined]

    def to_row(self, entity: E) -> tuple[Any, ...]:
        raise NotImplementedError

    def from_row(self, row: sqlite3.Row) -> E:
        raise NotImplementedError

    def references(self, entity: E) -> Iterable[tuple[str, Any]]:
        return ()

    def _where(self) -> str:
        return " AND ".join(f"{c} = ?" for c in self.key_columns)

    def _key_args(self, key: K) -> tuple[Any, ...]:
        if len(self.key_columns) == 1:
            return (key,)
        return tuple(key)  # type: ignore[arg-type]

    def get(self, conn: sqlite3.Connection, key: K) -> E | None:
        row = conn.execute(
            f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE {self._where()}",
            self._key_args(key),
        ).fetchone()
        return self.from_row(row) if row is not None else None

    def save(self, conn: sqlite3.Connection, entity: E) -> None:
        conn.execute(_upsert_sql(self.table, self.columns, self.key_columns), self.to_row(entity))

    def insert(self, conn: sqlite3.Connection, entity: E) -> None:
        self.save(conn, entity)

    def update(self, conn: sqlite3.Connection, current: E, entity: E, now: datetime) -> None:
        self.save(conn, entity)

    def mark_deleted(self, conn: sqlite3.Connection, key: K, now: datetime) -> bool:
        cur = conn.execute(
            f"UPDATE {self.table} SET is_deleted = 1, deleted_at = ? WHERE {self._where()} AND is_deleted = 0",
            (to_iso(now), *self._key_args(key)),
        )
        return cur.rowcount > 0

    def live_ids(self, conn: sqlite3.Connection) -> set[K]:
        cols = ", ".join(self.key_columns)
        rows = conn.execute(f"SELECT {cols} FROM {self.table} WHERE is_deleted = 0").fetchall()
        if len(self.key_columns) == 1:
            return {row[0] for row in rows}
        return {tuple(row) for row in rows}  # type: ignore[misc]

    def merge(self, current: E, observed: E) -> E:
        return current.merge(observed)  # type: ignore[attr-defined]

    def diff(self, current: E, merged: E) -> DiffResult:
        return record_differ(type(current))(current, merged)

    def count_live(self, conn: sqlite3.Connection) -> int:
        row = conn.execute(f"SELECT COUNT(*) AS n FROM {self.table} WHERE is_deleted = 0").fetchone()
        return int(row["n"])


class AssetStore(EntityStore[Asset, str]):
    kind = "asset"
    table = "asset"
    columns = (
        "id",
        "asset_type",
        "asset_library",
        "created_at",
        "updated_at",
        "imported_at",
        "is_favourite",
        "geo_lat",
        "geo_long",
        "aesthetic_score",
        "is_deleted",
        "deleted_at",
    )

    def to_row(self, entity: Asset) -> tuple[Any, ...]:
        return (
            entity.id,
            int(entity.asset_type),
            int(entity.asset_library),
            to_iso(entity.created_at),
            to_iso(entity.updated_at),
            to_iso(entity.imported_at),
            int(entity.is_favourite),
            entity.geo_lat,
            entity.geo_long,
            entity.aesthetic_score,
            int(entity.is_deleted),
            to_iso(entity.deleted_at),
        )

    def from_row(self, row: sqlite3.Row) -> Asset:
        return Asset(
            id=str(row["id"]),
            asset_type=AssetType(int(row["asset_type"])),
            asset_library=AssetLibrary(int(row["asset_library"])),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
            imported_at=from_iso(row["imported_at"]),  # type: ignore[arg-type]
            is_favourite=bool(row["is_favourite"]),
            geo_lat=row["geo_lat"],
            geo_long=row["geo_long"],
            aesthetic_score=int(row["aesthetic_score"]),
            is_deleted=bool(row["is_deleted"]),
            deleted_at=from_iso(row["deleted_at"]),
        )


class FileStore(EntityStore[File, str]):
    kind = "file"
    table = "file"
    columns = (
        "id",
        "file_type",
        "original_file_name",
        "file_size",
        "pixel_width",
        "pixel_height",
        "imported_at",
        "imported_file_dir",
        "geo_lat",
        "geo_long",
        "country_id",
        "city_id",
        "was_copied",
        "is_deleted",
        "deleted_at",
    )

    def to_row(self, entity: File) -> tuple[Any, ...]:
        return (
            entity.id,
            int(entity.file_type),
            entity.original_file_name,
            entity.file_size,
            entity.pixel_width,
            entity.pixel_height,
            to_iso(entity.imported_at),
            entity.imported_file_dir,
            entity.geo_lat,
            entity.geo_long,
            entity.country_id,
            entity.city_id,
            int(entity.was_copied),
            int(entity.is_deleted),
            to_iso(entity.deleted_at),
        )

    def from_row(self, row: sqlite3.Row) -> File:
        return File(
            id=str(row["id"]),
            file_type=FileType(int(row["file_type"])),
            original_file_name=str(row["original_file_name"]),
            file_size=int(row["file_size"]),
            pixel_width=int(row["pixel_width"]),
            pixel_height=int(row["pixel_height"]),
            imported_at=from_iso(row["imported_at"]),  # type: ignore[arg-type]
            imported_file_dir=str(row["imported_file_dir"]),
            geo_lat=row["geo_lat"],
            geo_long=row["geo_long"],
            country_id=row["country_id"],
            city_id=row["city_id"],
            was_copied=bool(row["was_copied"]),
            is_deleted=bool(row["is_deleted"]),
            deleted_at=from_iso(row["deleted_at"]),
        )

    def update(self, conn: sqlite3.Connection, current: File, entity: File, now: datetime) -> None:
        if current.was_copied and current.imported_file_dir != entity.imported_file_dir:
            queue_removal(conn, copy_path(current), now)
        self.save(conn, entity)


class AssetFileStore(EntityStore[AssetFile, tuple[str, str]]):
    kind = "asset_file"
    table = "asset_file"
    columns = ("asset_id", "file_id", "is_deleted", "deleted_at")
    key_columns = ("asset_id", "file_id")

    def key(self, entity: AssetFile) -> tuple[str, str]:
        return (entity.asset_id, entity.file_id)

    def references(self, entity: AssetFile) -> Iterable[tuple[str, Any]]:
        return (("asset", entity.asset_id), ("file", entity.file_id))

    def to_row(self, entity: AssetFile) -> tuple[Any, ...]:
        return (entity.asset_id, entity.file_id, int(entity.is_deleted), to_iso(entity.deleted_at))

    def from_row(self, row: sqlite3.Row) -> AssetFile:
        return AssetFile(
            asset_id=str(row["asset_id"]),
            file_id=str(row["file_id"]),
            is_deleted=bool(row["is_deleted"]),
            deleted_at=from_iso(row["deleted_at"]),
        )


class FolderStore(EntityStore[Folder, str]):
    kind = "folder"
    table = "folder"
    columns = ("id", "name", "parent_id", "is_deleted", "deleted_at")

    def references(self, entity: Folder) -> Iterable[tuple[str, Any]]:
        if entity.parent_id is None:
            return ()
        return (("folder", entity.parent_id),)

    def to_row(self, entity: Folder) -> tuple[Any, ...]:
        return (entity.id, entity.name, entity.parent_id, int(entity.is_deleted), to_iso(entity.deleted_at))

    def from_row(self, row: sqlite3.Row) -> Folder:
        return Folder(
            id=str(row["id"]),
            name=str(row["name"]),
            parent_id=row["parent_id"],
            is_deleted=bool(row["is_deleted"]),
            deleted_at=from_iso(row["deleted_at"]),
        )


class AlbumStore(EntityStore[Album, str]):
    kind = "album"
    table = "album"
    columns = ("id", "album_type", "folder_id", "name", "asset_ids", "is_deleted", "deleted_at")

    def references(self, entity: Album) -> Iterable[tuple[str, Any]]:
        return (("folder", entity.folder_id),)

    def to_row(self, entity: Album) -> tuple[Any, ...]:
        return (
            entity.id,
            int(entity.album_type),
            entity.folder_id,
            entity.name,
            json.dumps(sorted(entity.asset_ids)),
            int(entity.is_deleted),
            to_iso(entity.deleted_at),
        )

    def from_row(self, row: sqlite3.Row) -> Album:
        return Album(
            id=str(row["id"]),
            album_type=AlbumType(int(row["album_type"])),
            folder_id=str(row["folder_id"]),
            name=str(row["name"]),
            asset_ids=frozenset(json.loads(row["asset_ids"] or "[]")),
            is_deleted=bool(row["is_deleted"]),
            deleted_at=from_iso(row["deleted_at"]),
        )


ASSETS = AssetStore()
FILES = FileStore()
ASSET_FILES = AssetFileStore()
FOLDERS = FolderStore()
ALBUMS = AlbumStore()

_FILE_COLUMNS = ", ".join(f"file.{c}" for c in FileStore.columns)


def copy_path(file: File) -> str:
    """Location of a file's copy relative to the export directory."""
    return f"{FILES_DIR}/{file.relative_path}"


@dataclass(slots=True)
class FileToCopy:
    file: File
    asset_id: str


@dataclass(slots=True)
class FileWithLocation:
    file: File
    created_at: datetime | None
    country: str
    city: str | None


@dataclass(slots=True)
class FileWithScore:
    file: File
    score: int


def files_to_copy(conn: sqlite3.Connection) -> list[FileToCopy]:
    rows = conn.execute(
        f"""
        SELECT {_FILE_COLUMNS}, links.asset_id AS link_asset_id
        FROM file
          JOIN (
            SELECT file_id, MIN(asset_id) AS asset_id
            FROM asset_file
            WHERE is_deleted = 0
            GROUP BY file_id
          ) AS links ON links.file_id = file.id
        WHERE file.was_copied = 0 AND file.is_deleted = 0
        ORDER BY file.id
        """
    ).fetchall()
    return [FileToCopy(FILES.from_row(r), str(r["link_asset_id"])) for r in rows]


def mark_copied(conn: sqlite3.Connection, file_id: str) -> None:
    conn.execute("UPDATE file SET was_copied = 1 WHERE id = ?", (file_id,))


def mark_file_removed(conn: sqlite3.Connection, file_id: str, now: datetime) -> None:
    ts = to_iso(now)
    conn.execute("UPDATE file SET is_deleted = 1, deleted_at = ? WHERE id = ? AND is_deleted = 0", (ts, file_id))
    conn.execute(
        "UPDATE asset_file SET is_deleted = 1, deleted_at = ? WHERE file_id = ? AND is_deleted = 0",
        (ts, file_id),
    )


def queue_removal(conn: sqlite3.Connection, path: str, now: datetime) -> None:
    conn.execute(
        "INSERT INTO pending_removal(path, queued_at) VALUES(?, ?) ON CONFLICT(path) DO NOTHING",
        (path, to_iso(now)),
    )


def pending_removals(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute("SELECT path FROM pending_removal ORDER BY queued_at, path").fetchall()
    return [str(r["path"]) for r in rows]


def clear_removal(conn: sqlite3.Connection, path: str) -> None:
    conn.execute("DELETE FROM pending_removal WHERE path = ?", (path,))


def live_folders(conn: sqlite3.Connection) -> list[Folder]:
    rows = conn.execute(
        f"SELECT {', '.join(FolderStore.columns)} FROM folder WHERE is_deleted = 0 ORDER BY name, id"
    ).fetchall()
    return [FOLDERS.from_row(r) for r in rows]


def live_albums(conn: sqlite3.Connection) -> list[Album]:
    rows = conn.execute(
        f"SELECT {', '.join(AlbumStore.columns)} FROM album WHERE is_deleted = 0 ORDER BY name, id"
    ).fetchall()
    return [ALBUMS.from_row(r) for r in rows]


def primary_files(conn: sqlite3.Connection) -> dict[str, File]:
    """Best copied file per live asset, by ``PRIMARY_FILE_RANK``."""
    rows = conn.execute(
        f"""
        SELECT {_FILE_COLUMNS}, asset_file.asset_id AS link_asset_id
        FROM file
          JOIN asset_file ON asset_file.file_id = file.id
          JOIN asset ON asset.id = asset_file.asset_id
        WHERE file.is_deleted = 0
          AND file.was_copied = 1
          AND asset_file.is_deleted = 0
          AND asset.is_deleted = 0
        """
    ).fetchall()
    out: dict[str, File] = {}
    for row in rows:
        candidate = FILES.from_row(row)
        asset_id = str(row["link_asset_id"])
        current = out.get(asset_id)
        if current is None or (PRIMARY_FILE_RANK[candidate.file_type], candidate.id) < (
            PRIMARY_FILE_RANK[current.file_type],
            current.id,
        ):
            out[asset_id] = candidate
    return out


def files_with_location(conn: sqlite3.Connection) -> list[FileWithLocation]:
    rows = conn.execute(
        f"""
        SELECT {_FILE_COLUMNS},
               links.created_at AS asset_created_at,
               country.name AS country_name,
               city.name AS city_name
        FROM file
          JOIN country ON country.id = file.country_id
          LEFT JOIN city ON city.id = file.city_id
          JOIN (
            SELECT asset_file.file_id, MIN(asset.created_at) AS created_at
            FROM asset_file
              JOIN asset ON asset.id = asset_file.asset_id
            WHERE asset_file.is_deleted = 0 AND asset.is_deleted = 0
            GROUP BY asset_file.file_id
          ) AS links ON links.file_id = file.id
        WHERE file.is_deleted = 0 AND file.was_copied = 1
        ORDER BY file.id
        """
    ).fetchall()
    return [
        FileWithLocation(
            file=FILES.from_row(r),
            created_at=from_iso(r["asset_created_at"]),
            country=str(r["country_name"]),
            city=r["city_name"],
        )
        for r in rows
    ]


def files_with_score(conn: sqlite3.Connection, threshold: int) -> list[FileWithScore]:
    rows = conn.execute(
        f"""
        SELECT {_FILE_COLUMNS}, links.score AS asset_score
        FROM file
          JOIN (
            SELECT asset_file.file_id, MAX(asset.aesthetic_score) AS score
            FROM asset_file
              JOIN asset ON asset.id = asset_file.asset_id
            WHERE asset_file.is_deleted = 0 AND asset.is_deleted = 0
            GROUP BY asset_file.file_id
          ) AS links ON links.file_id = file.id
        WHERE file.is_deleted = 0 AND file.was_copied = 1 AND links.score >= ?
        ORDER BY links.score DESC, file.id
        """,
        (threshold,),
    ).fetchall()
    return [FileWithScore(FILES.from_row(r), int(r["asset_score"])) for r in rows]


def live_counts(conn: sqlite3.Connection) -> dict[str, int]:
    return {
        "asset_count": ASSETS.count_live(conn),
        "file_count": FILES.count_live(conn),
        "album_count": ALBUMS.count_live(conn),
        "folder_count": FOLDERS.count_live(conn),
    }


def sum_file_sizes(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COALESCE(SUM(file_size), 0) AS total FROM file WHERE is_deleted = 0").fetchone()
    return int(row["total"])


def copied_count(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) AS n FROM file WHERE is_deleted = 0 AND was_copied = 1").fetchone()
    return int(row["n"])


def tombstone_counts(conn: sqlite3.Connection) -> dict[str, int]:
    out: dict[str, int] = {}
    for store in (ASSETS, FILES, ASSET_FILES, FOLDERS, ALBUMS):
        row = conn.execute(f"SELECT COUNT(*) AS n FROM {store.table} WHERE is_deleted = 1").fetchone()
        out[store.kind] = int(row["n"])
    return out


_HISTORY_COLUMNS = (
    "id",
    "created_at",
    "export_result",
    "asset_count",
    "file_count",
    "album_count",
    "folder_count",
    "file_size_total",
    "run_time",
)


def _history_from_row(row: sqlite3.Row) -> HistoryEntry:
    return HistoryEntry(
        id=str(row["id"]),
        created_at=from_iso(row["created_at"]),  # type: ignore[arg-type]
        export_result=str(row["export_result"]),
        asset_count=int(row["asset_count"]),
        file_count=int(row["file_count"]),
        album_count=int(row["album_count"]),
        folder_count=int(row["folder_count"]),
        file_size_total=int(row["file_size_total"]),
        run_time=float(row["run_time"]),
    )


def insert_history(conn: sqlite3.Connection, entry: HistoryEntry) -> None:
    conn.execute(
        f"INSERT INTO export_result_history({', '.join(_HISTORY_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            entry.id,
            to_iso(entry.created_at),
            entry.export_result,
            entry.asset_count,
            entry.file_count,
            entry.album_count,
            entry.folder_count,
            entry.file_size_total,
            entry.run_time,
        ),
    )
    conn.commit()


def latest_history(conn: sqlite3.Connection) -> HistoryEntry | None:
    row = conn.execute(
        f"SELECT {', '.join(_HISTORY_COLUMNS)} FROM export_result_history ORDER BY created_at DESC, rowid DESC LIMIT 1"
    ).fetchone()
    return _history_from_row(row) if row is not None else None


def list_history(conn: sqlite3.Connection, limit: int = 10, offset: int = 0) -> list[HistoryEntry]:
    rows = conn.execute(
        f"""
        SELECT {', '.join(_HISTORY_COLUMNS)}
        FROM export_result_history
        ORDER BY created_at DESC, rowid DESC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    ).fetchall()
    return [_history_from_row(r) for r in rows]
