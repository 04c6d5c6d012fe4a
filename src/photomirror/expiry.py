from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import sqlite3

from photomirror.store import FILES, copy_path, queue_removal
from photomirror.util.time import Clock, SystemClock, to_iso

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 30


@dataclass(slots=True)
class ExpiryPolicy:
    expiry_days: int = DEFAULT_EXPIRY_DAYS
    clock: Clock = field(default_factory=SystemClock)

    def __post_init__(self) -> None:
        if self.expiry_days < 0:
            raise ValueError("expiry_days must not be negative")

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.expiry_days)

    def cutoff(self) -> datetime:
        return self.clock.now() - self.window

    def is_expired(self, deleted_at: datetime | None) -> bool:
        if deleted_at is None:
            return False
        return deleted_at <= self.cutoff()


class Tombstones:
    """Hard-deletes soft-deleted rows whose expiry window has passed.

    Live rows are never touched. Rows still referenced by a live row are
    left for a later run.
    """

    def __init__(self, conn: sqlite3.Connection, policy: ExpiryPolicy):
        self.conn = conn
        self.policy = policy

    def purge_assets(self) -> tuple[int, int]:
        """Purge expired assets, links and files. Returns (assets, files)."""
        cutoff = to_iso(self.policy.cutoff())
        conn = self.conn

        links_of_assets = conn.execute(
            """
            DELETE FROM asset_file
            WHERE asset_id IN (
              SELECT id FROM asset WHERE is_deleted = 1 AND deleted_at <= ?
            )
            """,
            (cutoff,),
        ).rowcount
        assets = conn.execute(
            "DELETE FROM asset WHERE is_deleted = 1 AND deleted_at <= ?",
            (cutoff,),
        ).rowcount
        links = conn.execute(
            "DELETE FROM asset_file WHERE is_deleted = 1 AND deleted_at <= ?",
            (cutoff,),
        ).rowcount
        conn.commit()

        rows = conn.execute(
            f"""
            SELECT {', '.join(FILES.columns)}
            FROM file
            WHERE is_deleted = 1
              AND deleted_at <= ?
              AND NOT EXISTS (
                SELECT 1 FROM asset_file
                WHERE asset_file.file_id = file.id AND asset_file.is_deleted = 0
              )
            ORDER BY id
            """,
            (cutoff,),
        ).fetchall()
        files = 0
        now = self.policy.clock.now()
        for row in rows:
            file = FILES.from_row(row)
            conn.execute("DELETE FROM asset_file WHERE file_id = ?", (file.id,))
            if file.was_copied:
                queue_removal(conn, copy_path(file), now)
            conn.execute("DELETE FROM file WHERE id = ?", (file.id,))
            conn.commit()
            files += 1
            logger.debug("file %s expired", file.id)

        if assets or files or links or links_of_assets:
            logger.info(
                "purged %d assets, %d files and %d links deleted before %s",
                assets,
                files,
                links + links_of_assets,
                cutoff,
            )
        return assets, files

    def purge_collections(self) -> tuple[int, int]:
        """Purge expired albums, then folders from the leaves up. Returns (albums, folders)."""
        cutoff = to_iso(self.policy.cutoff())
        conn = self.conn
        albums = conn.execute(
            "DELETE FROM album WHERE is_deleted = 1 AND deleted_at <= ?",
            (cutoff,),
        ).rowcount
        conn.commit()

        folders = 0
        while True:
            removed = conn.execute(
                """
                DELETE FROM folder
                WHERE is_deleted = 1
                  AND deleted_at <= ?
                  AND NOT EXISTS (SELECT 1 FROM folder AS child WHERE child.parent_id = folder.id)
                  AND NOT EXISTS (SELECT 1 FROM album WHERE album.folder_id = folder.id)
                """,
                (cutoff,),
            ).rowcount
            conn.commit()
            if removed <= 0:
                break
            folders += removed

        if albums or folders:
            logger.info("purged %d albums and %d folders deleted before %s", albums, folders, cutoff)
        return albums, folders
