from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import sqlite3
from typing import Iterator

from photomirror.assets import sync_assets
from photomirror.collections import sync_collections
from photomirror.config import AppConfig
from photomirror.db import Database
from photomirror.errors import ConfigError, MirrorLockedError
from photomirror.expiry import ExpiryPolicy
from photomirror.fs import FileSystem, LocalFileSystem
from photomirror.ids import history_id
from photomirror.models import HistoryEntry
from photomirror.output_models import ExportResult, HistoryEntryOutput, StatusOutput
from photomirror.paths import LOCK_FILE
from photomirror.physical import FileSync, SymlinkSync
from photomirror.source import ManifestSource, SourceLibrary
from photomirror.store import (
    copied_count,
    insert_history,
    latest_history,
    list_history,
    live_counts,
    pending_removals,
    sum_file_sizes,
    tombstone_counts,
)
from photomirror.util.time import Clock, SystemClock, seconds_since, to_iso

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncOptions:
    assets: bool = True
    collections: bool = True
    files: bool = True
    symlinks: bool = True
    expiry_days: int | None = None

    @classmethod
    def from_config(cls, cfg: AppConfig) -> SyncOptions:
        return cls(
            assets=cfg.passes.assets,
            collections=cfg.passes.collections,
            files=cfg.passes.files,
            symlinks=cfg.passes.symlinks,
        )


@contextmanager
def mirror_lock(path: Path) -> Iterator[None]:
    """Exclusive run lock; a second holder gets ``MirrorLockedError``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError as exc:
        raise MirrorLockedError(str(path)) from exc
    try:
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
        finally:
            os.close(fd)
        yield
    finally:
        path.unlink(missing_ok=True)


def _history_output(entry: HistoryEntry) -> HistoryEntryOutput:
    return HistoryEntryOutput(
        id=entry.id,
        created_at=to_iso(entry.created_at) or "",
        export_result=ExportResult.model_validate_json(entry.export_result),
        asset_count=entry.asset_count,
        file_count=entry.file_count,
        album_count=entry.album_count,
        folder_count=entry.folder_count,
        file_size_total=entry.file_size_total,
        run_time=entry.run_time,
    )


class MirrorService:
    def __init__(
        self,
        cfg: AppConfig,
        source: SourceLibrary | None = None,
        clock: Clock | None = None,
        fs: FileSystem | None = None,
    ):
        self.cfg = cfg
        self.clock = clock or SystemClock()
        self.fs = fs or LocalFileSystem()
        self._source = source
        self.db = Database(cfg.database_path)
        self.db.initialize()

    @property
    def export_dir(self) -> Path:
        return self.cfg.export_dir

    @property
    def lock_path(self) -> Path:
        return self.export_dir / LOCK_FILE

    @property
    def source(self) -> SourceLibrary:
        if self._source is None:
            manifest = self.cfg.source.manifest
            if manifest is None:
                raise ConfigError("no source library configured; set source.manifest or pass --manifest")
            self._source = ManifestSource(manifest)
        return self._source

    def sync(self, options: SyncOptions | None = None) -> ExportResult:
        opts = options or SyncOptions.from_config(self.cfg)
        expiry_days = opts.expiry_days if opts.expiry_days is not None else self.cfg.expiry_days
        policy = ExpiryPolicy(expiry_days=expiry_days, clock=self.clock)
        self.export_dir.mkdir(parents=True, exist_ok=True)

        with mirror_lock(self.lock_path):
            start = self.clock.now()
            result = ExportResult()
            with self.db.connect() as conn:
                if opts.assets:
                    result.asset_export = sync_assets(conn, self.source, self.clock, policy)
                else:
                    logger.warning("asset pass disabled, skipping")

                if opts.collections:
                    result.collection_export = sync_collections(conn, self.source, self.clock, policy)
                else:
                    logger.warning("collection pass disabled, skipping")

                if opts.files:
                    sync = FileSync(conn, self.source, self.fs, self.export_dir, self.clock, workers=self.cfg.workers)
                    result.file_export = sync.run()
                else:
                    logger.warning("file pass disabled, skipping")

                if opts.symlinks:
                    links = SymlinkSync(conn, self.fs, self.export_dir, self.clock, self.cfg.score_threshold)
                    result.symlink_export = links.run()
                else:
                    logger.warning("symlink pass disabled, skipping")

                result.run_time = seconds_since(self.clock, start)
                self._record_history(conn, result)

        logger.info("sync complete in %.3fs", result.run_time)
        return result

    def _record_history(self, conn: sqlite3.Connection, result: ExportResult) -> None:
        counts = live_counts(conn)
        entry = HistoryEntry(
            id=history_id(),
            created_at=self.clock.now(),
            export_result=result.model_dump_json(),
            asset_count=counts["asset_count"],
            file_count=counts["file_count"],
            album_count=counts["album_count"],
            folder_count=counts["folder_count"],
            file_size_total=sum_file_sizes(conn),
            run_time=result.run_time,
        )
        insert_history(conn, entry)
        logger.debug("recorded run %s", entry.id)

    def last_run(self) -> HistoryEntryOutput | None:
        with self.db.connect() as conn:
            entry = latest_history(conn)
        return _history_output(entry) if entry is not None else None

    def history(self, limit: int = 10, offset: int = 0) -> list[HistoryEntryOutput]:
        with self.db.connect() as conn:
            entries = list_history(conn, limit=limit, offset=offset)
        return [_history_output(e) for e in entries]

    def status(self) -> StatusOutput:
        with self.db.connect() as conn:
            counts = live_counts(conn)
            latest = latest_history(conn)
            return StatusOutput(
                export_dir=str(self.export_dir),
                db_path=str(self.db.path),
                file_size_total=sum_file_sizes(conn),
                copied_files=copied_count(conn),
                pending_removals=len(pending_removals(conn)),
                tombstones=tombstone_counts(conn),
                last_run=to_iso(latest.created_at) if latest is not None else None,
                locked=self.lock_path.exists(),
                **counts,
            )
