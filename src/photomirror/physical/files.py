from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
import sqlite3

from photomirror.errors import MirrorError, SourceUnavailableError
from photomirror.fs import CreateResult, FileSystem
from photomirror.output_models import FileExportResult
from photomirror.paths import FILES_DIR
from photomirror.source.base import CopyResult, SourceLibrary
from photomirror.store import (
    FileToCopy,
    clear_removal,
    files_to_copy,
    mark_copied,
    mark_file_removed,
    pending_removals,
)
from photomirror.util.time import Clock, seconds_since

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


class FileSync:
    """Copies missing files out of the source and removes queued stale copies.

    Copies run on a thread pool; every database write happens on the calling
    thread as results come back.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        source: SourceLibrary,
        fs: FileSystem,
        export_dir: Path,
        clock: Clock,
        workers: int = DEFAULT_WORKERS,
    ):
        self.conn = conn
        self.source = source
        self.fs = fs
        self.export_dir = export_dir
        self.files_dir = export_dir / FILES_DIR
        self.clock = clock
        self.workers = max(1, workers)

    def run(self) -> FileExportResult:
        start = self.clock.now()
        result = FileExportResult()
        self._copy(result)
        self._drain_removals(result)
        result.run_time = seconds_since(self.clock, start)
        logger.info(
            "file pass: %d copied, %d removed upstream, %d deleted, %d failed in %.3fs",
            result.copied,
            result.removed,
            result.deleted,
            result.failed,
            result.run_time,
        )
        return result

    def _copy_one(self, item: FileToCopy) -> tuple[FileToCopy, CopyResult | None, Exception | None]:
        dest_dir = self.files_dir / item.file.imported_file_dir
        try:
            if self.fs.create_directory(dest_dir) is CreateResult.SUCCESS:
                logger.debug("created %s", dest_dir)
            outcome = self.source.copy_resource(
                item.asset_id,
                item.file.file_type.resource_type,
                item.file.original_file_name,
                dest_dir / item.file.id,
            )
        except SourceUnavailableError:
            raise
        except (OSError, MirrorError) as exc:
            return item, None, exc
        return item, outcome, None

    def _copy(self, result: FileExportResult) -> None:
        pending = files_to_copy(self.conn)
        if not pending:
            logger.info("no files to copy")
            return
        self.source.authorise()
        logger.info("copying %d files with %d workers", len(pending), self.workers)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for item, outcome, error in pool.map(self._copy_one, pending):
                file_id = item.file.id
                if error is not None:
                    result.failed += 1
                    logger.error("copy of %s failed: %s", file_id, error)
                    continue
                if outcome is CopyResult.REMOVED:
                    mark_file_removed(self.conn, file_id, self.clock.now())
                    self.conn.commit()
                    result.removed += 1
                    logger.debug("%s no longer upstream, marked deleted", file_id)
                    continue
                if outcome is CopyResult.EXISTS:
                    logger.warning("%s was already on disk but not marked copied", file_id)
                mark_copied(self.conn, file_id)
                self.conn.commit()
                result.copied += 1

    def _drain_removals(self, result: FileExportResult) -> None:
        for rel_path in pending_removals(self.conn):
            target = self.export_dir / rel_path
            try:
                removed = self.fs.remove(target)
            except (OSError, MirrorError) as exc:
                result.failed += 1
                logger.error("could not remove %s: %s", target, exc)
                continue
            clear_removal(self.conn, rel_path)
            self.conn.commit()
            result.deleted += 1
            if removed is CreateResult.NOT_EXISTS:
                logger.debug("%s already gone", target)
            else:
                logger.debug("removed %s", target)
