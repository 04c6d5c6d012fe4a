from __future__ import annotations

from collections import defaultdict
import logging
from pathlib import Path
import sqlite3

from photomirror.errors import MirrorError
from photomirror.fs import FileSystem
from photomirror.models import ROOT_FOLDER_ID, Album, File, Folder
from photomirror.output_models import SymlinkExportResult
from photomirror.paths import ALBUMS_DIR, FILES_DIR, LOCATIONS_DIR, TOP_SHOTS_DIR, normalise_for_path
from photomirror.store import files_with_location, files_with_score, live_albums, live_folders, primary_files
from photomirror.util.time import Clock, seconds_since, year_month_str, year_str

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 850_000_000


class SymlinkSync:
    """Rebuilds the derived link trees from the mirror.

    ``albums/`` mirrors the live folder and album hierarchy, ``locations/``
    groups copied files by country, city and month, and ``top-shots/`` holds
    the files of high-scoring assets. All three are removed and regenerated on
    every run.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        fs: FileSystem,
        export_dir: Path,
        clock: Clock,
        score_threshold: int = DEFAULT_SCORE_THRESHOLD,
    ):
        self.conn = conn
        self.fs = fs
        self.export_dir = export_dir.resolve()
        self.files_dir = self.export_dir / FILES_DIR
        self.albums_dir = self.export_dir / ALBUMS_DIR
        self.locations_dir = self.export_dir / LOCATIONS_DIR
        self.top_shots_dir = self.export_dir / TOP_SHOTS_DIR
        self.clock = clock
        self.score_threshold = score_threshold

    def run(self) -> SymlinkExportResult:
        start = self.clock.now()
        result = SymlinkExportResult()
        if self._reset(self.albums_dir, result):
            self._albums(result)
        if self._reset(self.locations_dir, result):
            self._locations(result)
        if self._reset(self.top_shots_dir, result):
            self._top_shots(result)

        result.run_time = seconds_since(self.clock, start)
        logger.info("symlink pass: %d created, %d failed in %.3fs", result.created, result.failed, result.run_time)
        return result

    def _source_path(self, file: File) -> Path:
        return self.files_dir / file.imported_file_dir / file.id

    def _link(self, file: File, dest: Path, result: SymlinkExportResult) -> None:
        try:
            self.fs.create_symlink(self._source_path(file), dest)
        except (OSError, MirrorError) as exc:
            result.failed += 1
            logger.error("could not link %s: %s", dest, exc)
            return
        result.created += 1

    def _reset(self, tree: Path, result: SymlinkExportResult) -> bool:
        try:
            self.fs.remove(tree)
            self.fs.create_directory(tree)
        except (OSError, MirrorError) as exc:
            result.failed += 1
            logger.error("could not reset %s, skipping it: %s", tree, exc)
            return False
        return True

    def _mkdir(self, path: Path, result: SymlinkExportResult) -> bool:
        try:
            self.fs.create_directory(path)
        except (OSError, MirrorError) as exc:
            result.failed += 1
            logger.error("could not create %s: %s", path, exc)
            return False
        return True

    def _albums(self, result: SymlinkExportResult) -> None:
        children: dict[str, list[Folder]] = defaultdict(list)
        for folder in live_folders(self.conn):
            if folder.parent_id is not None:
                children[folder.parent_id].append(folder)
        albums_by_folder: dict[str, list[Album]] = defaultdict(list)
        for album in live_albums(self.conn):
            albums_by_folder[album.folder_id].append(album)
        primary = primary_files(self.conn)

        # Iterative walk so deep hierarchies cannot exhaust the stack.
        stack: list[tuple[str, Path]] = [(ROOT_FOLDER_ID, self.albums_dir)]
        visited: set[str] = set()
        while stack:
            folder_id, folder_dir = stack.pop()
            if folder_id in visited:
                continue
            visited.add(folder_id)

            for album in albums_by_folder.get(folder_id, []):
                name = normalise_for_path(album.name)
                if not name:
                    logger.warning("album %s has no path-safe name %r, skipping", album.id, album.name)
                    continue
                album_dir = folder_dir / name
                if not self._mkdir(album_dir, result):
                    continue
                for asset_id in sorted(album.asset_ids):
                    file = primary.get(asset_id)
                    if file is not None:
                        self._link(file, album_dir / file.id, result)

            for sub in children.get(folder_id, []):
                name = normalise_for_path(sub.name)
                if not name:
                    logger.warning("folder %s has no path-safe name %r, skipping", sub.id, sub.name)
                    continue
                sub_dir = folder_dir / name
                if self._mkdir(sub_dir, result):
                    stack.append((sub.id, sub_dir))

    def _locations(self, result: SymlinkExportResult) -> None:
        for item in files_with_location(self.conn):
            country = normalise_for_path(item.country)
            if not country:
                logger.warning("file %s: country %r has no path-safe name, skipping", item.file.id, item.country)
                continue
            city = normalise_for_path(item.city or "unknown") or "unknown"
            target_dir = (
                self.locations_dir / country / city / year_str(item.created_at) / year_month_str(item.created_at)
            )
            if self._mkdir(target_dir, result):
                self._link(item.file, target_dir / item.file.id, result)

    def _top_shots(self, result: SymlinkExportResult) -> None:
        for item in files_with_score(self.conn, self.score_threshold):
            self._link(item.file, self.top_shots_dir / f"{item.score}-{item.file.id}", result)
