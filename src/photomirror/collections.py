from __future__ import annotations

from collections import defaultdict, deque
import logging
import sqlite3

from photomirror.errors import IdentityResolutionError
from photomirror.expiry import ExpiryPolicy, Tombstones
from photomirror.models import Album, Folder
from photomirror.output_models import CollectionExportResult, EntityCounts
from photomirror.reconcile import Reconciler
from photomirror.source.base import SourceFolder, SourceLibrary
from photomirror.store import ALBUMS, FOLDERS
from photomirror.util.time import Clock, seconds_since

logger = logging.getLogger(__name__)


def top_down(folders: list[SourceFolder]) -> list[SourceFolder]:
    """Order a flat folder arena breadth-first from its parentless folders.

    Folders that cannot be reached (missing parent, cycles) come last in
    their original order, where they fail identity resolution.
    """
    children: dict[str, list[SourceFolder]] = defaultdict(list)
    for folder in folders:
        if folder.parent_id is not None:
            children[folder.parent_id].append(folder)

    ordered: list[SourceFolder] = []
    seen: set[str] = set()
    queue = deque(f for f in folders if f.parent_id is None)
    while queue:
        folder = queue.popleft()
        if folder.id in seen:
            continue
        seen.add(folder.id)
        ordered.append(folder)
        queue.extend(sorted(children.get(folder.id, []), key=lambda f: f.id))

    ordered.extend(f for f in folders if f.id not in seen)
    return ordered


def _upsert_or_skip(rec: Reconciler, entity: Folder | Album) -> None:
    try:
        rec.upsert(entity)
    except IdentityResolutionError as exc:
        logger.error("skipping %s: %s", rec.store.kind, exc)
        rec.skip()


def sync_collections(
    conn: sqlite3.Connection,
    source: SourceLibrary,
    clock: Clock,
    policy: ExpiryPolicy,
) -> CollectionExportResult:
    start = clock.now()
    source.authorise()
    logger.info("syncing folders and albums")

    folders: Reconciler = Reconciler(conn, FOLDERS, clock)
    albums: Reconciler = Reconciler(conn, ALBUMS, clock)
    folders.resolve_with("folder", folders)
    albums.resolve_with("folder", folders)

    for src in top_down(source.list_folders()):
        folder = Folder.from_source(src)
        if folder is None:
            logger.warning("skipping folder %s without a parent", src.id)
            folders.skip(src.id)
            continue
        _upsert_or_skip(folders, folder)

    for src in source.list_albums():
        album = Album.from_source(src)
        if album is None:
            logger.warning("skipping album %s of unsupported type %s", src.id, src.subtype.value)
            albums.skip(src.id)
            continue
        _upsert_or_skip(albums, album)

    for rec in (folders, albums):
        rec.finish_observing()
    albums.mark_missing()
    folders.mark_missing()

    albums.stats.deleted, folders.stats.deleted = Tombstones(conn, policy).purge_collections()

    result = CollectionExportResult(
        folder=EntityCounts.from_stats(folders.stats),
        album=EntityCounts.from_stats(albums.stats),
        run_time=seconds_since(clock, start),
    )
    logger.info(
        "collection pass: folders %s; albums %s in %.3fs",
        result.folder.model_dump(),
        result.album.model_dump(),
        result.run_time,
    )
    return result
