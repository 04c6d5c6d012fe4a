from __future__ import annotations

import logging
import sqlite3

from photomirror.expiry import ExpiryPolicy, Tombstones
from photomirror.lookup import CachedLookupTable
from photomirror.models import Asset, AssetFile, File
from photomirror.output_models import AssetExportResult, EntityCounts
from photomirror.reconcile import Reconciler
from photomirror.source.base import SourceAsset, SourceLibrary
from photomirror.store import ASSET_FILES, ASSETS, FILES
from photomirror.util.time import Clock, seconds_since

logger = logging.getLogger(__name__)


def _sync_resources(
    src: SourceAsset,
    files: Reconciler,
    links: Reconciler,
    clock: Clock,
    country_id: int | None,
    city_id: int | None,
) -> None:
    seen: set[str] = set()
    for resource in src.resources:
        file = File.from_source(src, resource, clock.now(), country_id=country_id, city_id=city_id)
        if file is None:
            logger.debug(
                "asset %s: skipping %s resource %r",
                src.id,
                resource.resource_type.value,
                resource.original_file_name,
            )
            files.skip()
            continue
        if file.id in seen:
            logger.debug("asset %s: resource %r duplicates file %s", src.id, resource.original_file_name, file.id)
            continue
        seen.add(file.id)
        file_result = files.upsert(file, record=False)
        link_result = links.upsert(AssetFile(asset_id=src.id, file_id=file.id), record=False)
        files.stats.record(file_result.merge(link_result))


def sync_assets(
    conn: sqlite3.Connection,
    source: SourceLibrary,
    clock: Clock,
    policy: ExpiryPolicy,
) -> AssetExportResult:
    """Reconcile assets, their files and the links between them.

    The source is authorised before anything is written. Rows not seen in the
    fully drained asset sequence are tombstoned, then expired tombstones are
    purged.
    """
    start = clock.now()
    source.authorise()
    logger.info("syncing assets")

    assets: Reconciler = Reconciler(conn, ASSETS, clock)
    files: Reconciler = Reconciler(conn, FILES, clock)
    links: Reconciler = Reconciler(conn, ASSET_FILES, clock)
    links.resolve_with("asset", assets)
    links.resolve_with("file", files)
    countries = CachedLookupTable(conn, "country")
    cities = CachedLookupTable(conn, "city")

    for src in source.iter_assets():
        asset = Asset.from_source(src, clock.now())
        if asset is None:
            logger.warning("skipping asset %r with media type %s", src.id, src.media_type.value)
            assets.skip(src.id or None)
            continue
        assets.upsert(asset)
        _sync_resources(src, files, links, clock, countries.get_id(src.country), cities.get_id(src.city))

    for rec in (assets, files, links):
        rec.finish_observing()
    links.mark_missing()
    files.mark_missing()
    assets.mark_missing()

    assets.stats.deleted, files.stats.deleted = Tombstones(conn, policy).purge_assets()

    result = AssetExportResult(
        asset=EntityCounts.from_stats(assets.stats),
        file=EntityCounts.from_stats(files.stats),
        run_time=seconds_since(clock, start),
    )
    logger.info(
        "asset pass: assets %s; files %s in %.3fs",
        result.asset.model_dump(),
        result.file.model_dump(),
        result.run_time,
    )
    return result
