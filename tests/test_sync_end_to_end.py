from datetime import datetime, timezone
import json
from pathlib import Path

import pytest

from photomirror.config import AppConfig
from photomirror.errors import MirrorLockedError, SourceUnavailableError
from photomirror.paths import LOCK_FILE
from photomirror.service import MirrorService, SyncOptions
from photomirror.source import (
    CollectionSubtype,
    InMemorySource,
    MediaType,
    ResourceType,
    SourceAlbum,
    SourceAsset,
    SourceFolder,
    SourceResource,
)
from photomirror.util.time import FrozenClock

FILE_ID = "20240601103000-1024-img_0001.heic"
FILE_DIR = "2024/2024-06-united_kingdom-london"


def _cfg(tmp_path: Path) -> AppConfig:
    return AppConfig(export_dir=tmp_path / "export", db_path=tmp_path / "export.sqlite")


def _asset(asset_id: str = "a1", score: float = 0.9) -> SourceAsset:
    return SourceAsset(
        id=asset_id,
        media_type=MediaType.IMAGE,
        created_at=datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 6, 2, 8, 0, tzinfo=timezone.utc),
        geo_lat=51.5072,
        geo_long=-0.1276,
        country="United Kingdom",
        city="London",
        aesthetic_score=score,
        resources=(SourceResource(ResourceType.PHOTO, "IMG_0001.HEIC", 1024, 4032, 3024),),
    )


def test_four_run_lifecycle(tmp_path: Path) -> None:
    clock = FrozenClock()
    source = InMemorySource(assets=[_asset()])
    svc = MirrorService(_cfg(tmp_path), source=source, clock=clock)
    copy = tmp_path / "export" / "files" / FILE_DIR / FILE_ID

    first = svc.sync()
    assert first.asset_export.asset.inserted == 1
    assert first.asset_export.file.inserted == 1
    assert first.collection_export.folder.inserted == 1
    assert first.file_export.copied == 1
    assert copy.read_bytes() == b"a1:IMG_0001.HEIC"
    assert first.symlink_export.created == 2
    assert (tmp_path / "export" / "top-shots" / f"900000000-{FILE_ID}").is_symlink()
    location_link = tmp_path / "export" / "locations" / "united_kingdom" / "london" / "2024" / "2024-06" / FILE_ID
    assert location_link.resolve() == copy.resolve()

    clock.advance(hours=1)
    second = svc.sync()
    assert second.asset_export.asset.unchanged == 1
    assert second.asset_export.file.unchanged == 1
    assert second.asset_export.asset.inserted == 0
    assert second.file_export.copied == 0

    clock.advance(hours=1)
    source.remove_asset("a1")
    third = svc.sync()
    assert third.asset_export.asset.marked_for_deletion == 1
    assert third.asset_export.file.marked_for_deletion == 1
    assert third.asset_export.asset.deleted == 0
    assert copy.exists()
    assert third.symlink_export.created == 0

    clock.advance(days=31)
    fourth = svc.sync()
    assert fourth.asset_export.asset.deleted == 1
    assert fourth.asset_export.file.deleted == 1
    assert fourth.file_export.deleted == 1
    assert not copy.exists()

    status = svc.status()
    assert status.asset_count == 0
    assert status.file_count == 0
    assert status.pending_removals == 0
    assert status.tombstones["asset"] == 0
    assert not status.locked


def test_history_is_recorded_per_run(tmp_path: Path) -> None:
    clock = FrozenClock()
    svc = MirrorService(_cfg(tmp_path), source=InMemorySource(assets=[_asset()]), clock=clock)

    assert svc.last_run() is None
    svc.sync()
    clock.advance(minutes=5)
    svc.sync()

    entries = svc.history(limit=5)
    assert len(entries) == 2
    assert entries[0].created_at > entries[1].created_at
    latest = svc.last_run()
    assert latest is not None
    assert latest.id == entries[0].id
    assert latest.asset_count == 1
    assert latest.file_count == 1
    assert latest.folder_count == 1
    assert latest.file_size_total == 1024
    assert latest.export_result.asset_export.asset.unchanged == 1
    json.dumps(latest.model_dump())


def test_reappearing_asset_is_an_update(tmp_path: Path) -> None:
    clock = FrozenClock()
    source = InMemorySource(assets=[_asset()])
    svc = MirrorService(_cfg(tmp_path), source=source, clock=clock)
    svc.sync()

    source.remove_asset("a1")
    svc.sync()
    source.add_asset(_asset())
    result = svc.sync()

    assert result.asset_export.asset.updated == 1
    assert result.asset_export.asset.inserted == 0
    assert result.asset_export.file.updated == 1
    assert svc.status().asset_count == 1


def test_album_links_follow_folder_tree(tmp_path: Path) -> None:
    clock = FrozenClock()
    source = InMemorySource(
        assets=[_asset()],
        folders=[SourceFolder("f1", "Travel", "root")],
        albums=[
            SourceAlbum("al1", "Summer in London", folder_id="f1", asset_ids=("a1", "gone")),
            SourceAlbum("al2", "Family", subtype=CollectionSubtype.CLOUD_SHARED, folder_id="f1", asset_ids=("a1",)),
            SourceAlbum("al3", "Recents", subtype=CollectionSubtype.SMART, asset_ids=("a1",)),
        ],
    )
    svc = MirrorService(_cfg(tmp_path), source=source, clock=clock)

    result = svc.sync()

    assert result.collection_export.album.inserted == 2
    assert result.collection_export.album.skipped == 1
    albums = tmp_path / "export" / "albums"
    assert (albums / "travel" / "summer_in_london" / FILE_ID).is_symlink()
    # shared albums always hang off the root
    assert (albums / "family" / FILE_ID).is_symlink()
    assert not (albums / "recents").exists()


def test_disabled_passes_are_skipped(tmp_path: Path) -> None:
    svc = MirrorService(_cfg(tmp_path), source=InMemorySource(assets=[_asset()]), clock=FrozenClock())

    result = svc.sync(SyncOptions(files=False, symlinks=False))

    assert result.asset_export.asset.inserted == 1
    assert result.file_export.copied == 0
    assert svc.status().copied_files == 0
    assert not (tmp_path / "export" / "albums").exists()


def test_unavailable_source_aborts_before_writing(tmp_path: Path) -> None:
    source = InMemorySource(assets=[_asset()])
    source.available = False
    svc = MirrorService(_cfg(tmp_path), source=source, clock=FrozenClock())

    with pytest.raises(SourceUnavailableError):
        svc.sync()
    assert svc.status().asset_count == 0
    assert svc.last_run() is None
    assert not svc.lock_path.exists()


def test_second_run_is_refused_while_locked(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    svc = MirrorService(cfg, source=InMemorySource(), clock=FrozenClock())
    cfg.export_dir.mkdir(parents=True)
    (cfg.export_dir / LOCK_FILE).write_text("1234")

    with pytest.raises(MirrorLockedError):
        svc.sync()
    assert svc.status().locked


def test_unsupported_media_type_is_skipped_and_kept(tmp_path: Path) -> None:
    clock = FrozenClock()
    source = InMemorySource(assets=[_asset(), SourceAsset(id="a2", media_type=MediaType.VIDEO)])
    svc = MirrorService(_cfg(tmp_path), source=source, clock=clock)
    first = svc.sync()
    assert first.asset_export.asset.inserted == 2

    clock.advance(hours=1)
    source.add_asset(SourceAsset(id="a2", media_type=MediaType.UNKNOWN))
    second = svc.sync()

    assert second.asset_export.asset.skipped == 1
    assert second.asset_export.asset.unchanged == 1
    assert second.asset_export.asset.marked_for_deletion == 0
    assert svc.status().asset_count == 2
    assert svc.status().tombstones["asset"] == 0


def test_unknown_asset_is_never_inserted(tmp_path: Path) -> None:
    unknown = SourceAsset(
        id="a9",
        media_type=MediaType.UNKNOWN,
        resources=(SourceResource(ResourceType.PHOTO, "IMG_9.HEIC", 10),),
    )
    svc = MirrorService(_cfg(tmp_path), source=InMemorySource(assets=[_asset(), unknown]), clock=FrozenClock())

    result = svc.sync()

    assert result.asset_export.asset.inserted == 1
    assert result.asset_export.asset.skipped == 1
    assert result.asset_export.file.inserted == 1
    assert svc.status().asset_count == 1
