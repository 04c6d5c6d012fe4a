from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import os
from pathlib import Path

import pytest

from photomirror.assets import sync_assets
from photomirror.collections import sync_collections
from photomirror.db import Database
from photomirror.errors import FileExistsAtDirectoryPathError
from photomirror.expiry import ExpiryPolicy
from photomirror.fs import CreateResult, LocalFileSystem
from photomirror.physical import FileSync, SymlinkSync
from photomirror.source import InMemorySource, MediaType, ResourceType, SourceAlbum, SourceAsset, SourceResource
from photomirror.util.time import FrozenClock


def _edited_asset() -> SourceAsset:
    return SourceAsset(
        id="a1",
        media_type=MediaType.IMAGE,
        created_at=datetime(2021, 12, 24, 20, 0, tzinfo=timezone.utc),
        country="Germany",
        aesthetic_score=0.5,
        resources=(
            SourceResource(ResourceType.PHOTO, "IMG_7.HEIC", 300),
            SourceResource(ResourceType.FULL_SIZE_PHOTO, "IMG_7.HEIC", 310),
            SourceResource(ResourceType.PAIRED_VIDEO, "IMG_7.MOV", 900),
        ),
    )


def _export(tmp_path: Path, source: InMemorySource) -> tuple[Database, FrozenClock, Path]:
    db = Database(tmp_path / "export.sqlite")
    db.initialize()
    clock = FrozenClock()
    policy = ExpiryPolicy(clock=clock)
    export = tmp_path / "export"
    with db.connect() as conn:
        sync_assets(conn, source, clock, policy)
        sync_collections(conn, source, clock, policy)
        FileSync(conn, source, LocalFileSystem(), export, clock).run()
    return db, clock, export


def test_album_links_use_the_primary_file(tmp_path: Path) -> None:
    source = InMemorySource(
        assets=[_edited_asset()],
        albums=[SourceAlbum("al1", "Christmas", asset_ids=("a1",))],
    )
    db, clock, export = _export(tmp_path, source)

    with db.connect() as conn:
        result = SymlinkSync(conn, LocalFileSystem(), export, clock).run()

    album_dir = export / "albums" / "christmas"
    assert sorted(p.name for p in album_dir.iterdir()) == ["20211224200000-310-img_7_edited.heic"]
    # every copied file with a country is grouped by location
    month_dir = export / "locations" / "germany" / "unknown" / "2021" / "2021-12"
    assert len(list(month_dir.iterdir())) == 3
    assert not any((export / "top-shots").iterdir())
    assert result.created == 4
    assert result.failed == 0


def test_trees_are_rebuilt_each_run(tmp_path: Path) -> None:
    source = InMemorySource(
        assets=[_edited_asset()],
        albums=[SourceAlbum("al1", "Christmas", asset_ids=("a1",))],
    )
    db, clock, export = _export(tmp_path, source)
    fs = LocalFileSystem()

    with db.connect() as conn:
        SymlinkSync(conn, fs, export, clock).run()
        stale = export / "albums" / "renamed_away"
        stale.mkdir()
        second = SymlinkSync(conn, fs, export, clock, score_threshold=500_000_000).run()

    assert not stale.exists()
    assert second.created == 4 + 3
    top = sorted(p.name for p in (export / "top-shots").iterdir())
    assert top[0] == "500000000-20211224200000-300-img_7.heic"


def test_create_symlink_is_idempotent(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    target = tmp_path / "a.jpg"
    other = tmp_path / "b.jpg"
    target.write_bytes(b"a")
    other.write_bytes(b"b")
    link = tmp_path / "links" / "a.jpg"

    assert fs.create_symlink(target, link) is CreateResult.SUCCESS
    assert fs.create_symlink(target, link) is CreateResult.EXISTS
    assert fs.create_symlink(other, link) is CreateResult.SUCCESS
    assert Path(os.readlink(link)) == other

    with pytest.raises(FileExistsError):
        fs.create_symlink(target, other)


def test_directory_and_remove_results(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    blocker = tmp_path / "blocker"
    blocker.write_text("x")

    assert fs.create_directory(tmp_path / "d" / "e") is CreateResult.SUCCESS
    assert fs.create_directory(tmp_path / "d" / "e") is CreateResult.EXISTS
    with pytest.raises(FileExistsAtDirectoryPathError):
        fs.create_directory(blocker)

    assert fs.remove(tmp_path / "d") is CreateResult.SUCCESS
    assert fs.remove(tmp_path / "d") is CreateResult.NOT_EXISTS
    assert not fs.path_exists(tmp_path / "d")


def test_create_directory_tolerates_concurrent_callers(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    paths = [tmp_path / "files" / f"2024-{i:02d}" / "batch" for i in range(40)]
    requests = [p for p in paths for _ in range(16)]

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(fs.create_directory, requests))

    successes = Counter(p for p, r in zip(requests, results) if r is CreateResult.SUCCESS)
    assert all(p.is_dir() for p in paths)
    assert all(successes[p] == 1 for p in paths)
    assert set(results) <= {CreateResult.SUCCESS, CreateResult.EXISTS}


class _FailingFileSystem(LocalFileSystem):
    def __init__(self, deny_dir: str | None = None, deny_links_under: str | None = None):
        self.deny_dir = deny_dir
        self.deny_links_under = deny_links_under

    def create_directory(self, path: Path) -> CreateResult:
        if path.name == self.deny_dir:
            raise PermissionError(f"permission denied: {path}")
        return super().create_directory(path)

    def create_symlink(self, src: Path, dest: Path) -> CreateResult:
        if self.deny_links_under in dest.parts:
            raise OSError(f"cannot link {dest}")
        return super().create_symlink(src, dest)


def test_tree_that_cannot_be_reset_is_counted_and_skipped(tmp_path: Path) -> None:
    source = InMemorySource(
        assets=[_edited_asset()],
        albums=[SourceAlbum("al1", "Christmas", asset_ids=("a1",))],
    )
    db, clock, export = _export(tmp_path, source)

    with db.connect() as conn:
        result = SymlinkSync(conn, _FailingFileSystem(deny_dir="albums"), export, clock).run()

    assert result.failed == 1
    assert result.created == 3
    assert not (export / "albums").exists()
    month_dir = export / "locations" / "germany" / "unknown" / "2021" / "2021-12"
    assert len(list(month_dir.iterdir())) == 3


def test_link_failures_are_counted_and_the_pass_continues(tmp_path: Path) -> None:
    source = InMemorySource(
        assets=[_edited_asset()],
        albums=[SourceAlbum("al1", "Christmas", asset_ids=("a1",))],
    )
    db, clock, export = _export(tmp_path, source)

    with db.connect() as conn:
        result = SymlinkSync(conn, _FailingFileSystem(deny_links_under="locations"), export, clock).run()

    assert result.failed == 3
    assert result.created == 1
    assert (export / "albums" / "christmas" / "20211224200000-310-img_7_edited.heic").is_symlink()


def test_album_directory_failure_skips_only_that_album(tmp_path: Path) -> None:
    source = InMemorySource(
        assets=[_edited_asset()],
        albums=[
            SourceAlbum("al1", "Christmas", asset_ids=("a1",)),
            SourceAlbum("al2", "Family", asset_ids=("a1",)),
        ],
    )
    db, clock, export = _export(tmp_path, source)

    with db.connect() as conn:
        result = SymlinkSync(conn, _FailingFileSystem(deny_dir="christmas"), export, clock).run()

    assert result.failed == 1
    # one album link plus the three location links
    assert result.created == 4
    assert (export / "albums" / "family").is_dir()
