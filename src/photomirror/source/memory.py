from __future__ import annotations

from pathlib import Path
from typing import Iterator

from photomirror.errors import SourcePermissionError, SourceUnavailableError
from photomirror.source.base import (
    ROOT_FOLDER_ID,
    CopyResult,
    ResourceType,
    SourceAlbum,
    SourceAsset,
    SourceFolder,
    find_resource,
    write_bytes,
)


class InMemorySource:
    """Deterministic library held in memory.

    Assets are yielded in insertion order. Resource bytes default to a payload
    derived from the asset id and file name unless set with ``set_content``.
    """

    def __init__(
        self,
        assets: list[SourceAsset] | None = None,
        folders: list[SourceFolder] | None = None,
        albums: list[SourceAlbum] | None = None,
        root_name: str = "Library",
    ):
        self.assets: dict[str, SourceAsset] = {a.id: a for a in assets or []}
        self.folders: dict[str, SourceFolder] = {ROOT_FOLDER_ID: SourceFolder(ROOT_FOLDER_ID, root_name)}
        for folder in folders or []:
            self.folders[folder.id] = folder
        self.albums: dict[str, SourceAlbum] = {a.id: a for a in albums or []}
        self.contents: dict[tuple[str, str], bytes] = {}
        self.available = True
        self.permitted = True
        self.copy_calls: list[tuple[str, ResourceType, str]] = []
        self.failing_copies: set[str] = set()

    def add_asset(self, asset: SourceAsset) -> None:
        self.assets[asset.id] = asset

    def remove_asset(self, asset_id: str) -> None:
        self.assets.pop(asset_id, None)

    def add_folder(self, folder: SourceFolder) -> None:
        self.folders[folder.id] = folder

    def remove_folder(self, folder_id: str) -> None:
        self.folders.pop(folder_id, None)

    def add_album(self, album: SourceAlbum) -> None:
        self.albums[album.id] = album

    def remove_album(self, album_id: str) -> None:
        self.albums.pop(album_id, None)

    def set_content(self, asset_id: str, original_file_name: str, data: bytes) -> None:
        self.contents[(asset_id, original_file_name)] = data

    def authorise(self) -> None:
        if not self.available:
            raise SourceUnavailableError("in-memory library marked unavailable")
        if not self.permitted:
            raise SourcePermissionError("access to the in-memory library was denied")

    def iter_assets(self) -> Iterator[SourceAsset]:
        self.authorise()
        for asset in list(self.assets.values()):
            yield asset

    def list_folders(self) -> list[SourceFolder]:
        self.authorise()
        return list(self.folders.values())

    def list_albums(self) -> list[SourceAlbum]:
        self.authorise()
        return list(self.albums.values())

    def copy_resource(
        self,
        asset_id: str,
        resource_type: ResourceType,
        original_file_name: str,
        destination: Path,
    ) -> CopyResult:
        self.copy_calls.append((asset_id, resource_type, original_file_name))
        if original_file_name in self.failing_copies:
            raise OSError(f"simulated copy failure for {original_file_name}")
        asset = self.assets.get(asset_id)
        if asset is None or find_resource(asset, resource_type, original_file_name) is None:
            return CopyResult.REMOVED
        data = self.contents.get((asset_id, original_file_name))
        if data is None:
            data = f"{asset_id}:{original_file_name}".encode("utf-8")
        return write_bytes(data, destination)
