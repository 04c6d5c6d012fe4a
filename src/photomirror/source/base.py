from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
import shutil
from typing import Iterator, Protocol

ROOT_FOLDER_ID = "root"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"


class LibraryKind(str, Enum):
    PERSONAL = "personal"
    SHARED_LIBRARY = "shared_library"
    SHARED_ALBUM = "shared_album"


class ResourceType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    PAIRED_VIDEO = "paired_video"
    FULL_SIZE_PHOTO = "full_size_photo"
    FULL_SIZE_VIDEO = "full_size_video"
    FULL_SIZE_PAIRED_VIDEO = "full_size_paired_video"
    ALTERNATE_PHOTO = "alternate_photo"
    ADJUSTMENT_DATA = "adjustment_data"
    ADJUSTMENT_BASE_PHOTO = "adjustment_base_photo"
    PHOTO_PROXY = "photo_proxy"


class CollectionSubtype(str, Enum):
    REGULAR = "regular"
    CLOUD_SHARED = "cloud_shared"
    SMART = "smart"
    SYNCED = "synced"


class CopyResult(str, Enum):
    COPIED = "copied"
    EXISTS = "exists"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class SourceResource:
    resource_type: ResourceType
    original_file_name: str
    file_size: int
    pixel_width: int = 0
    pixel_height: int = 0


@dataclass(frozen=True, slots=True)
class SourceAsset:
    id: str
    media_type: MediaType
    created_at: datetime | None = None
    updated_at: datetime | None = None
    library: LibraryKind = LibraryKind.PERSONAL
    is_favourite: bool = False
    geo_lat: float | None = None
    geo_long: float | None = None
    country: str | None = None
    city: str | None = None
    # 0.0 - 1.0 as reported upstream
    aesthetic_score: float = 0.0
    resources: tuple[SourceResource, ...] = ()


@dataclass(frozen=True, slots=True)
class SourceFolder:
    id: str
    name: str
    parent_id: str | None = None


@dataclass(frozen=True, slots=True)
class SourceAlbum:
    id: str
    name: str
    subtype: CollectionSubtype = CollectionSubtype.REGULAR
    folder_id: str | None = None
    asset_ids: tuple[str, ...] = field(default_factory=tuple)


class SourceLibrary(Protocol):
    """Read side of the media library being mirrored.

    ``iter_assets`` may be a lazy, single-pass iterator. ``list_folders`` returns
    a flat arena that includes the root folder. Enumeration methods raise
    ``SourceUnavailableError`` when the library cannot be read.
    """

    def authorise(self) -> None: ...

    def iter_assets(self) -> Iterator[SourceAsset]: ...

    def list_folders(self) -> list[SourceFolder]: ...

    def list_albums(self) -> list[SourceAlbum]: ...

    def copy_resource(
        self,
        asset_id: str,
        resource_type: ResourceType,
        original_file_name: str,
        destination: Path,
    ) -> CopyResult: ...


def find_resource(asset: SourceAsset, resource_type: ResourceType, original_file_name: str) -> SourceResource | None:
    for resource in asset.resources:
        if resource.resource_type is resource_type and resource.original_file_name == original_file_name:
            return resource
    return None


def write_bytes(data: bytes, destination: Path) -> CopyResult:
    if destination.exists():
        return CopyResult.EXISTS
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp = destination.with_name(destination.name + ".part")
    tmp.write_bytes(data)
    tmp.replace(destination)
    return CopyResult.COPIED


def copy_file(source: Path, destination: Path) -> CopyResult:
    if destination.exists():
        return CopyResult.EXISTS
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp = destination.with_name(destination.name + ".part")
    shutil.copyfile(source, tmp)
    tmp.replace(destination)
    return CopyResult.COPIED
