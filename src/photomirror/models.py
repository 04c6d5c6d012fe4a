from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum

from photomirror.diff import (
    diff_date,
    diff_number,
    diff_optional,
    diff_scalar,
    diff_set,
    register_record,
)
from photomirror.ids import file_id
from photomirror.paths import path_for_date_and_location
from photomirror.source.base import (
    ROOT_FOLDER_ID,
    CollectionSubtype,
    LibraryKind,
    MediaType,
    ResourceType,
    SourceAlbum,
    SourceAsset,
    SourceFolder,
    SourceResource,
)
from photomirror.util.time import truncate_to_seconds

SCORE_SCALE = 1_000_000_000


class AssetType(IntEnum):
    IMAGE = 1
    VIDEO = 2
    AUDIO = 3

    @classmethod
    def from_media_type(cls, media_type: MediaType) -> AssetType | None:
        return _ASSET_TYPES.get(media_type)


_ASSET_TYPES = {
    MediaType.IMAGE: AssetType.IMAGE,
    MediaType.VIDEO: AssetType.VIDEO,
    MediaType.AUDIO: AssetType.AUDIO,
}


class AssetLibrary(IntEnum):
    PERSONAL = 1
    SHARED_LIBRARY = 2
    SHARED_ALBUM = 3

    @classmethod
    def from_library_kind(cls, kind: LibraryKind) -> AssetLibrary:
        return {
            LibraryKind.PERSONAL: cls.PERSONAL,
            LibraryKind.SHARED_LIBRARY: cls.SHARED_LIBRARY,
            LibraryKind.SHARED_ALBUM: cls.SHARED_ALBUM,
        }[kind]


class FileType(IntEnum):
    ORIGINAL_IMAGE = 1
    ORIGINAL_VIDEO = 2
    ORIGINAL_AUDIO = 3
    ORIGINAL_LIVE_VIDEO = 4
    EDITED_IMAGE = 5
    EDITED_VIDEO = 6
    EDITED_LIVE_VIDEO = 7

    @property
    def is_edited(self) -> bool:
        return self in (FileType.EDITED_IMAGE, FileType.EDITED_VIDEO, FileType.EDITED_LIVE_VIDEO)

    @property
    def resource_type(self) -> ResourceType:
        return _RESOURCE_BY_FILE_TYPE[self]

    @classmethod
    def from_resource_type(cls, resource_type: ResourceType) -> FileType | None:
        """Map a source resource kind to a file type; supplementary kinds give None."""
        return _FILE_TYPE_BY_RESOURCE.get(resource_type)


_FILE_TYPE_BY_RESOURCE = {
    ResourceType.PHOTO: FileType.ORIGINAL_IMAGE,
    ResourceType.VIDEO: FileType.ORIGINAL_VIDEO,
    ResourceType.AUDIO: FileType.ORIGINAL_AUDIO,
    ResourceType.PAIRED_VIDEO: FileType.ORIGINAL_LIVE_VIDEO,
    ResourceType.FULL_SIZE_PHOTO: FileType.EDITED_IMAGE,
    ResourceType.FULL_SIZE_VIDEO: FileType.EDITED_VIDEO,
    ResourceType.FULL_SIZE_PAIRED_VIDEO: FileType.EDITED_LIVE_VIDEO,
}
_RESOURCE_BY_FILE_TYPE = {v: k for k, v in _FILE_TYPE_BY_RESOURCE.items()}

# Lower rank wins when picking the file that represents an asset.
PRIMARY_FILE_RANK = {
    FileType.EDITED_IMAGE: 0,
    FileType.EDITED_VIDEO: 1,
    FileType.ORIGINAL_IMAGE: 2,
    FileType.ORIGINAL_VIDEO: 3,
    FileType.ORIGINAL_AUDIO: 4,
    FileType.EDITED_LIVE_VIDEO: 5,
    FileType.ORIGINAL_LIVE_VIDEO: 6,
}


class AlbumType(IntEnum):
    USER = 1
    SHARED = 2

    @classmethod
    def from_subtype(cls, subtype: CollectionSubtype) -> AlbumType | None:
        if subtype is CollectionSubtype.REGULAR:
            return cls.USER
        if subtype is CollectionSubtype.CLOUD_SHARED:
            return cls.SHARED
        return None


@dataclass(frozen=True, slots=True)
class Asset:
    id: str
    asset_type: AssetType
    asset_library: AssetLibrary
    created_at: datetime | None
    updated_at: datetime | None
    imported_at: datetime
    is_favourite: bool
    geo_lat: float | None = None
    geo_long: float | None = None
    aesthetic_score: int = 0
    is_deleted: bool = False
    deleted_at: datetime | None = None

    @classmethod
    def from_source(cls, asset: SourceAsset, now: datetime) -> Asset | None:
        asset_type = AssetType.from_media_type(asset.media_type)
        if asset_type is None or not asset.id:
            return None
        return cls(
            id=asset.id,
            asset_type=asset_type,
            asset_library=AssetLibrary.from_library_kind(asset.library),
            created_at=truncate_to_seconds(asset.created_at) if asset.created_at else None,
            updated_at=truncate_to_seconds(asset.updated_at) if asset.updated_at else None,
            imported_at=now,
            is_favourite=asset.is_favourite,
            geo_lat=asset.geo_lat,
            geo_long=asset.geo_long,
            aesthetic_score=int(asset.aesthetic_score * SCORE_SCALE),
        )

    def merge(self, observed: Asset) -> Asset:
        return replace(
            self,
            updated_at=observed.updated_at,
            is_favourite=observed.is_favourite,
            geo_lat=observed.geo_lat,
            geo_long=observed.geo_long,
            aesthetic_score=observed.aesthetic_score,
            is_deleted=False,
            deleted_at=None,
        )


@dataclass(frozen=True, slots=True)
class File:
    id: str
    file_type: FileType
    original_file_name: str
    file_size: int
    pixel_width: int
    pixel_height: int
    imported_at: datetime
    imported_file_dir: str
    geo_lat: float | None = None
    geo_long: float | None = None
    country_id: int | None = None
    city_id: int | None = None
    was_copied: bool = False
    is_deleted: bool = False
    deleted_at: datetime | None = None

    @property
    def relative_path(self) -> str:
        return f"{self.imported_file_dir}/{self.id}"

    @classmethod
    def from_source(
        cls,
        asset: SourceAsset,
        resource: SourceResource,
        now: datetime,
        country_id: int | None = None,
        city_id: int | None = None,
    ) -> File | None:
        file_type = FileType.from_resource_type(resource.resource_type)
        if file_type is None or not resource.original_file_name:
            return None
        return cls(
            id=file_id(asset.created_at, resource.file_size, file_type.is_edited, resource.original_file_name),
            file_type=file_type,
            original_file_name=resource.original_file_name,
            file_size=resource.file_size,
            pixel_width=resource.pixel_width,
            pixel_height=resource.pixel_height,
            imported_at=now,
            imported_file_dir=path_for_date_and_location(asset.created_at, asset.country, asset.city),
            geo_lat=asset.geo_lat,
            geo_long=asset.geo_long,
            country_id=country_id,
            city_id=city_id,
        )

    def merge(self, observed: File) -> File:
        geo_lat = observed.geo_lat if observed.geo_lat is not None else self.geo_lat
        geo_long = observed.geo_long if observed.geo_long is not None else self.geo_long
        country_id = observed.country_id if observed.country_id is not None else self.country_id
        city_id = observed.city_id if observed.city_id is not None else self.city_id
        relocated = country_id != self.country_id or city_id != self.city_id
        return replace(
            self,
            geo_lat=geo_lat,
            geo_long=geo_long,
            country_id=country_id,
            city_id=city_id,
            imported_file_dir=observed.imported_file_dir if relocated else self.imported_file_dir,
            # Only a relocation can clear the flag.
            was_copied=False if relocated else (self.was_copied or observed.was_copied),
            is_deleted=False,
            deleted_at=None,
        )


@dataclass(frozen=True, slots=True)
class AssetFile:
    asset_id: str
    file_id: str
    is_deleted: bool = False
    deleted_at: datetime | None = None

    def merge(self, observed: AssetFile) -> AssetFile:
        return replace(self, is_deleted=False, deleted_at=None)


@dataclass(frozen=True, slots=True)
class Folder:
    id: str
    name: str
    parent_id: str | None
    is_deleted: bool = False
    deleted_at: datetime | None = None

    @classmethod
    def from_source(cls, folder: SourceFolder) -> Folder | None:
        if folder.parent_id is None and folder.id != ROOT_FOLDER_ID:
            return None
        return cls(id=folder.id, name=folder.name, parent_id=folder.parent_id)

    def merge(self, observed: Folder) -> Folder:
        return replace(self, name=observed.name, parent_id=observed.parent_id, is_deleted=False, deleted_at=None)


@dataclass(frozen=True, slots=True)
class Album:
    id: str
    album_type: AlbumType
    folder_id: str
    name: str
    asset_ids: frozenset[str] = field(default_factory=frozenset)
    is_deleted: bool = False
    deleted_at: datetime | None = None

    @classmethod
    def from_source(cls, album: SourceAlbum) -> Album | None:
        album_type = AlbumType.from_subtype(album.subtype)
        if album_type is None:
            return None
        folder_id = album.folder_id if album_type is AlbumType.USER and album.folder_id else ROOT_FOLDER_ID
        return cls(
            id=album.id,
            album_type=album_type,
            folder_id=folder_id,
            name=album.name,
            asset_ids=frozenset(album.asset_ids),
        )

    def merge(self, observed: Album) -> Album:
        return replace(
            self,
            album_type=observed.album_type,
            folder_id=observed.folder_id,
            name=observed.name,
            asset_ids=observed.asset_ids,
            is_deleted=False,
            deleted_at=None,
        )


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    id: str
    created_at: datetime
    export_result: str
    asset_count: int
    file_count: int
    album_count: int
    folder_count: int
    file_size_total: int
    run_time: float


_optional_date = diff_optional(diff_date)
_optional_number = diff_optional(diff_number)
_optional_scalar = diff_optional(diff_scalar)

register_record(
    Asset,
    {
        "id": diff_scalar,
        "asset_type": diff_scalar,
        "asset_library": diff_scalar,
        "created_at": _optional_date,
        "updated_at": _optional_date,
        "imported_at": diff_date,
        "is_favourite": diff_scalar,
        "geo_lat": _optional_number,
        "geo_long": _optional_number,
        "aesthetic_score": diff_scalar,
        "is_deleted": diff_scalar,
        "deleted_at": _optional_date,
    },
)
register_record(
    File,
    {
        "id": diff_scalar,
        "file_type": diff_scalar,
        "original_file_name": diff_scalar,
        "file_size": diff_scalar,
        "pixel_width": diff_scalar,
        "pixel_height": diff_scalar,
        "imported_at": diff_date,
        "imported_file_dir": diff_scalar,
        "geo_lat": _optional_number,
        "geo_long": _optional_number,
        "country_id": _optional_scalar,
        "city_id": _optional_scalar,
        "was_copied": diff_scalar,
        "is_deleted": diff_scalar,
        "deleted_at": _optional_date,
    },
)
register_record(
    AssetFile,
    {
        "asset_id": diff_scalar,
        "file_id": diff_scalar,
        "is_deleted": diff_scalar,
        "deleted_at": _optional_date,
    },
)
register_record(
    Folder,
    {
        "id": diff_scalar,
        "name": diff_scalar,
        "parent_id": _optional_scalar,
        "is_deleted": diff_scalar,
        "deleted_at": _optional_date,
    },
)
register_record(
    Album,
    {
        "id": diff_scalar,
        "album_type": diff_scalar,
        "folder_id": diff_scalar,
        "name": diff_scalar,
        "asset_ids": diff_set,
        "is_deleted": diff_scalar,
        "deleted_at": _optional_date,
    },
)
