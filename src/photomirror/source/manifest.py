from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from pathlib import Path
from typing import Any, Iterator

import yaml

from photomirror.errors import SourcePermissionError, SourceUnavailableError
from photomirror.source.base import (
    ROOT_FOLDER_ID,
    CollectionSubtype,
    CopyResult,
    LibraryKind,
    MediaType,
    ResourceType,
    SourceAlbum,
    SourceAsset,
    SourceFolder,
    SourceResource,
    copy_file,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.yaml"


def _as_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _enum(enum_cls: Any, value: Any, default: Any) -> Any:
    if value is None:
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return None


def _key(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    value = raw.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _entries(data: dict[str, Any], name: str) -> list[Any]:
    value = data.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("manifest '%s' must be a list, ignoring it", name)
        return []
    return value


class ManifestSource:
    """Library described by ``manifest.yaml`` in a directory.

    Resource ``file`` entries are paths relative to the directory. Folders
    without a ``parent`` hang off the implicit root folder. Malformed assets
    are yielded with ``MediaType.UNKNOWN`` so the asset pass skips them;
    malformed resources, folders and albums are dropped with a warning.
    """

    def __init__(self, root: Path):
        self.root = root.expanduser()
        self._data: dict[str, Any] | None = None
        self._assets_by_id: dict[str, dict[str, Any]] = {}

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILE

    def authorise(self) -> None:
        self._set(self._load())

    def _load(self) -> dict[str, Any]:
        path = self.manifest_path
        if not self.root.is_dir():
            raise SourceUnavailableError(f"library directory not found: {self.root}")
        try:
            text = path.read_text()
        except PermissionError as exc:
            raise SourcePermissionError(f"cannot read {path}: {exc}") from exc
        except OSError as exc:
            raise SourceUnavailableError(f"cannot read {path}: {exc}") from exc
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SourceUnavailableError(f"invalid manifest {path}: {exc}") from exc
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise SourceUnavailableError(f"manifest {path} must be a mapping")
        return loaded

    def _set(self, data: dict[str, Any]) -> None:
        self._data = data
        self._assets_by_id = {}
        for raw in _entries(data, "assets"):
            key = _key(raw)
            if key is not None:
                self._assets_by_id.setdefault(key, raw)

    def _manifest(self) -> dict[str, Any]:
        if self._data is None:
            self._set(self._load())
        return self._data  # type: ignore[return-value]

    def _resource(self, raw: Any, asset_id: str) -> tuple[SourceResource, Path | None] | None:
        if not isinstance(raw, dict):
            logger.warning("asset %s: ignoring malformed resource entry %r", asset_id, raw)
            return None
        resource_type = _enum(ResourceType, raw.get("type"), None)
        if resource_type is None:
            logger.warning("asset %s: unknown resource type %r", asset_id, raw.get("type"))
            return None
        rel = raw.get("file")
        path = self.root / str(rel) if rel else None
        name = str(raw.get("name") or (path.name if path else ""))
        size = raw.get("size")
        if size is None and path is not None and path.exists():
            size = path.stat().st_size
        try:
            resource = SourceResource(
                resource_type=resource_type,
                original_file_name=name,
                file_size=int(size or 0),
                pixel_width=int(raw.get("width") or 0),
                pixel_height=int(raw.get("height") or 0),
            )
        except (TypeError, ValueError):
            logger.warning("asset %s: resource %r has a non-numeric size or dimension", asset_id, name)
            return None
        return resource, path

    def _parse_asset(self, asset_id: str, raw: dict[str, Any]) -> SourceAsset:
        location = raw.get("location") or {}
        if not isinstance(location, dict):
            raise ValueError("'location' must be a mapping")
        items = raw.get("resources") or []
        if not isinstance(items, list):
            raise ValueError("'resources' must be a list")
        resources = []
        for item in items:
            parsed = self._resource(item, asset_id)
            if parsed is not None:
                resources.append(parsed[0])
        media_type = _enum(MediaType, raw.get("media_type"), MediaType.IMAGE) or MediaType.UNKNOWN
        library = _enum(LibraryKind, raw.get("library"), LibraryKind.PERSONAL) or LibraryKind.PERSONAL
        country = location.get("country")
        city = location.get("city")
        return SourceAsset(
            id=asset_id,
            media_type=media_type,
            created_at=_as_datetime(raw.get("created_at")),
            updated_at=_as_datetime(raw.get("updated_at")),
            library=library,
            is_favourite=bool(raw.get("favourite", False)),
            geo_lat=_float(location.get("lat")),
            geo_long=_float(location.get("long")),
            country=str(country) if country else None,
            city=str(city) if city else None,
            aesthetic_score=_float(raw.get("score")) or 0.0,
            resources=tuple(resources),
        )

    def _asset(self, raw: Any) -> SourceAsset:
        asset_id = _key(raw)
        if asset_id is None:
            logger.warning("ignoring asset entry without an id: %r", raw)
            return SourceAsset(id="", media_type=MediaType.UNKNOWN)
        try:
            return self._parse_asset(asset_id, raw)
        except (TypeError, ValueError) as exc:
            logger.warning("asset %s is malformed: %s", asset_id, exc)
            return SourceAsset(id=asset_id, media_type=MediaType.UNKNOWN)

    def iter_assets(self) -> Iterator[SourceAsset]:
        for raw in _entries(self._manifest(), "assets"):
            yield self._asset(raw)

    def list_folders(self) -> list[SourceFolder]:
        data = self._manifest()
        root_name = str(data.get("name") or self.root.name)
        out = [SourceFolder(ROOT_FOLDER_ID, root_name)]
        for raw in _entries(data, "folders"):
            folder_id = _key(raw)
            if folder_id is None:
                logger.warning("ignoring folder entry without an id: %r", raw)
                continue
            out.append(
                SourceFolder(
                    id=folder_id,
                    name=str(raw.get("name") or ""),
                    parent_id=str(raw.get("parent") or ROOT_FOLDER_ID),
                )
            )
        return out

    def list_albums(self) -> list[SourceAlbum]:
        out = []
        for raw in _entries(self._manifest(), "albums"):
            album_id = _key(raw)
            if album_id is None:
                logger.warning("ignoring album entry without an id: %r", raw)
                continue
            members = raw.get("assets") or []
            if not isinstance(members, list):
                logger.warning("album %s: 'assets' must be a list, ignoring the album", album_id)
                continue
            subtype = _enum(CollectionSubtype, raw.get("type"), CollectionSubtype.REGULAR) or CollectionSubtype.SMART
            folder = raw.get("folder")
            out.append(
                SourceAlbum(
                    id=album_id,
                    name=str(raw.get("name") or ""),
                    subtype=subtype,
                    folder_id=str(folder) if folder else ROOT_FOLDER_ID,
                    asset_ids=tuple(str(a) for a in members),
                )
            )
        return out

    def copy_resource(
        self,
        asset_id: str,
        resource_type: ResourceType,
        original_file_name: str,
        destination: Path,
    ) -> CopyResult:
        self._manifest()
        raw = self._assets_by_id.get(asset_id)
        if raw is None or not isinstance(raw.get("resources"), list):
            return CopyResult.REMOVED
        for item in raw["resources"]:
            parsed = self._resource(item, asset_id)
            if parsed is None:
                continue
            resource, path = parsed
            if resource.resource_type is resource_type and resource.original_file_name == original_file_name:
                if path is None or not path.is_file():
                    return CopyResult.REMOVED
                return copy_file(path, destination)
        return CopyResult.REMOVED
