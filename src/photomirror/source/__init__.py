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
    SourceLibrary,
    SourceResource,
)
from photomirror.source.manifest import ManifestSource
from photomirror.source.memory import InMemorySource

__all__ = [
    "ROOT_FOLDER_ID",
    "CollectionSubtype",
    "CopyResult",
    "InMemorySource",
    "LibraryKind",
    "ManifestSource",
    "MediaType",
    "ResourceType",
    "SourceAlbum",
    "SourceAsset",
    "SourceFolder",
    "SourceLibrary",
    "SourceResource",
]
