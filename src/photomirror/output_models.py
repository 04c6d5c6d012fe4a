from __future__ import annotations

from pydantic import BaseModel, Field

from photomirror.reconcile import EntityStats


class EntityCounts(BaseModel):
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    marked_for_deletion: int = 0
    deleted: int = 0

    @classmethod
    def from_stats(cls, stats: EntityStats) -> EntityCounts:
        return cls(
            inserted=stats.inserted,
            updated=stats.updated,
            unchanged=stats.unchanged,
            skipped=stats.skipped,
            marked_for_deletion=stats.marked_for_deletion,
            deleted=stats.deleted,
        )


class AssetExportResult(BaseModel):
    asset: EntityCounts = Field(default_factory=EntityCounts)
    file: EntityCounts = Field(default_factory=EntityCounts)
    run_time: float = 0.0


class CollectionExportResult(BaseModel):
    folder: EntityCounts = Field(default_factory=EntityCounts)
    album: EntityCounts = Field(default_factory=EntityCounts)
    run_time: float = 0.0


class FileExportResult(BaseModel):
    copied: int = 0
    removed: int = 0
    deleted: int = 0
    failed: int = 0
    run_time: float = 0.0


class SymlinkExportResult(BaseModel):
    created: int = 0
    failed: int = 0
    run_time: float = 0.0


class ExportResult(BaseModel):
    asset_export: AssetExportResult = Field(default_factory=AssetExportResult)
    collection_export: CollectionExportResult = Field(default_factory=CollectionExportResult)
    file_export: FileExportResult = Field(default_factory=FileExportResult)
    symlink_export: SymlinkExportResult = Field(default_factory=SymlinkExportResult)
    run_time: float = 0.0


class HistoryEntryOutput(BaseModel):
    id: str
    created_at: str
    export_result: ExportResult
    asset_count: int
    file_count: int
    album_count: int
    folder_count: int
    file_size_total: int
    run_time: float


class StatusOutput(BaseModel):
    export_dir: str
    db_path: str
    asset_count: int
    file_count: int
    album_count: int
    folder_count: int
    file_size_total: int
    copied_files: int
    pending_removals: int
    tombstones: dict[str, int] = Field(default_factory=dict)
    last_run: str | None = None
    locked: bool = False
