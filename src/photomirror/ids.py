from __future__ import annotations

from datetime import datetime, timezone
from pathlib import PurePosixPath
import uuid

from photomirror.paths import normalise_for_path

NO_DATE_PREFIX = "00000000000000"


def date_prefix(created_at: datetime | None) -> str:
    if created_at is None:
        return NO_DATE_PREFIX
    return created_at.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")


def file_id(created_at: datetime | None, file_size: int, is_edited: bool, original_file_name: str) -> str:
    """Content-derived key for a resource.

    Upstream resource identifiers change when a library is re-imported, so the
    key is built from what stays stable: the owning asset's creation time, the
    byte size, whether the resource is an edited variant and the original name.
    The same string is used as the copied file's name.
    """
    name_path = PurePosixPath(original_file_name)
    stem = normalise_for_path(name_path.stem)
    ext = name_path.suffix.lstrip(".").lower()
    suffix = "_edited" if is_edited else ""
    base = f"{date_prefix(created_at)}-{file_size}-{stem}{suffix}"
    return f"{base}.{ext}" if ext else base


def history_id() -> str:
    return str(uuid.uuid4())
