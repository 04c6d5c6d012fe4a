from __future__ import annotations


class MirrorError(Exception):
    """Base class for errors raised by photomirror."""


class ConfigError(MirrorError):
    pass


class SourceUnavailableError(MirrorError):
    """The source library cannot be read. Fatal for the whole run."""


class SourcePermissionError(SourceUnavailableError):
    pass


class IdentityResolutionError(MirrorError):
    """An entity references another entity that is not live in the mirror."""

    def __init__(self, kind: str, entity_id: str, missing_kind: str, missing_id: str | None):
        super().__init__(f"{kind} {entity_id!r} references unknown {missing_kind} {missing_id!r}")
        self.kind = kind
        self.entity_id = entity_id
        self.missing_kind = missing_kind
        self.missing_id = missing_id


class FileExistsAtDirectoryPathError(MirrorError):
    def __init__(self, path: str):
        super().__init__(f"a file exists where a directory is expected: {path}")
        self.path = path


class MirrorLockedError(MirrorError):
    def __init__(self, lock_path: str):
        super().__init__(f"another sync run holds the lock at {lock_path}")
        self.lock_path = lock_path
