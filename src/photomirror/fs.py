from __future__ import annotations

from enum import Enum
import os
from pathlib import Path
import shutil
from typing import Protocol

from photomirror.errors import FileExistsAtDirectoryPathError


class CreateResult(str, Enum):
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    SUCCESS = "success"


class FileSystem(Protocol):
    """Filesystem operations used by the physical passes.

    Every call is safe to repeat when the target is already in the requested
    state.
    """

    def path_exists(self, path: Path) -> bool: ...

    def create_directory(self, path: Path) -> CreateResult: ...

    def create_symlink(self, src: Path, dest: Path) -> CreateResult: ...

    def remove(self, path: Path) -> CreateResult: ...


class LocalFileSystem:
    def path_exists(self, path: Path) -> bool:
        return path.exists() or path.is_symlink()

    def create_directory(self, path: Path) -> CreateResult:
        if path.is_dir():
            return CreateResult.EXISTS
        try:
            path.mkdir(parents=True)
        except FileExistsError:
            # Another worker may have created it since the check above.
            if path.is_dir():
                return CreateResult.EXISTS
            raise FileExistsAtDirectoryPathError(str(path)) from None
        return CreateResult.SUCCESS

    def create_symlink(self, src: Path, dest: Path) -> CreateResult:
        if dest.is_symlink():
            if Path(os.readlink(dest)) == src:
                return CreateResult.EXISTS
            dest.unlink()
        elif dest.exists():
            raise FileExistsError(f"refusing to replace non-link {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.symlink_to(src)
        return CreateResult.SUCCESS

    def remove(self, path: Path) -> CreateResult:
        if path.is_symlink() or path.is_file():
            path.unlink()
            return CreateResult.SUCCESS
        if path.is_dir():
            shutil.rmtree(path)
            return CreateResult.SUCCESS
        return CreateResult.NOT_EXISTS
