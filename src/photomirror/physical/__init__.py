from photomirror.physical.files import FileSync
from photomirror.physical.symlinks import SymlinkSync

__all__ = ["FileSync", "SymlinkSync"]
