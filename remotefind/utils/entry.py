import re
import stat
from dataclasses import dataclass
from typing import Optional


def join_path(parent: str, name: str) -> str:
    """Join a parent path and a base name, collapsing duplicate slashes."""
    return re.sub('/+', '/', f'{parent}/{name}')


@dataclass
class FSEntry:
    """One directory-listing record.

    Attributes
    ----------
    name : str
        Base file name.
    parent : str
        Path of the containing directory, as listed.
    mode : int
        Raw ``st_mode`` bits (type and permissions).
    uid : int
        Owner id.
    gid : int
        Group id.
    size : int
        Size in bytes.
    atime : int
        Access time, epoch seconds.
    mtime : int
        Modification time, epoch seconds.
    depth : int
        Traversal depth, children of the search root are at depth 1.
    is_empty_dir : Optional[bool]
        Set only when the directory was visited before the entry was filtered.
    """

    name: str
    parent: str
    mode: int
    uid: int = 0
    gid: int = 0
    size: int = 0
    atime: int = 0
    mtime: int = 0
    depth: int = 0
    is_empty_dir: Optional[bool] = None

    @property
    def path(self) -> str:
        return join_path(self.parent, self.name)

    @property
    def file_type(self) -> int:
        return stat.S_IFMT(self.mode)

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_link(self) -> bool:
        return stat.S_ISLNK(self.mode)
