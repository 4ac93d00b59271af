"""Shared fixtures: an in-memory connector and an entry builder."""

import errno
import posixpath
import stat

import pytest

from remotefind.connector import Connector
from remotefind.utils.entry import FSEntry


def _norm(path: str) -> str:
    path = posixpath.normpath(path)
    return '/' + path.lstrip('/') if path.startswith('/') else path


class MemoryConnector(Connector):
    """Connector over a dict of paths, records every mutating call."""

    def __init__(self):
        self.nodes: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.failing: set[str] = set()

    def add_dir(self, path: str, mode: int = 0o755, **attrs) -> None:
        self.nodes[_norm(path)] = dict(mode=stat.S_IFDIR | mode, **attrs)

    def add_file(self, path: str, mode: int = 0o644, **attrs) -> None:
        self.nodes[_norm(path)] = dict(mode=stat.S_IFREG | mode, **attrs)

    def add_link(self, path: str, target: str) -> None:
        self.nodes[_norm(path)] = dict(mode=stat.S_IFLNK | 0o777, target=target)

    def _check(self, path: str) -> str:
        path = _norm(path)
        if path in self.failing:
            raise PermissionError(errno.EACCES, 'Permission denied', path)
        if path not in self.nodes:
            raise FileNotFoundError(errno.ENOENT, 'No such file or directory', path)
        return path

    def scandir(self, path: str) -> list[FSEntry]:
        key = self._check(path)
        if not stat.S_ISDIR(self.nodes[key]['mode']):
            raise NotADirectoryError(errno.ENOTDIR, 'Not a directory', path)
        result = []
        for child, attrs in self.nodes.items():
            if child != key and posixpath.dirname(child) == key:
                fields = {k: v for k, v in attrs.items() if k != 'target'}
                result.append(FSEntry(posixpath.basename(child), path, **fields))
        return result

    def readlink(self, path: str) -> str:
        key = self._check(path)
        if 'target' not in self.nodes[key]:
            raise OSError(errno.EINVAL, 'Invalid argument', path)
        return self.nodes[key]['target']

    def remove(self, path: str) -> None:
        key = self._check(path)
        if stat.S_ISDIR(self.nodes[key]['mode']):
            raise IsADirectoryError(errno.EISDIR, 'Is a directory', path)
        self.calls.append(('remove', path))
        del self.nodes[key]

    def rmdir(self, path: str) -> None:
        key = self._check(path)
        if any(posixpath.dirname(child) == key for child in self.nodes if child != key):
            raise OSError(errno.ENOTEMPTY, 'Directory not empty', path)
        self.calls.append(('rmdir', path))
        del self.nodes[key]

    def rename(self, src_path: str, dst_path: str) -> None:
        src = self._check(src_path)
        dst = _norm(dst_path)
        if dst in self.nodes:
            raise FileExistsError(errno.EEXIST, 'File exists', dst_path)
        self.calls.append(('rename', src_path, dst_path))
        for path in [p for p in self.nodes if p == src or p.startswith(src + '/')]:
            self.nodes[dst + path[len(src):]] = self.nodes.pop(path)

    def chmod(self, path: str, mode: int) -> None:
        key = self._check(path)
        self.calls.append(('chmod', path, mode))
        attrs = self.nodes[key]
        attrs['mode'] = stat.S_IFMT(attrs['mode']) | mode

    def realpath(self, path: str) -> str:
        key = self._check(path)
        return key if key.startswith('/') else '/' + key


@pytest.fixture
def memory() -> MemoryConnector:
    return MemoryConnector()


@pytest.fixture
def make_entry():
    def factory(name: str = 'file', parent: str = '/root', mode: int = stat.S_IFREG | 0o644, **attrs) -> FSEntry:
        return FSEntry(name, parent, mode, **attrs)
    return factory
