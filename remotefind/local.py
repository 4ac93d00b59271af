import os

from remotefind.connector import Connector
from remotefind.utils.entry import FSEntry


class LocalConnector(Connector):
    """Local file system connector."""

    def scandir(self, path: str) -> list[FSEntry]:
        result = []
        with os.scandir(path) as it:
            for entry in it:
                st = entry.stat(follow_symlinks=False)
                result.append(FSEntry(
                    entry.name, path, st.st_mode, st.st_uid, st.st_gid,
                    st.st_size, int(st.st_atime), int(st.st_mtime)
                ))
        return result

    def readlink(self, path: str) -> str:
        return os.readlink(path)

    def remove(self, path: str) -> None:
        os.remove(path)

    def rmdir(self, path: str) -> None:
        os.rmdir(path)

    def rename(self, src_path: str, dst_path: str) -> None:
        if os.path.lexists(dst_path):
            raise FileExistsError(f"File exists: '{dst_path}'")
        os.rename(src_path, dst_path)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(path, mode)

    def realpath(self, path: str) -> str:
        if not os.path.exists(path):
            raise FileNotFoundError(f"No such file or directory: '{path}'")
        return os.path.realpath(path)
