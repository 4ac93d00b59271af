from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from remotefind.utils.entry import FSEntry


class Connector(ABC):
    """Abstract class for connector.

    Every operation raises ``OSError`` (or a subclass) on failure.
    """

    @contextmanager
    def connect(self) -> Iterator['Connector']:
        """Connects to file system.

        Yields
        -------
        Connector
            Class instance.
        """
        yield self

    @abstractmethod
    def scandir(self, path: str) -> list[FSEntry]:
        """List directory content with metadata.

        Parameters
        ----------
        path : str
            Directory path.

        Returns
        -------
        list[FSEntry]
            Immediate children, without the ``.`` and ``..`` entries.
        """
        pass

    @abstractmethod
    def readlink(self, path: str) -> str:
        """Read symbolic link target.

        Parameters
        ----------
        path : str
            Link path.

        Returns
        -------
        str
            Link target.
        """
        pass

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete file.

        Parameters
        ----------
        path : str
            File path.
        """
        pass

    @abstractmethod
    def rmdir(self, path: str) -> None:
        """Delete empty directory.

        Parameters
        ----------
        path : str
            Directory path.
        """
        pass

    @abstractmethod
    def rename(self, src_path: str, dst_path: str) -> None:
        """Rename file or directory.

        Parameters
        ----------
        src_path : str
            Source path.
        dst_path : str
            Destination path.
        """
        pass

    @abstractmethod
    def chmod(self, path: str, mode: int) -> None:
        """Set permission bits.

        Parameters
        ----------
        path : str
            File or directory path.
        mode : int
            Permission bits, setuid/setgid/sticky included.
        """
        pass

    @abstractmethod
    def realpath(self, path: str) -> str:
        """Resolve path to an absolute path.

        Parameters
        ----------
        path : str
            Path as given by the user.

        Returns
        -------
        str
            Resolved absolute path.
        """
        pass
