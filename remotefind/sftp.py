import getpass
import hashlib
import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

import paramiko

from remotefind.connector import Connector
from remotefind.knownhosts import verify_host_key
from remotefind.utils.config import load_config
from remotefind.utils.entry import FSEntry

logger = logging.getLogger(__name__)


class SFTPConnector(Connector):
    """SFTP connector.

    Attributes
    ----------
    host : str
        Server host name.
    port : int
        Server port.
    username : Optional[str]
        Login name, defaults to the local user.
    password : Optional[str]
        Password, public key authentication is used when not set.
    key_filename : Optional[str]
        Private key file tried before the ssh-agent keys.
    known_hosts : str
        Trust store used to verify the server key.
    timeout : float
        Handshake timeout in seconds.
    confirm : Callable[[str], str]
        Prompt used when the server key is not trusted.
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        username: Optional[str] = None,
        password: Optional[str] = None,
        key_filename: Optional[str] = None,
        known_hosts: str = '~/.ssh/known_hosts',
        timeout: float = 30.0,
        confirm: Callable[[str], str] = input
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.key_filename = key_filename
        self.known_hosts = known_hosts
        self.timeout = timeout
        self.confirm = confirm
        self._server_key: Optional[paramiko.PKey] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @classmethod
    def from_yaml(cls, path: Optional[str], **overrides: Any) -> 'SFTPConnector':
        """Creates class instance from configuration path.

        Parameters
        ----------
        path : Optional[str]
            path to configuration file.
        **overrides : Any
            Arguments taking precedence over the file, None values are ignored.

        Returns
        -------
        SFTPConnector
            Class instance.
        """
        return cls(**load_config(path, cls, **overrides))

    @property
    def lookup_name(self) -> str:
        if self.port == 22:
            return self.host
        return f'[{self.host}]:{self.port}'

    @contextmanager
    def connect(self) -> Iterator['SFTPConnector']:
        logger.info('connecting to %s:%d', self.host, self.port)
        transport = paramiko.Transport((self.host, self.port))
        try:
            transport.start_client(timeout=self.timeout)
            self._server_key = transport.get_remote_server_key()
            verify_host_key(
                self.lookup_name, self.host_fingerprint(), self.host_key_type(),
                self._server_key.get_fingerprint(), self.known_hosts, confirm=self.confirm
            )
            self._authenticate(transport)
            self._sftp = paramiko.SFTPClient.from_transport(transport)
            yield self
        finally:
            if self._sftp is not None:
                self._sftp.close()
                self._sftp = None
            transport.close()

    def host_fingerprint(self) -> bytes:
        return hashlib.sha1(self._server_key.asbytes()).digest()

    def host_key_type(self) -> str:
        return self._server_key.get_name()

    def _authenticate(self, transport: paramiko.Transport) -> None:
        username = self.username or getpass.getuser()
        if self.password is not None:
            transport.auth_password(username, self.password)
            return
        keys = []
        if self.key_filename is not None:
            keys.append(paramiko.PKey.from_path(os.path.expanduser(self.key_filename)))
        keys.extend(paramiko.Agent().get_keys())
        for key in keys:
            try:
                transport.auth_publickey(username, key)
                return
            except paramiko.AuthenticationException:
                logger.debug('%s key rejected for %s', key.get_name(), username)
        raise paramiko.AuthenticationException(f"authentication failed for '{username}@{self.host}'")

    def _client(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise RuntimeError('SFTP connector is not connected')
        return self._sftp

    def scandir(self, path: str) -> list[FSEntry]:
        result = []
        for attr in self._client().listdir_attr(path):
            if attr.filename in ('.', '..'):
                continue
            result.append(FSEntry(
                attr.filename, path, attr.st_mode or 0, attr.st_uid or 0, attr.st_gid or 0,
                attr.st_size or 0, attr.st_atime or 0, attr.st_mtime or 0
            ))
        return result

    def readlink(self, path: str) -> str:
        target = self._client().readlink(path)
        if target is None:
            raise OSError(f"Not a symbolic link: '{path}'")
        return target

    def remove(self, path: str) -> None:
        self._client().remove(path)

    def rmdir(self, path: str) -> None:
        self._client().rmdir(path)

    def rename(self, src_path: str, dst_path: str) -> None:
        self._client().rename(src_path, dst_path)

    def chmod(self, path: str, mode: int) -> None:
        self._client().chmod(path, mode)

    def realpath(self, path: str) -> str:
        return self._client().normalize(path)
