"""Host key verification against an OpenSSH ``known_hosts`` file.

Both plain lines (``host1,host2 ssh-ed25519 AAAA...``) and hashed lines
(``|1|salt|digest ssh-ed25519 AAAA...``) are understood. A hashed line
matches a host when ``HMAC-SHA1(key=salt, msg=host)`` equals the stored
digest.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import os
import sys
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

logger = logging.getLogger(__name__)

HASH_MAGIC = '|1|'


class HostKeyRejected(Exception):
    pass


@dataclass(frozen=True)
class TrustEntry:
    """One known_hosts line.

    Attributes
    ----------
    key_type : str
        Key algorithm name, e.g. ``ssh-ed25519``.
    key_blob : bytes
        Decoded public key.
    host_pattern : Optional[str]
        Comma-separated host names of a plain line.
    salt : Optional[bytes]
        HMAC key of a hashed line.
    hmac_digest : Optional[bytes]
        Stored host name digest of a hashed line.
    """

    key_type: str
    key_blob: bytes
    host_pattern: Optional[str] = None
    salt: Optional[bytes] = None
    hmac_digest: Optional[bytes] = None

    @property
    def fingerprint_hash(self) -> bytes:
        return hashlib.sha1(self.key_blob).digest()

    def matches(self, host: str) -> bool:
        if self.hmac_digest is not None:
            digest = hmac.new(self.salt, host.encode(), hashlib.sha1).digest()
            return hmac.compare_digest(digest, self.hmac_digest)
        return host in self.host_pattern.split(',')


def parse_line(line: str) -> Optional[TrustEntry]:
    """Parse one known_hosts line, None for blank lines, comments and markers."""
    line = line.strip()
    if not line or line.startswith('#') or line.startswith('@'):
        return None
    fields = line.split()
    if len(fields) < 3:
        raise ValueError('expected host, key type and key')
    hosts, key_type, key = fields[:3]
    key_blob = base64.b64decode(key, validate=True)
    if hosts.startswith(HASH_MAGIC):
        salt, digest = hosts[len(HASH_MAGIC):].split('|')
        return TrustEntry(key_type, key_blob, salt=base64.b64decode(salt, validate=True),
                          hmac_digest=base64.b64decode(digest, validate=True))
    return TrustEntry(key_type, key_blob, host_pattern=hosts)


def load_trust_store(path: str) -> list[TrustEntry]:
    """Read a known_hosts file, a missing file is an empty store."""
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        logger.info("known hosts file '%s' does not exist", path)
        return []
    entries = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            try:
                entry = parse_line(line)
            except (ValueError, binascii.Error) as err:
                logger.debug('skipping %s:%d: %s', path, lineno, err)
                continue
            if entry is not None:
                entries.append(entry)
    return entries


def known_fingerprint(entries: list[TrustEntry], host: str) -> Optional[bytes]:
    """SHA1 fingerprint of the key stored for ``host`` on its first matching line."""
    for entry in entries:
        if entry.matches(host):
            return entry.fingerprint_hash
    return None


def hex_fingerprint(digest: bytes) -> str:
    return ':'.join(f'{byte:02x}' for byte in digest)


def verify_host_key(
    host: str,
    fingerprint: bytes,
    key_type: str,
    md5_fingerprint: bytes,
    known_hosts: str = '~/.ssh/known_hosts',
    confirm: Callable[[str], str] = input,
    stream: TextIO = sys.stderr
) -> None:
    """Check a presented host key against the trust store.

    Parameters
    ----------
    host : str
        Host name as looked up in the trust store.
    fingerprint : bytes
        SHA1 digest of the presented key.
    key_type : str
        Presented key algorithm.
    md5_fingerprint : bytes
        MD5 digest of the presented key, shown to the user.
    known_hosts : str, default='~/.ssh/known_hosts'
        Trust store path.
    confirm : Callable[[str], str], default=input
        Prompt function, receives the question and returns the answer.
    stream : TextIO, default=sys.stderr
        Where the warning is written.

    Raises
    ------
    HostKeyRejected
        If the key is unknown or changed and the user did not answer ``yes``.
    """
    known = known_fingerprint(load_trust_store(known_hosts), host)
    if known is not None and hmac.compare_digest(known, fingerprint):
        logger.info("host key for '%s' verified", host)
        return

    if known is None:
        stream.write(f"The authenticity of host '{host}' can't be established.\n")
    else:
        stream.write(f"WARNING: the host key for '{host}' does not match the known hosts file.\n")
    stream.write(f'{key_type} key fingerprint is {hex_fingerprint(md5_fingerprint)}.\n')
    stream.flush()
    try:
        answer = confirm('Are you sure you want to continue connecting (yes/no)? ')
    except (EOFError, KeyboardInterrupt) as err:
        raise HostKeyRejected(f"host key verification failed for '{host}': no answer") from err
    if answer != 'yes':
        raise HostKeyRejected(f"host key verification failed for '{host}'")
