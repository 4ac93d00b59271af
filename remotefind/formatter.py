"""Rendering of ``-printf`` style templates."""

import logging
import stat
import time
from typing import Callable, Optional, Union

from remotefind.utils.entry import FSEntry

logger = logging.getLogger(__name__)

LS_TEMPLATE = '%M %u %g %s %TI %p%l'

_ESCAPES = {
    'a': '\a',
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'v': '\v',
    '0': '\0',
    '\\': '\\',
}

_TYPE_CHARS = {
    stat.S_IFDIR: 'd',
    stat.S_IFREG: '-',
    stat.S_IFIFO: 'p',
    stat.S_IFCHR: 'c',
    stat.S_IFBLK: 'b',
    stat.S_IFLNK: 'l',
    stat.S_IFSOCK: 's',
}

# (read, write, execute, special bit, special char)
_TRIPLETS = (
    (stat.S_IRUSR, stat.S_IWUSR, stat.S_IXUSR, stat.S_ISUID, 's'),
    (stat.S_IRGRP, stat.S_IWGRP, stat.S_IXGRP, stat.S_ISGID, 's'),
    (stat.S_IROTH, stat.S_IWOTH, stat.S_IXOTH, stat.S_ISVTX, 't'),
)


class FormatError(ValueError):
    pass


def mode_string(mode: int) -> str:
    """Render ``mode`` the way ``ls -l`` does, always 10 characters."""
    type_char = _TYPE_CHARS.get(stat.S_IFMT(mode))
    if type_char is None:
        logger.warning('unknown file type in mode %o', mode)
        type_char = 'U'
    chars = [type_char]
    for read, write, execute, special, special_char in _TRIPLETS:
        chars.append('r' if mode & read else '-')
        chars.append('w' if mode & write else '-')
        if mode & special:
            chars.append(special_char if mode & execute else special_char.upper())
        else:
            chars.append('x' if mode & execute else '-')
    return ''.join(chars)


def _local_time(timestamp: int) -> str:
    return time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(timestamp))


_DIRECTIVES: dict[str, Callable[[FSEntry], object]] = {
    'p': lambda entry: entry.path,
    'f': lambda entry: entry.name,
    'h': lambda entry: entry.parent,
    's': lambda entry: entry.size,
    'm': lambda entry: format(entry.mode & 0o7777, 'o'),
    'M': lambda entry: mode_string(entry.mode),
    'u': lambda entry: entry.uid,
    'U': lambda entry: entry.uid,
    'g': lambda entry: entry.gid,
    'G': lambda entry: entry.gid,
    'a': lambda entry: entry.atime,
    't': lambda entry: entry.mtime,
    'd': lambda entry: entry.depth,
    'T@': lambda entry: entry.mtime,
    'TI': lambda entry: _local_time(entry.mtime),
}

# %l needs the connector, so it is resolved at render time
_LINK = 'l'

Segment = Union[str, tuple[str]]


class Formatter:
    """Compiled output template.

    The template is parsed once on construction, so an unknown directive
    is reported before any entry is rendered.

    Attributes
    ----------
    template : str
        Template as given.
    readlink : Optional[Callable[[str], str]]
        Symbolic link lookup used by ``%l``.
    """

    def __init__(self, template: str, readlink: Optional[Callable[[str], str]] = None):
        self.template = template
        self.readlink = readlink
        self._segments = self._compile(template)

    @staticmethod
    def _compile(template: str) -> list[Segment]:
        segments: list[Segment] = []
        literal: list[str] = []
        i = 0
        while i < len(template):
            char = template[i]
            if char == '\\':
                if i + 1 < len(template):
                    escaped = template[i + 1]
                    literal.append(_ESCAPES.get(escaped, escaped))
                    i += 2
                else:
                    literal.append(char)
                    i += 1
            elif char == '%':
                directive = template[i + 1:i + 2]
                if directive == 'T':
                    directive = template[i + 1:i + 3]
                if directive == '%':
                    literal.append('%')
                elif directive in _DIRECTIVES or directive == _LINK:
                    if literal:
                        segments.append(''.join(literal))
                        literal = []
                    segments.append((directive,))
                else:
                    raise FormatError(f"unknown format directive '%{directive}' in '{template}'")
                i += 1 + len(directive)
            else:
                literal.append(char)
                i += 1
        if literal:
            segments.append(''.join(literal))
        return segments

    def _link_target(self, entry: FSEntry) -> str:
        if not entry.is_link or self.readlink is None:
            return ''
        try:
            return ' -> ' + self.readlink(entry.path)
        except OSError as err:
            logger.warning("cannot read link '%s': %s", entry.path, err)
            return ''

    def render(self, entry: FSEntry) -> str:
        parts = []
        for segment in self._segments:
            if isinstance(segment, str):
                parts.append(segment)
            elif segment[0] == _LINK:
                parts.append(self._link_target(entry))
            else:
                parts.append(str(_DIRECTIVES[segment[0]](entry)))
        return ''.join(parts)
