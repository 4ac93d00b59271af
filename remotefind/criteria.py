"""Predicate compilation and evaluation.

The command line hands over an ordered list of ``(token, argument)``
pairs. :func:`compile_criteria` turns it into immutable
:class:`Criterion` records in a single pass; :func:`matches` ANDs them
over one :class:`~remotefind.utils.entry.FSEntry`.
"""

import re
import stat
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from remotefind.utils.entry import FSEntry

NEGATION_TOKENS = ('not', '!')
UNSUPPORTED_TOKENS = ('ctime', 'cmin', 'user', 'group')

_DAY = 86400
_MINUTE = 60

_TYPE_LETTERS = {
    'f': stat.S_IFREG,
    'd': stat.S_IFDIR,
    'p': stat.S_IFIFO,
    'b': stat.S_IFBLK,
    'c': stat.S_IFCHR,
    'l': stat.S_IFLNK,
    's': stat.S_IFSOCK,
}

_SIZE_UNITS = {'': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3, 't': 1024 ** 4}

_NUMBER_RE = re.compile(r'([-+]?)(\d+)')
_OCTAL_RE = re.compile(r'([-+]?)([0-7]+)')
_SIZE_RE = re.compile(r'([-+]?)(\d+)([kKmMgGtT]?)')


class CriteriaError(ValueError):
    pass


class Kind(Enum):
    TYPE = 'type'
    NAME = 'name'
    INAME = 'iname'
    REGEX = 'regex'
    UID = 'uid'
    GID = 'gid'
    EMPTY = 'empty'
    MTIME = 'mtime'
    ATIME = 'atime'
    MMIN = 'mmin'
    AMIN = 'amin'
    SIZE = 'size'
    MODE = 'mode'


class Comparison(Enum):
    EXACT = ''
    LESS = '-'
    GREATER = '+'


# (entry attribute, bucket size in seconds)
_TIME_KINDS = {
    Kind.MTIME: ('mtime', _DAY),
    Kind.ATIME: ('atime', _DAY),
    Kind.MMIN: ('mtime', _MINUTE),
    Kind.AMIN: ('atime', _MINUTE),
}

_ARGUMENTLESS = (Kind.EMPTY,)


@dataclass(frozen=True)
class Criterion:
    """One compiled test.

    Attributes
    ----------
    kind : Kind
        Predicate kind.
    comparand : Any
        File type bits, compiled pattern, integer or reference time bucket.
    comparison : Comparison
        Sign convention of the argument, unused by non-numeric kinds.
    negate : bool
        Invert the result of this test only.
    """

    kind: Kind
    comparand: Any = None
    comparison: Comparison = Comparison.EXACT
    negate: bool = False

    def test(self, entry: FSEntry) -> bool:
        return _EVALUATORS[self.kind](self, entry) != self.negate


def _compare(value: int, comparand: int, comparison: Comparison) -> bool:
    if comparison is Comparison.LESS:
        return value < comparand
    if comparison is Comparison.GREATER:
        return value > comparand
    return value == comparand


def _eval_type(criterion: Criterion, entry: FSEntry) -> bool:
    return entry.file_type == criterion.comparand


def _eval_name(criterion: Criterion, entry: FSEntry) -> bool:
    return criterion.comparand.search(entry.name) is not None


def _eval_regex(criterion: Criterion, entry: FSEntry) -> bool:
    return criterion.comparand.search(entry.path) is not None


def _eval_uid(criterion: Criterion, entry: FSEntry) -> bool:
    return entry.uid == criterion.comparand


def _eval_gid(criterion: Criterion, entry: FSEntry) -> bool:
    return entry.gid == criterion.comparand


def _eval_empty(criterion: Criterion, entry: FSEntry) -> bool:
    if entry.is_dir:
        return entry.is_empty_dir is True
    return entry.size == 0


def _eval_time(criterion: Criterion, entry: FSEntry) -> bool:
    attribute, unit = _TIME_KINDS[criterion.kind]
    timestamp = getattr(entry, attribute)
    bucket = timestamp - timestamp % unit
    # newer-than is "-N", so the sign reads opposite to the bucket order
    if criterion.comparison is Comparison.LESS:
        return bucket > criterion.comparand
    if criterion.comparison is Comparison.GREATER:
        return bucket < criterion.comparand
    return bucket == criterion.comparand


def _eval_size(criterion: Criterion, entry: FSEntry) -> bool:
    return _compare(entry.size, criterion.comparand, criterion.comparison)


def _eval_mode(criterion: Criterion, entry: FSEntry) -> bool:
    wanted = criterion.comparand
    bits = entry.mode & 0o7777
    if criterion.comparison is Comparison.LESS:
        return (bits & wanted) < wanted
    if criterion.comparison is Comparison.GREATER:
        return (bits & wanted) >= wanted
    return bits == wanted


_EVALUATORS: dict[Kind, Callable[[Criterion, FSEntry], bool]] = {
    Kind.TYPE: _eval_type,
    Kind.NAME: _eval_name,
    Kind.INAME: _eval_name,
    Kind.REGEX: _eval_regex,
    Kind.UID: _eval_uid,
    Kind.GID: _eval_gid,
    Kind.EMPTY: _eval_empty,
    Kind.MTIME: _eval_time,
    Kind.ATIME: _eval_time,
    Kind.MMIN: _eval_time,
    Kind.AMIN: _eval_time,
    Kind.SIZE: _eval_size,
    Kind.MODE: _eval_mode,
}


def _signed(pattern: re.Pattern, kind: Kind, argument: str) -> re.Match:
    match = pattern.fullmatch(argument)
    if match is None:
        raise CriteriaError(f"invalid argument '{argument}' to -{kind.value}")
    return match


def _compile_pattern(kind: Kind, argument: str, flags: int = 0) -> re.Pattern:
    try:
        return re.compile(argument, flags)
    except re.error as err:
        raise CriteriaError(f"invalid regular expression '{argument}' to -{kind.value}: {err}") from err


def _compile_one(kind: Kind, argument: Optional[str], negate: bool, now: int) -> Criterion:
    if kind in _ARGUMENTLESS:
        return Criterion(kind, negate=negate)
    if argument is None:
        raise CriteriaError(f'missing argument to -{kind.value}')

    if kind is Kind.TYPE:
        if argument not in _TYPE_LETTERS:
            raise CriteriaError(f"unknown argument to -type: '{argument}'")
        return Criterion(kind, _TYPE_LETTERS[argument], negate=negate)
    if kind is Kind.NAME or kind is Kind.REGEX:
        return Criterion(kind, _compile_pattern(kind, argument), negate=negate)
    if kind is Kind.INAME:
        return Criterion(kind, _compile_pattern(kind, argument, re.IGNORECASE), negate=negate)
    if kind is Kind.UID or kind is Kind.GID:
        sign, digits = _signed(_NUMBER_RE, kind, argument).groups()
        if sign:
            raise CriteriaError(f"invalid argument '{argument}' to -{kind.value}")
        return Criterion(kind, int(digits), negate=negate)
    if kind in _TIME_KINDS:
        sign, digits = _signed(_NUMBER_RE, kind, argument).groups()
        unit = _TIME_KINDS[kind][1]
        reference = now - now % unit - int(digits) * unit
        return Criterion(kind, reference, Comparison(sign), negate)
    if kind is Kind.SIZE:
        sign, digits, suffix = _signed(_SIZE_RE, kind, argument).groups()
        return Criterion(kind, int(digits) * _SIZE_UNITS[suffix.lower()], Comparison(sign), negate)
    if kind is Kind.MODE:
        sign, digits = _signed(_OCTAL_RE, kind, argument).groups()
        return Criterion(kind, int(digits, 8), Comparison(sign), negate)
    raise CriteriaError(f'unknown predicate -{kind.value}')


def compile_criteria(
    tokens: Iterable[tuple[str, Optional[str]]],
    now: Optional[int] = None
) -> tuple[Criterion, ...]:
    """Compile predicate tokens.

    Parameters
    ----------
    tokens : Iterable[tuple[str, Optional[str]]]
        ``(token, argument)`` pairs in command-line order, token names
        without the leading dash. Negation tokens carry no argument.
    now : Optional[int], default=None
        Reference instant for the time tests, defaults to the current time.

    Returns
    -------
    tuple[Criterion, ...]
        Compiled criteria in the same order.

    Raises
    ------
    CriteriaError
        On unknown, unsupported or malformed tokens, or a trailing negation.
    """
    if now is None:
        now = int(time.time())
    criteria = []
    negate = False
    for token, argument in tokens:
        if token in NEGATION_TOKENS:
            negate = True
            continue
        if token in UNSUPPORTED_TOKENS:
            raise CriteriaError(f'-{token} is not supported')
        try:
            kind = Kind(token)
        except ValueError:
            raise CriteriaError(f'unknown predicate -{token}') from None
        criteria.append(_compile_one(kind, argument, negate, now))
        negate = False
    if negate:
        raise CriteriaError('negation is not followed by a predicate')
    return tuple(criteria)


def matches(criteria: Iterable[Criterion], entry: FSEntry) -> bool:
    return all(criterion.test(entry) for criterion in criteria)
