"""Parser for chmod-style mode specifications.

A specification is a comma-separated list of clauses. A clause is either
an octal literal (``0644``, ``4755``) or a symbolic clause such as
``u+x``, ``go-w`` or ``a=r+w``. Each clause compiles into one or more
:class:`ModeOp`, which are applied to a starting mode in order.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

PERMISSION_BITS = 0o7777

_OCTAL_RE = re.compile(r'[0-7]{3,4}')
_SYMBOLIC_RE = re.compile(r'([ugoa]*)((?:[-+=][rwxst]+)+)')
_ACTION_RE = re.compile(r'([-+=])([rwxst]+)')

_LETTER_BITS = {
    'r': 0o444,
    'w': 0o222,
    'x': 0o111,
    's': 0o6000,
    't': 0o1000,
}

_WHO_BITS = {
    'u': 0o4700,
    'g': 0o2070,
    'o': 0o0007,
}


class ModeSpecError(ValueError):
    pass


@dataclass(frozen=True)
class ModeOp:
    """One set/add/clear step of a mode specification.

    Only the first present mask is used: ``set_mask`` replaces the
    permission bits, ``add_mask`` ORs bits in and ``clear_mask`` ANDs
    them out.
    """

    set_mask: Optional[int] = None
    add_mask: Optional[int] = None
    clear_mask: Optional[int] = None

    def apply(self, mode: int) -> int:
        if self.set_mask is not None:
            return (mode & ~PERMISSION_BITS) | self.set_mask
        if self.add_mask is not None:
            return mode | self.add_mask
        if self.clear_mask is not None:
            return mode & ~self.clear_mask
        return mode


def _who_mask(who: str) -> int:
    if not who or 'a' in who:
        who = 'ugo'
    mask = 0o1000
    for letter in who:
        mask |= _WHO_BITS[letter]
    return mask


def _parse_clause(clause: str) -> list[ModeOp]:
    if _OCTAL_RE.fullmatch(clause):
        return [ModeOp(set_mask=int(clause, 8) & PERMISSION_BITS)]

    match = _SYMBOLIC_RE.fullmatch(clause)
    if match is None:
        raise ModeSpecError(f"invalid mode clause: '{clause}'")
    who, actions = match.groups()
    allowed = _who_mask(who)

    ops = []
    for operator, letters in _ACTION_RE.findall(actions):
        bits = 0
        for letter in letters:
            bits |= _LETTER_BITS[letter]
        bits &= allowed
        if operator == '=':
            ops.append(ModeOp(set_mask=bits))
        elif operator == '+':
            ops.append(ModeOp(add_mask=bits))
        else:
            ops.append(ModeOp(clear_mask=bits))
    return ops


def parse_mode_spec(spec: str) -> tuple[ModeOp, ...]:
    """Compile a mode specification.

    Parameters
    ----------
    spec : str
        Comma-separated octal or symbolic clauses.

    Returns
    -------
    tuple[ModeOp, ...]
        Operations in application order.

    Raises
    ------
    ModeSpecError
        If any clause is malformed.
    """
    if not spec:
        raise ModeSpecError('empty mode specification')
    ops: list[ModeOp] = []
    for clause in spec.split(','):
        ops.extend(_parse_clause(clause))
    return tuple(ops)


def apply_mode_spec(ops: Iterable[ModeOp], mode: int) -> int:
    for op in ops:
        mode = op.apply(mode)
    return mode
