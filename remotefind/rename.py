"""Name transformations for ``-rename``.

Expressions are compiled into plain ``name -> name`` functions:

* ``s/PATTERN/REPLACEMENT/FLAGS`` substitutes with :mod:`re` syntax, ``g``
  replaces every match and ``i`` ignores case. Any non-alphanumeric
  character may serve as the delimiter.
* ``y/FROM/TO/`` (or ``tr/FROM/TO/``) transliterates characters.
* ``lower`` and ``upper`` fold case.
"""

import re
from typing import Callable

Transform = Callable[[str], str]

_NAMED: dict[str, Transform] = {
    'lower': str.lower,
    'upper': str.upper,
}


class RenameError(ValueError):
    pass


def _split_parts(body: str, delimiter: str, expression: str) -> list[str]:
    parts = []
    current: list[str] = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == '\\' and i + 1 < len(body) and body[i + 1] == delimiter:
            current.append(delimiter)
            i += 2
            continue
        if char == delimiter:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
        i += 1
    parts.append(''.join(current))
    if len(parts) != 3:
        raise RenameError(f"malformed rename expression: '{expression}'")
    return parts


def _substitution(expression: str, body: str, delimiter: str) -> Transform:
    pattern, replacement, flags = _split_parts(body, delimiter, expression)
    if set(flags) - set('gi'):
        raise RenameError(f"unknown flags '{flags}' in rename expression: '{expression}'")
    try:
        regex = re.compile(pattern, re.IGNORECASE if 'i' in flags else 0)
    except re.error as err:
        raise RenameError(f"invalid regular expression in '{expression}': {err}") from err
    count = 0 if 'g' in flags else 1

    def substitute(name: str) -> str:
        try:
            return regex.sub(replacement, name, count=count)
        except (re.error, IndexError) as err:
            raise RenameError(f"cannot apply '{expression}' to '{name}': {err}") from err

    return substitute


def _transliteration(expression: str, body: str, delimiter: str) -> Transform:
    source, target, flags = _split_parts(body, delimiter, expression)
    if flags:
        raise RenameError(f"unknown flags '{flags}' in rename expression: '{expression}'")
    if len(source) != len(target):
        raise RenameError(f"transliteration sets differ in length: '{expression}'")
    table = str.maketrans(source, target)
    return lambda name: name.translate(table)


def _checked(transform: Transform) -> Transform:
    def apply(name: str) -> str:
        result = transform(name)
        if not result or '/' in result or result in ('.', '..'):
            raise RenameError(f"'{name}' would be renamed to invalid name '{result}'")
        return result

    return apply


def compile_rename(expression: str) -> Transform:
    """Compile a rename expression.

    Parameters
    ----------
    expression : str
        Substitution, transliteration or named transform.

    Returns
    -------
    Transform
        Function mapping a base name to its new base name. It raises
        :class:`RenameError` when the result is not a valid name.

    Raises
    ------
    RenameError
        If the expression is malformed.
    """
    if expression in _NAMED:
        return _checked(_NAMED[expression])
    for prefix, builder in (('tr', _transliteration), ('s', _substitution), ('y', _transliteration)):
        if expression.startswith(prefix) and len(expression) > len(prefix):
            delimiter = expression[len(prefix)]
            if delimiter.isalnum() or delimiter.isspace() or delimiter == '\\':
                continue
            body = expression[len(prefix) + 1:]
            return _checked(builder(expression, body, delimiter))
    raise RenameError(f"malformed rename expression: '{expression}'")
