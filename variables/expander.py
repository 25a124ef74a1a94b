"""
Template Expander - ``${...}`` substitution
===========================================

Expansion is a single left-to-right pass over the input:

- At each ``${`` the shortest candidate body up to the first ``}`` is
  read. If it is a valid name it is replaced by its bound value, or by
  nothing when unbound. Substituted values are never re-scanned.
- If the body is invalid (empty, foreign characters, a multi-digit
  number) or there is no closing brace, only the ``$`` is emitted and
  scanning resumes at the next character, so a well-formed reference
  nested inside the rejected span still expands.
- Inside a body a backslash is dropped and the next character is read
  as data, so an escaped ``}`` does not close the body. The escaped
  character must still be a name character; the one exception is an
  escaped backslash, which is kept in the name. Outside a body, a backslash directly before a ``${`` that opens a
  valid reference is dropped; every other backslash is literal.

Expansion never raises: text with no valid reference comes back
unchanged.
"""

import re
import string
from typing import List, Optional, Tuple

from .store import VariableStore

MARKER = "${"

NAME_CHARS = frozenset(string.ascii_letters + string.digits + "_.")

_MULTI_DIGIT_PREFIX = re.compile(r"[0-9]{2}")


def read_reference(text: str, start: int) -> Optional[Tuple[str, int]]:
    """
    Try to read a reference whose ``${`` marker sits at ``start``.

    Args:
        text: Text being scanned
        start: Index of the ``$`` of the marker

    Returns:
        ``(name, end)`` where ``end`` is the index just past the closing
        brace, or None if no valid reference starts here
    """
    pos = start + len(MARKER)
    length = len(text)
    chars: List[str] = []
    valid = True

    while pos < length:
        ch = text[pos]
        if ch == "}":
            break
        if ch == "\\" and pos + 1 < length:
            escaped = text[pos + 1]
            if escaped != "\\" and escaped not in NAME_CHARS:
                valid = False
            chars.append(escaped)
            pos += 2
            continue
        if ch not in NAME_CHARS:
            valid = False
        chars.append(ch)
        pos += 1
    else:
        return None

    name = "".join(chars)
    if not valid or not name or _MULTI_DIGIT_PREFIX.match(name):
        return None
    return name, pos + 1


def expand(text: str, store: VariableStore) -> str:
    """
    Expand every valid ``${name}`` reference in ``text``.

    Args:
        text: Template text
        store: Bindings and captures for the current evaluation

    Returns:
        Expanded text

    Example:
        store.bind("company", "ACME")
        expand("${${company}}", store)  # "${ACME}"
    """
    if MARKER not in text:
        return text

    out: List[str] = []
    pos = 0
    length = len(text)

    while pos < length:
        ch = text[pos]
        if ch == "\\" and text.startswith(MARKER, pos + 1):
            ref = read_reference(text, pos + 1)
            if ref is not None:
                name, pos = ref
                out.append(_resolve(name, store))
                continue
        elif ch == "$" and text.startswith(MARKER, pos):
            ref = read_reference(text, pos)
            if ref is not None:
                name, pos = ref
                out.append(_resolve(name, store))
                continue
        out.append(ch)
        pos += 1

    return "".join(out)


def extract_references(text: str) -> List[str]:
    """
    List the names of all valid references in ``text``, in order.

    Uses the same scan as :func:`expand`, so a name is listed exactly
    when expansion would substitute it.
    """
    names: List[str] = []
    pos = text.find(MARKER)
    while pos >= 0:
        ref = read_reference(text, pos)
        if ref is None:
            pos = text.find(MARKER, pos + 1)
            continue
        name, end = ref
        names.append(name)
        pos = text.find(MARKER, end)
    return names


def _resolve(name: str, store: VariableStore) -> str:
    value = store.lookup(name)
    return "" if value is None else value
