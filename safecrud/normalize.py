"""
Input normalization applied to every bound value.

This is a presentation-layer pass (it keeps stray markup and escape sequences
out of stored text). It is NOT an injection defense; values always reach the
database through parameter binding.
"""
from __future__ import annotations

import html
import re
from typing import Any

_BACKSLASH_ESCAPE = re.compile(r"\\(.?)", re.DOTALL)


def _unescape(match: re.Match[str]) -> str:
    char = match.group(1)
    return "\0" if char == "0" else char


def strip_slashes(value: str) -> str:
    """
    Remove backslash escapes.

    ``\\x`` becomes ``x``, ``\\\\`` becomes ``\\``, ``\\0`` becomes NUL and a
    trailing lone backslash is dropped.
    """
    return _BACKSLASH_ESCAPE.sub(_unescape, value)


def normalize(value: Any) -> Any:
    """
    Trim, strip backslash escapes and HTML-escape a string value.

    Non-string scalars (numbers, booleans, None, dates) are returned unchanged
    so the driver can bind them with their native type.

    Example:
        >>> normalize("  <b>O\\'Neil</b> ")
        '&lt;b&gt;O&#039;Neil&lt;/b&gt;'
    """
    if not isinstance(value, str):
        return value
    escaped = html.escape(strip_slashes(value.strip()), quote=True)
    # Match htmlspecialchars, which writes the apostrophe as a decimal entity.
    return escaped.replace("&#x27;", "&#039;")
