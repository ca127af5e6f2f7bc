"""
SQL safety helpers shared by the record store backends.

Values always travel as bound parameters. The helpers here cover the two
places where that is not enough: LIKE wildcards inside user text, and the
identifiers (table and column names) that have to be spliced into SQL.
"""

import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def escape_like_pattern(pattern: str, escape_char: str = "\\") -> str:
    """
    Escape user input for use inside a LIKE pattern.

    ``%`` and ``_`` become literal characters; use the pattern together
    with ``ESCAPE '\\'`` in the clause.

    Examples:
        >>> escape_like_pattern("100%")
        '100\\\\%'
        >>> escape_like_pattern("snake_case")
        'snake\\\\_case'
    """
    if not isinstance(pattern, str):
        raise TypeError(f"Pattern must be a string, got {type(pattern).__name__}")

    if not pattern:
        return ""

    # Escape the escape character first
    result = pattern.replace(escape_char, escape_char + escape_char)
    result = result.replace("%", escape_char + "%")
    return result.replace("_", escape_char + "_")


def contains_pattern(text: str) -> str:
    """Build a ``%text%`` LIKE pattern with wildcards in *text* escaped."""
    return f"%{escape_like_pattern(text)}%"


def validate_identifier(name: str) -> str:
    """Return *name* if it is a safe SQL identifier, else raise ValueError."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


def validate_search_input(query: str, *, max_length: int = 200) -> str:
    """
    Validate and clean free-text search input.

    Enforces a length limit and strips NULL bytes and control characters.

    Raises:
        ValueError: If the query is too long.
    """
    if not isinstance(query, str):
        raise TypeError(f"Query must be a string, got {type(query).__name__}")

    if len(query) > max_length:
        raise ValueError(f"Query exceeds maximum length of {max_length} characters")

    return "".join(char for char in query if char in "\t\n\r" or ord(char) >= 32).strip()
