"""
Escaping of untrusted values for LDAP search filters (RFC 4515).
"""

from typing import List, Optional, Sequence, Union

# Characters with a special meaning inside a filter value
_FILTER_META = {
    "\\": "\\5c",
    "*": "\\2a",
    "(": "\\28",
    ")": "\\29",
}


def asc2hex32(value: str) -> str:
    """Convert every character below 0x20 to its backslash-hex form."""
    return "".join(f"\\{ord(ch):02x}" if ord(ch) < 32 else ch for ch in value)


def _escape_one(value: Optional[str]) -> str:
    if value is None:
        return "\\00"

    if isinstance(value, bytes):
        value = value.decode("utf-8")

    escaped = "".join(_FILTER_META.get(ch, ch) for ch in str(value))
    return asc2hex32(escaped)


def escape_filter_value(
    values: Union[None, str, Sequence[Optional[str]]] = None, single_value: bool = True
) -> Union[str, List[str]]:
    """
    Escape one or more values so they can be embedded in an LDAP filter.

    The filter meta characters ``\\``, ``*``, ``(`` and ``)`` and any control
    character below 0x20 are replaced by a backslash followed by two hex digits.
    ``None`` becomes the escaped NUL (``\\00``).

    Args:
        values: A single value or a list of values
        single_value: Return only the first escaped value instead of a list

    Returns:
        The escaped string, or a list with the same shape as the input

    Examples:
        >>> escape_filter_value("a*(b)")
        'a\\\\2a\\\\28b\\\\29'
    """
    if values is None or isinstance(values, (str, bytes)):
        values = [values]

    escaped = [_escape_one(value) for value in values]

    if single_value:
        if not escaped:
            return ""
        return escaped[0]

    return escaped
