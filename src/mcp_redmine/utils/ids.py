"""Helpers for telling numeric IDs apart from names."""

import re

_INTEGER_RE = re.compile(r"[+-]?\d+")


def parse_id(value: str | int) -> int | None:
    """Return ``value`` as an ID if it is an integer or an integer string.

    Anything else (names, keywords, floats such as ``"1.5"``) yields None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = value.strip()
    if _INTEGER_RE.fullmatch(text):
        return int(text)
    return None


def require_id(value: str | int, what: str = "ID") -> int:
    """Like ``parse_id`` but for callers that need an already-resolved ID.

    Raises:
        ValueError: If ``value`` is not an integer or an integer string
    """
    parsed = parse_id(value)
    if parsed is None:
        raise ValueError(f"{what} {value!r} is not a numeric ID")
    return parsed
