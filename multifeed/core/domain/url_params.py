"""Query-string and name-list helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import parse_qsl, unquote, urlsplit

_WHITESPACE = re.compile(r"\s+")


def get_query_param(url: str, param: str) -> str | None:
    """Return the value of ``param`` in the URL query, matching the key case-insensitively."""
    query = urlsplit(url.strip()).query
    if not query or f"{param.lower()}=" not in query.lower():
        return None

    for key, value in parse_qsl(query, keep_blank_values=True):
        if key.lower() == param.lower():
            return unquote(value) or None
    return None


def split_names(names: str | Iterable[str] | None) -> list[str]:
    """Split a whitespace-separated name list, or flatten an iterable of names.

    Empty entries are dropped, order and duplicates are kept.
    """
    if names is None:
        return []
    if isinstance(names, str):
        return [n for n in _WHITESPACE.split(names.strip()) if n]

    result: list[str] = []
    for entry in names:
        if isinstance(entry, str):
            result.extend(split_names(entry))
    return result
