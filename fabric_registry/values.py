"""
Space-delimited value lists stored as node data.
"""

from __future__ import annotations

import logging
import re

from . import nodes
from .client_protocol import CoordinationClient
from .exceptions import InvalidArgumentError

_LOGGER = logging.getLogger(__name__)
_SPLIT = re.compile(r" +")
# String.trim() semantics: strip every character up to and including U+0020.
_TRIM_CHARS = "".join(chr(code) for code in range(0x21))


def _tokens(data: str | None) -> list[str]:
    if not data:
        return []
    stripped = data.strip(_TRIM_CHARS)
    if not stripped:
        return []
    return _SPLIT.split(stripped)


def get_values(client: CoordinationClient, path: str) -> list[str]:
    """Return the tokens stored at ``path`` (empty when the node is missing)."""
    return _tokens(nodes.get_string_data(client, path))


def add(client: CoordinationClient, path: str, value: str) -> None:
    """
    Append ``value`` to the list at ``path``, creating the node if needed.

    Duplicates are not suppressed.
    """
    data = nodes.get_string_data(client, path) or ""
    if data:
        data += " "
    data += value
    nodes.set_data(client, path, data)


def remove(client: CoordinationClient, path: str, pattern: str | re.Pattern[str]) -> bool:
    """
    Remove every token that fully matches the regular expression ``pattern``.

    Matching is :func:`re.fullmatch`, so ``"a"`` removes ``a`` but not
    ``ab``. A missing node is left alone.

    Returns
    -------
    bool
        True when at least one token was removed and the node rewritten.
    """
    if isinstance(pattern, str):
        try:
            matcher = re.compile(pattern)
        except re.error as exc:
            raise InvalidArgumentError(f"Invalid value pattern {pattern!r}: {exc}") from exc
    else:
        matcher = pattern
    if client.exists(path) is None:
        return False
    tokens = _tokens(nodes.get_string_data(client, path))
    remaining = [token for token in tokens if matcher.fullmatch(token) is None]
    if len(remaining) == len(tokens):
        return False
    _LOGGER.debug("Removed %d value(s) from %s", len(tokens) - len(remaining), path)
    nodes.set_data(client, path, " ".join(remaining))
    return True
