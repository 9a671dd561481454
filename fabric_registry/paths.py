"""
Path algebra for coordination-store node paths.

Node paths are absolute, ``/``-delimited strings. Every helper here is pure and
never talks to a store.
"""

from __future__ import annotations

from .exceptions import InvalidArgumentError

ROOT = "/"
SEPARATOR = "/"


def _segments(path: str) -> list[str]:
    # str.split keeps trailing empty segments; drop them like Java's split does.
    segments = path.split(SEPARATOR)
    while segments and not segments[-1]:
        segments.pop()
    return segments


def get_parent(path: str) -> str:
    """
    Return the parent path of ``path``.

    Paths with at most two segments (``/`` and direct children of the root)
    resolve to ``/``.

    Raises
    ------
    InvalidArgumentError
        When ``path`` is not a string starting with ``/``.
    """
    if not isinstance(path, str) or not path.startswith(SEPARATOR):
        raise InvalidArgumentError(f"Path is not valid: {path!r}")
    segments = _segments(path)
    if len(segments) <= 2:
        return ROOT
    return SEPARATOR + SEPARATOR.join(segments[1:-1])


def make_path(parent: str, child: str) -> str:
    """Join ``parent`` and ``child`` with exactly one separator."""
    base = parent.rstrip(SEPARATOR)
    name = child.strip(SEPARATOR)
    if not name:
        return base or ROOT
    return f"{base}{SEPARATOR}{name}"


def validate_path(path: str) -> str:
    """
    Validate a node path and return it unchanged.

    Raises
    ------
    InvalidArgumentError
        When the path is empty, relative, has empty or relative segments,
        a trailing separator, or a NUL character.
    """
    if not isinstance(path, str) or not path:
        raise InvalidArgumentError("Path must be a non-empty string.")
    if not path.startswith(SEPARATOR):
        raise InvalidArgumentError(f"Path must be absolute: {path!r}")
    if path == ROOT:
        return path
    if path.endswith(SEPARATOR):
        raise InvalidArgumentError(f"Path must not end with a separator: {path!r}")
    if "\x00" in path:
        raise InvalidArgumentError(f"Path contains a NUL character: {path!r}")
    for segment in path[1:].split(SEPARATOR):
        if not segment:
            raise InvalidArgumentError(f"Path contains an empty segment: {path!r}")
        if segment in {".", ".."}:
            raise InvalidArgumentError(f"Path contains a relative segment: {path!r}")
    return path


def split_path(path: str) -> list[str]:
    """Return the non-empty segments of a validated path (root gives ``[]``)."""
    validate_path(path)
    if path == ROOT:
        return []
    return path[1:].split(SEPARATOR)


def is_ancestor(ancestor: str, path: str) -> bool:
    """Return true when ``ancestor`` is a strict ancestor of ``path``."""
    if ancestor == path:
        return False
    if ancestor == ROOT:
        return path.startswith(SEPARATOR)
    return path.startswith(ancestor.rstrip(SEPARATOR) + SEPARATOR)
