"""
Key/value property blobs stored as node data.

Nodes holding configuration use the Java ``.properties`` text format:
``key=value`` lines, ``#``/``!`` comment lines, and ``\\`` escapes and line
continuations. Operators edit these blobs by hand, so writes must not reformat
them: :class:`PropertiesDocument` keeps every physical line it parsed and
:meth:`PropertiesDocument.merge` only rewrites the lines of entries whose value
actually changed. Comment and blank lines are never rewritten.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from . import nodes
from .client_protocol import CoordinationClient, Watcher
from .exceptions import NodeExistsError

_LOGGER = logging.getLogger(__name__)

_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_COMMENT_MARKERS = "#!"
_UNESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_ESCAPES = {"\\": "\\\\", "\t": "\\t", "\n": "\\n", "\r": "\\r", "\f": "\\f"}
_ENCODING = "utf-8"
# Only CR, LF and CRLF end a line; other Unicode breaks are value characters.
_LINE_BREAK = re.compile(r"(\r\n|\r|\n)")


@dataclass(slots=True)
class _Entry:
    """
    One logical unit of a properties document.

    ``key`` is ``None`` for comment and blank lines.
    """

    lines: list[str]
    key: str | None = None
    value: str | None = None
    prefix: str | None = field(default=None)


def _split_lines(text: str) -> list[str]:
    parts = _LINE_BREAK.split(text)
    lines = [parts[index] + parts[index + 1] for index in range(0, len(parts) - 1, 2)]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _strip_terminator(line: str) -> tuple[str, str]:
    content = line.rstrip("\r\n")
    return content, line[len(content):]


def _continues(content: str) -> bool:
    trailing = len(content) - len(content.rstrip("\\"))
    return trailing % 2 == 1


def _unescape(text: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char != "\\" or index + 1 >= len(text):
            out.append(char)
            index += 1
            continue
        marker = text[index + 1]
        if marker == "u" and index + 6 <= len(text):
            try:
                out.append(chr(int(text[index + 2:index + 6], 16)))
                index += 6
                continue
            except ValueError:
                pass
        out.append(_UNESCAPES.get(marker, marker))
        index += 2
    return "".join(out)


def _split_logical(logical: str) -> tuple[str, str, int, bool]:
    """
    Split a logical line into ``(key, value, value_offset, separated)``.

    ``separated`` is false for bare keys with no separator after them.
    """
    index = 0
    length = len(logical)
    while index < length and logical[index] in _WHITESPACE:
        index += 1
    key_start = index
    while index < length:
        char = logical[index]
        if char == "\\":
            index += 2
            continue
        if char in _SEPARATORS or char in _WHITESPACE:
            break
        index += 1
    index = min(index, length)
    key_end = index
    raw_key = logical[key_start:key_end]
    while index < length and logical[index] in _WHITESPACE:
        index += 1
    if index < length and logical[index] in _SEPARATORS:
        index += 1
        while index < length and logical[index] in _WHITESPACE:
            index += 1
    return _unescape(raw_key), _unescape(logical[index:]), index, index > key_end


def escape_key(key: str) -> str:
    """Escape a key for the left-hand side of a property line."""
    out = []
    for char in key:
        if char in _ESCAPES:
            out.append(_ESCAPES[char])
        elif char in " =:#!":
            out.append("\\" + char)
        else:
            out.append(char)
    return "".join(out)


def escape_value(value: str) -> str:
    """Escape a value for the right-hand side of a property line."""
    escaped = "".join(_ESCAPES.get(char, char) for char in value)
    if escaped.startswith(" "):
        escaped = "\\" + escaped
    return escaped


class PropertiesDocument:
    """
    Layout-preserving model of a ``.properties`` text blob.

    Parsing keeps every physical line; :meth:`dumps` reproduces the input
    exactly until an entry is changed. Duplicate keys follow the usual rule
    that the last occurrence wins.
    """

    def __init__(self, entries: list[_Entry] | None = None) -> None:
        self._entries: list[_Entry] = entries or []

    @classmethod
    def parse(cls, text: str) -> "PropertiesDocument":
        """Parse ``text`` into a document."""
        entries: list[_Entry] = []
        lines = _split_lines(text)
        index = 0
        while index < len(lines):
            line = lines[index]
            content, _ = _strip_terminator(line)
            stripped = content.lstrip(_WHITESPACE)
            if not stripped or stripped[0] in _COMMENT_MARKERS:
                entries.append(_Entry(lines=[line]))
                index += 1
                continue

            physical = [line]
            logical = content
            while _continues(logical) and index + 1 < len(lines):
                index += 1
                physical.append(lines[index])
                next_content, _ = _strip_terminator(lines[index])
                logical = logical[:-1] + next_content.lstrip(_WHITESPACE)
            if _continues(logical):
                logical = logical[:-1]
            index += 1

            key, value, offset, separated = _split_logical(logical)
            prefix = content[:offset] if len(physical) == 1 and separated else None
            entries.append(_Entry(lines=physical, key=key, value=value, prefix=prefix))
        return cls(entries)

    def _last_values(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for entry in self._entries:
            if entry.key is not None:
                values[entry.key] = entry.value or ""
        return values

    def keys(self) -> list[str]:
        """Return keys in first-appearance order."""
        return list(self._last_values())

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the effective value of ``key``."""
        return self._last_values().get(key, default)

    def as_dict(self) -> dict[str, str]:
        """Return the effective key/value mapping."""
        return self._last_values()

    def merge(self, mapping: Mapping[str, object]) -> bool:
        """
        Make ``mapping`` the document's exact key set.

        Keys in both are updated (lines rewritten only when the value differs),
        keys only in ``mapping`` are appended, keys only in the document are
        removed. Comment and blank lines stay where they are.

        Returns
        -------
        bool
            True when the document changed.
        """
        target = {str(key): str(value) for key, value in mapping.items()}
        current = self._last_values()
        changed = False

        last_index: dict[str, int] = {}
        for position, entry in enumerate(self._entries):
            if entry.key is not None:
                last_index[entry.key] = position

        kept: list[_Entry] = []
        for position, entry in enumerate(self._entries):
            if entry.key is None:
                kept.append(entry)
                continue
            if entry.key not in target:
                changed = True
                continue
            if last_index[entry.key] == position and current[entry.key] != target[entry.key]:
                self._rewrite(entry, target[entry.key])
                changed = True
            kept.append(entry)

        for key, value in target.items():
            if key in current:
                continue
            if kept and not kept[-1].lines[-1].endswith(("\n", "\r")):
                kept[-1].lines[-1] += "\n"
            kept.append(
                _Entry(
                    lines=[f"{escape_key(key)}={escape_value(value)}\n"],
                    key=key,
                    value=value,
                    prefix=f"{escape_key(key)}=",
                )
            )
            changed = True

        self._entries = kept
        return changed

    @staticmethod
    def _rewrite(entry: _Entry, value: str) -> None:
        _, terminator = _strip_terminator(entry.lines[-1])
        prefix = entry.prefix
        if prefix is None:
            prefix = f"{escape_key(entry.key or '')}="
        entry.lines = [prefix + escape_value(value) + (terminator or "\n")]
        entry.value = value
        entry.prefix = prefix

    def dumps(self) -> str:
        """Serialize the document back to text."""
        return "".join(line for entry in self._entries for line in entry.lines)


def get_properties(
    client: CoordinationClient,
    path: str,
    watch: Watcher | None = None,
) -> dict[str, str]:
    """
    Read the properties stored at ``path``.

    A missing node or a payload that is not valid UTF-8 yields an empty mapping.
    """
    data = nodes.get_data(client, path, watch)
    if not data:
        return {}
    try:
        text = data.decode(_ENCODING)
    except UnicodeDecodeError:
        _LOGGER.debug("Node %s does not hold UTF-8 properties; treating as empty", path)
        return {}
    return PropertiesDocument.parse(text).as_dict()


def set_properties(client: CoordinationClient, path: str, mapping: Mapping[str, object]) -> None:
    """
    Make ``mapping`` the property set stored at ``path``, keeping formatting.

    The node is created when absent. Lines of untouched entries, comments, and
    blank lines are written back exactly as they were read.
    """
    if client.exists(path) is None:
        try:
            client.create(path, make_parents=True)
        except NodeExistsError:
            pass
    data = nodes.get_data(client, path) or b""
    # surrogateescape keeps bytes of untouched lines intact even if not UTF-8.
    document = PropertiesDocument.parse(data.decode(_ENCODING, "surrogateescape"))
    if not document.merge(mapping):
        return
    nodes.set_data(client, path, document.dumps().encode(_ENCODING, "surrogateescape"))
