"""
Client protocol consumed by every registry operation.

Registry helpers depend on this abstract method surface rather than a specific
store implementation, so the in-memory client and optional external backends
such as Redis can be swapped without changing any coordination logic.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class CreateMode(str, Enum):
    """
    Lifetime of a newly created node.

    PERSISTENT
        Node survives the creating session.
    EPHEMERAL
        Node is bound to the creating session and removed when it closes.
        Ephemeral nodes cannot have children and are never copied.
    """

    PERSISTENT = "persistent"
    EPHEMERAL = "ephemeral"


class EventType(str, Enum):
    """Kinds of one-shot data watch notifications."""

    CHANGED = "changed"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class WatchedEvent:
    """Notification delivered to a data watch callback."""

    type: EventType
    path: str


Watcher = Callable[[WatchedEvent], None]


@dataclass(frozen=True, slots=True)
class NodeStat:
    """
    Node metadata returned by :meth:`CoordinationClient.exists`.

    Timestamps are epoch milliseconds.
    """

    ctime: int
    mtime: int
    version: int = 0
    ephemeral_owner: str | None = None
    num_children: int = 0
    data_length: int = 0

    @property
    def is_ephemeral(self) -> bool:
        """Return true when the node is bound to a client session."""
        return bool(self.ephemeral_owner)


class CoordinationClient(Protocol):
    """
    Behavioral contract for hierarchical coordination store clients.

    Implementations must be safe for concurrent use. Store conditions are
    reported with :mod:`fabric_registry.exceptions` ``StoreError`` subclasses:
    ``NoNodeError``, ``NodeExistsError``, ``NotEmptyError``, ``ReadOnlyError``
    and ``ConnectionLossError``.
    """

    def exists(self, path: str) -> NodeStat | None:
        """Return node metadata, or ``None`` when the node is absent."""

    def get_data(self, path: str, watch: Watcher | None = None) -> bytes | None:
        """
        Return node payload (``None`` for a node without payload).

        Raises ``NoNodeError`` when the node is missing. ``watch`` is invoked
        once on the next change or deletion of the node.
        """

    def set_data(self, path: str, data: bytes | None) -> None:
        """Replace node payload; raises ``NoNodeError`` when missing."""

    def create(
        self,
        path: str,
        data: bytes | None = None,
        *,
        mode: CreateMode = CreateMode.PERSISTENT,
        make_parents: bool = False,
    ) -> str:
        """
        Create a node and return its path.

        Raises ``NodeExistsError`` when present and ``NoNodeError`` when the
        parent is missing and ``make_parents`` is false. Auto-created parents
        are always persistent.
        """

    def get_children(self, path: str) -> list[str]:
        """Return child names; raises ``NoNodeError`` when missing."""

    def delete(self, path: str) -> None:
        """Delete a childless node; raises ``NoNodeError``/``NotEmptyError``."""

    def close(self) -> None:
        """End the client session, removing its ephemeral nodes."""
