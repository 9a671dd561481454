"""
Thread-safe in-memory coordination store.

The tree owns node payloads, metadata, and children for every session that
shares it. Each :class:`InMemoryCoordinationClient` is one session, so several
clients over one :class:`MemoryTree` model several cluster members talking to
the same ensemble, while clients over separate trees model separate stores.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import RLock

from .client_protocol import CreateMode, EventType, NodeStat, WatchedEvent, Watcher
from .exceptions import NodeExistsError, NoNodeError, NotEmptyError, ReadOnlyError
from .paths import ROOT, get_parent, make_path, split_path, validate_path


@dataclass(slots=True)
class _Node:
    data: bytes | None
    ctime: int
    mtime: int
    ephemeral_owner: str | None = None
    version: int = 0
    children: set[str] = field(default_factory=set)


class MemoryTree:
    """
    Shared node tree backing one or more in-memory client sessions.

    Parameters
    ----------
    clock:
        Time source in epoch seconds used for node timestamps.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = RLock()
        now = self._now_ms()
        self._nodes: dict[str, _Node] = {ROOT: _Node(data=None, ctime=now, mtime=now)}
        self._watches: dict[str, list[Watcher]] = {}
        self.read_only = False

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _require_writable(self, path: str) -> None:
        if self.read_only:
            raise ReadOnlyError("Store is in read-only mode.", path=path)

    def _pop_watches(self, path: str) -> list[Watcher]:
        return self._watches.pop(path, [])

    @staticmethod
    def _fire(watchers: list[Watcher], event: WatchedEvent) -> None:
        # Callbacks run outside the tree lock so they may call back into the store.
        for watcher in watchers:
            watcher(event)

    def exists(self, path: str) -> NodeStat | None:
        validate_path(path)
        with self._lock:
            node = self._nodes.get(path)
            if node is None:
                return None
            return NodeStat(
                ctime=node.ctime,
                mtime=node.mtime,
                version=node.version,
                ephemeral_owner=node.ephemeral_owner,
                num_children=len(node.children),
                data_length=len(node.data) if node.data else 0,
            )

    def get_data(self, path: str, watch: Watcher | None = None) -> bytes | None:
        validate_path(path)
        with self._lock:
            node = self._nodes.get(path)
            if node is None:
                raise NoNodeError(f"No node at {path}", path=path)
            if watch is not None:
                self._watches.setdefault(path, []).append(watch)
            return node.data

    def set_data(self, path: str, data: bytes | None) -> None:
        validate_path(path)
        with self._lock:
            self._require_writable(path)
            node = self._nodes.get(path)
            if node is None:
                raise NoNodeError(f"No node at {path}", path=path)
            node.data = None if data is None else bytes(data)
            node.mtime = self._now_ms()
            node.version += 1
            watchers = self._pop_watches(path)
        self._fire(watchers, WatchedEvent(EventType.CHANGED, path))

    def create(
        self,
        path: str,
        data: bytes | None,
        *,
        owner: str | None,
        make_parents: bool,
    ) -> str:
        validate_path(path)
        if path == ROOT:
            raise NodeExistsError("Root node always exists.", path=path)
        with self._lock:
            self._require_writable(path)
            if path in self._nodes:
                raise NodeExistsError(f"Node already exists: {path}", path=path)
            parent = get_parent(path)
            if parent not in self._nodes:
                if not make_parents:
                    raise NoNodeError(f"Parent node missing: {parent}", path=parent)
                current = ROOT
                for segment in split_path(parent):
                    current = make_path(current, segment)
                    if current not in self._nodes:
                        self._insert(current, None, owner=None)
            self._insert(path, data, owner=owner)
            return path

    def _insert(self, path: str, data: bytes | None, *, owner: str | None) -> None:
        parent = self._nodes[get_parent(path)]
        if parent.ephemeral_owner:
            raise NoNodeError(f"Ephemeral nodes cannot have children: {path}", path=path)
        now = self._now_ms()
        self._nodes[path] = _Node(
            data=None if data is None else bytes(data),
            ctime=now,
            mtime=now,
            ephemeral_owner=owner,
        )
        parent.children.add(path.rsplit("/", 1)[1])

    def get_children(self, path: str) -> list[str]:
        validate_path(path)
        with self._lock:
            node = self._nodes.get(path)
            if node is None:
                raise NoNodeError(f"No node at {path}", path=path)
            return sorted(node.children)

    def delete(self, path: str) -> None:
        validate_path(path)
        with self._lock:
            self._require_writable(path)
            node = self._nodes.get(path)
            if node is None or path == ROOT:
                raise NoNodeError(f"No node at {path}", path=path)
            if node.children:
                raise NotEmptyError(f"Node has children: {path}", path=path)
            del self._nodes[path]
            self._nodes[get_parent(path)].children.discard(path.rsplit("/", 1)[1])
            watchers = self._pop_watches(path)
        self._fire(watchers, WatchedEvent(EventType.DELETED, path))

    def expire_session(self, session_id: str) -> list[str]:
        """Remove every ephemeral node owned by ``session_id``."""
        with self._lock:
            owned = [
                path
                for path, node in self._nodes.items()
                if node.ephemeral_owner == session_id
            ]
        removed = []
        for path in owned:
            try:
                self.delete(path)
            except NoNodeError:
                continue
            removed.append(path)
        return removed


class InMemoryCoordinationClient:
    """
    One client session over a :class:`MemoryTree`.

    Parameters
    ----------
    tree:
        Shared tree; a private tree is created when omitted.
    session_id:
        Session identity used as the owner of ephemeral nodes.
    """

    def __init__(self, tree: MemoryTree | None = None, *, session_id: str | None = None) -> None:
        self.tree = tree if tree is not None else MemoryTree()
        self.session_id = session_id or uuid.uuid4().hex
        self._closed = False

    def exists(self, path: str) -> NodeStat | None:
        return self.tree.exists(path)

    def get_data(self, path: str, watch: Watcher | None = None) -> bytes | None:
        return self.tree.get_data(path, watch)

    def set_data(self, path: str, data: bytes | None) -> None:
        self.tree.set_data(path, data)

    def create(
        self,
        path: str,
        data: bytes | None = None,
        *,
        mode: CreateMode = CreateMode.PERSISTENT,
        make_parents: bool = False,
    ) -> str:
        owner = self.session_id if CreateMode(mode) is CreateMode.EPHEMERAL else None
        return self.tree.create(path, data, owner=owner, make_parents=make_parents)

    def get_children(self, path: str) -> list[str]:
        return self.tree.get_children(path)

    def delete(self, path: str) -> None:
        self.tree.delete(path)

    def close(self) -> None:
        """Close the session and drop its ephemeral nodes."""
        if self._closed:
            return
        self._closed = True
        self.tree.expire_session(self.session_id)
