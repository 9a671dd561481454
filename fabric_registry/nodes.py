"""
Node-level helpers shared by every registry component.

The helpers smooth over two store behaviors callers should not have to repeat:

* reads of missing nodes return ``None`` instead of raising
* writes create the node (and its parents) first when it is absent, treating a
  concurrent creator winning the race as success
"""

from __future__ import annotations

import logging

from .client_protocol import CoordinationClient, CreateMode, NodeStat, Watcher
from .exceptions import NodeExistsError, NoNodeError

_LOGGER = logging.getLogger(__name__)
_ENCODING = "utf-8"


def _encode(value: str | bytes | None) -> bytes | None:
    if value is None or isinstance(value, bytes):
        return value
    return value.encode(_ENCODING)


def exists(client: CoordinationClient, path: str) -> NodeStat | None:
    """Return node metadata, or ``None`` when absent."""
    return client.exists(path)


def get_data(
    client: CoordinationClient,
    path: str,
    watch: Watcher | None = None,
) -> bytes | None:
    """
    Return node payload, or ``None`` when the node or its payload is absent.
    """
    try:
        return client.get_data(path, watch)
    except NoNodeError:
        return None


def get_string_data(
    client: CoordinationClient,
    path: str,
    watch: Watcher | None = None,
) -> str | None:
    """
    Return node payload decoded as UTF-8, or ``None`` when absent.

    Invalid byte sequences decode to U+FFFD instead of failing.
    """
    data = get_data(client, path, watch)
    if data is None:
        return None
    return data.decode(_ENCODING, "replace")


def create(
    client: CoordinationClient,
    path: str,
    data: str | bytes | None = None,
    mode: CreateMode = CreateMode.PERSISTENT,
) -> str:
    """Create ``path`` with its missing parents and return the path."""
    return client.create(path, _encode(data), mode=mode, make_parents=True)


def create_default(client: CoordinationClient, path: str, value: str | bytes | None) -> bool:
    """
    Create ``path`` holding ``value`` only when it does not exist yet.

    Returns
    -------
    bool
        True when this call created the node.
    """
    if client.exists(path) is not None:
        return False
    try:
        client.create(path, _encode(value), make_parents=True)
    except NodeExistsError:
        return False
    return True


def set_data(
    client: CoordinationClient,
    path: str,
    value: str | bytes | None,
    mode: CreateMode = CreateMode.PERSISTENT,
) -> None:
    """
    Write ``value`` to ``path``, creating the node and its parents if needed.

    ``mode`` only applies when the node is created by this call.
    """
    data = _encode(value)
    while True:
        if client.exists(path) is None:
            try:
                client.create(path, data, mode=mode, make_parents=True)
                return
            except NodeExistsError:
                _LOGGER.debug("Node %s created concurrently; writing data instead", path)
        try:
            client.set_data(path, data)
            return
        except NoNodeError:
            # Deleted between the existence check and the write; create it again.
            _LOGGER.debug("Node %s vanished before write; retrying create", path)


def delete(client: CoordinationClient, path: str) -> None:
    """Delete one childless node."""
    client.delete(path)


def get_children(client: CoordinationClient, path: str) -> list[str]:
    """Return child names of ``path``; raises ``NoNodeError`` when missing."""
    return client.get_children(path)


def get_children_safe(client: CoordinationClient, path: str) -> list[str]:
    """Return child names of ``path``, or an empty list when it is missing."""
    try:
        return client.get_children(path)
    except NoNodeError:
        return []
