"""
Recursive tree operations over a coordination store.

Copy
----
:func:`copy` and :func:`copy_within` seed a destination subtree from a source
subtree. They are additive: a destination node that already exists is never
overwritten and its subtree is never revisited, so re-running a copy after a
partial failure converges without touching data that was already in place.
Ephemeral nodes are always skipped because they are only valid for the session
that created them.

Delete
------
:func:`delete_safe` removes a whole subtree depth-first. A concurrent writer
adding a child between enumeration and deletion makes the store report the
node as non-empty; the whole deletion is then retried instead of failing.
:func:`delete_safe_up_to` additionally prunes ancestors that became empty, up
to (and excluding) a set of boundary paths.

None of these operations is transactional. A crash mid-traversal leaves a
partial result that the same call repairs when invoked again.
"""

from __future__ import annotations

import logging

from .client_protocol import CoordinationClient
from .exceptions import InvalidArgumentError, NodeExistsError, NoNodeError, NotEmptyError
from .paths import ROOT, get_parent, is_ancestor, make_path, validate_path

_LOGGER = logging.getLogger(__name__)


def _copy_node(
    source: CoordinationClient,
    dest: CoordinationClient,
    from_path: str,
    to_path: str,
) -> None:
    try:
        children = source.get_children(from_path)
    except NoNodeError:
        return
    for child in children:
        from_child = make_path(from_path, child)
        to_child = make_path(to_path, child)
        stat = source.exists(from_child)
        if stat is None or stat.is_ephemeral:
            continue
        if dest.exists(to_child) is not None:
            continue
        try:
            data = source.get_data(from_child)
        except NoNodeError:
            continue
        try:
            dest.create(to_child, data, make_parents=True)
        except NodeExistsError:
            _LOGGER.debug("Skipping %s: created concurrently at destination", to_child)
            continue
        _LOGGER.debug("Copied %s -> %s", from_child, to_child)
        _copy_node(source, dest, from_child, to_child)


def copy(source: CoordinationClient, dest: CoordinationClient, path: str) -> None:
    """
    Copy the non-ephemeral subtree below ``path`` from one store to another.

    ``path`` itself is not copied, only its descendants. Existing destination
    nodes keep their data.
    """
    validate_path(path)
    _copy_node(source, dest, path, path)


def copy_within(client: CoordinationClient, from_path: str, to_path: str) -> None:
    """
    Copy the non-ephemeral subtree below ``from_path`` to below ``to_path``.

    Raises
    ------
    InvalidArgumentError
        When ``to_path`` equals or lies inside ``from_path``; copying a tree
        into itself would never terminate.
    """
    validate_path(from_path)
    validate_path(to_path)
    if to_path == from_path or is_ancestor(from_path, to_path):
        raise InvalidArgumentError(
            f"Cannot copy {from_path} into its own subtree {to_path}."
        )
    _copy_node(client, client, from_path, to_path)


def _delete_tree(client: CoordinationClient, path: str) -> None:
    while True:
        try:
            children = client.get_children(path)
        except NoNodeError:
            return
        for child in children:
            _delete_tree(client, make_path(path, child))
        try:
            client.delete(path)
            return
        except NoNodeError:
            return
        except NotEmptyError:
            _LOGGER.debug("Node %s gained a child during deletion; retrying", path)


def delete_safe(client: CoordinationClient, path: str) -> None:
    """
    Delete ``path`` and all of its descendants.

    A missing node is a no-op; afterwards ``path`` does not exist.
    """
    validate_path(path)
    if path == ROOT:
        raise InvalidArgumentError("Refusing to delete the root node.")
    _delete_tree(client, path)


def delete_safe_up_to(client: CoordinationClient, path: str, *boundaries: str) -> None:
    """
    Delete ``path`` with its subtree, then prune ancestors left empty.

    The walk upwards stops at the first ancestor that is one of
    ``boundaries`` (which is kept), that still has children, or at the root.
    Nothing happens when ``path`` does not exist.
    """
    validate_path(path)
    if path == ROOT:
        raise InvalidArgumentError("Refusing to delete the root node.")
    if client.exists(path) is None:
        return
    _delete_tree(client, path)

    stops = set(boundaries)
    parent = get_parent(path)
    while parent != ROOT and parent not in stops:
        try:
            if client.get_children(parent):
                break
            client.delete(parent)
        except NotEmptyError:
            break
        except NoNodeError:
            # Pruned concurrently; keep walking from where it was.
            pass
        _LOGGER.debug("Pruned empty ancestor %s", parent)
        parent = get_parent(parent)


def get_all_children(client: CoordinationClient, path: str) -> list[str]:
    """Return full paths of every descendant of ``path``, parents first."""
    result: list[str] = []
    for child in client.get_children(path):
        full_path = make_path(path, child)
        result.append(full_path)
        result.extend(get_all_children(client, full_path))
    return result


def last_modified(client: CoordinationClient, path: str) -> int:
    """
    Return the latest modification time (epoch ms) of the subtree's leaves.

    Inner nodes only contribute through their leaves, matching how leaf
    configuration data drives change detection.
    """
    children = client.get_children(path)
    if not children:
        stat = client.exists(path)
        if stat is None:
            raise NoNodeError(f"No node at {path}", path=path)
        return stat.mtime
    return max(last_modified(client, make_path(path, child)) for child in children)
