"""
Unit tests for the in-memory coordination client.
"""

from __future__ import annotations

import unittest

from fabric_registry.client_protocol import CreateMode, EventType, WatchedEvent
from fabric_registry.exceptions import (
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    ReadOnlyError,
)
from fabric_registry.memory import InMemoryCoordinationClient, MemoryTree


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, value: float = 1000.0) -> None:
        self.value = value

    def __call__(self) -> float:
        return self.value


class InMemoryCoordinationClientTest(unittest.TestCase):
    """
    Validates node lifecycle, sessions, and watches of the in-memory store.
    """

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.tree = MemoryTree(clock=self.clock)
        self.client = InMemoryCoordinationClient(self.tree)

    def test_create_and_read_node(self) -> None:
        self.client.create("/a", b"payload")
        self.assertEqual(b"payload", self.client.get_data("/a"))
        self.assertEqual(["a"], self.client.get_children("/"))

    def test_node_without_payload_reads_as_none(self) -> None:
        self.client.create("/a")
        self.assertIsNone(self.client.get_data("/a"))

    def test_create_requires_parent_unless_requested(self) -> None:
        with self.assertRaises(NoNodeError):
            self.client.create("/a/b", b"x")
        self.client.create("/a/b/c", b"x", make_parents=True)
        self.assertIsNone(self.client.get_data("/a"))
        self.assertEqual(b"x", self.client.get_data("/a/b/c"))

    def test_create_existing_node_fails(self) -> None:
        self.client.create("/a")
        with self.assertRaises(NodeExistsError):
            self.client.create("/a")
        with self.assertRaises(NodeExistsError):
            self.client.create("/")

    def test_missing_node_errors(self) -> None:
        self.assertIsNone(self.client.exists("/missing"))
        with self.assertRaises(NoNodeError):
            self.client.get_data("/missing")
        with self.assertRaises(NoNodeError):
            self.client.set_data("/missing", b"x")
        with self.assertRaises(NoNodeError):
            self.client.delete("/missing")

    def test_delete_non_empty_node_fails(self) -> None:
        self.client.create("/a/b", make_parents=True)
        with self.assertRaises(NotEmptyError):
            self.client.delete("/a")
        self.client.delete("/a/b")
        self.client.delete("/a")
        self.assertIsNone(self.client.exists("/a"))

    def test_children_are_sorted(self) -> None:
        for name in ("c", "a", "b"):
            self.client.create(f"/p/{name}", make_parents=True)
        self.assertEqual(["a", "b", "c"], self.client.get_children("/p"))

    def test_set_data_updates_version_and_mtime(self) -> None:
        self.client.create("/a", b"1")
        before = self.client.exists("/a")
        self.clock.value += 5
        self.client.set_data("/a", b"2")
        after = self.client.exists("/a")
        self.assertEqual(before.version + 1, after.version)
        self.assertEqual(before.mtime + 5000, after.mtime)
        self.assertEqual(before.ctime, after.ctime)
        self.assertEqual(1, after.data_length)

    def test_ephemeral_nodes_belong_to_their_session(self) -> None:
        other = InMemoryCoordinationClient(self.tree)
        other.create("/live", b"x", mode=CreateMode.EPHEMERAL)
        stat = self.client.exists("/live")
        self.assertTrue(stat.is_ephemeral)
        self.assertEqual(other.session_id, stat.ephemeral_owner)

        self.client.close()
        self.assertIsNotNone(other.exists("/live"))
        other.close()
        self.assertIsNone(self.client.exists("/live"))

    def test_ephemeral_nodes_cannot_have_children(self) -> None:
        self.client.create("/live", mode=CreateMode.EPHEMERAL)
        with self.assertRaises(NoNodeError):
            self.client.create("/live/child")

    def test_read_only_tree_rejects_mutations(self) -> None:
        self.client.create("/a", b"1")
        self.tree.read_only = True
        with self.assertRaises(ReadOnlyError):
            self.client.set_data("/a", b"2")
        with self.assertRaises(ReadOnlyError):
            self.client.create("/b")
        with self.assertRaises(ReadOnlyError):
            self.client.delete("/a")
        self.assertEqual(b"1", self.client.get_data("/a"))

    def test_watch_fires_once(self) -> None:
        events: list[WatchedEvent] = []
        self.client.create("/a", b"1")
        self.client.get_data("/a", watch=events.append)
        self.client.set_data("/a", b"2")
        self.client.set_data("/a", b"3")
        self.assertEqual([WatchedEvent(EventType.CHANGED, "/a")], events)

        self.client.get_data("/a", watch=events.append)
        self.client.delete("/a")
        self.assertEqual(WatchedEvent(EventType.DELETED, "/a"), events[-1])
        self.assertEqual(2, len(events))

    def test_watch_callback_may_reenter_store(self) -> None:
        seen: list[bytes | None] = []
        self.client.create("/a", b"1")
        self.client.get_data("/a", watch=lambda event: seen.append(self.client.get_data(event.path)))
        self.client.set_data("/a", b"2")
        self.assertEqual([b"2"], seen)


if __name__ == "__main__":
    unittest.main()
