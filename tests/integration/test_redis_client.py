"""
Integration tests for the Redis-backed coordination client.

The tests need a reachable Redis server and are skipped unless
``FABRIC_REGISTRY_REDIS_URL`` points at one, e.g.
``FABRIC_REGISTRY_REDIS_URL=redis://127.0.0.1:6379/15``. Every test uses a
fresh key namespace and removes it afterwards.
"""

from __future__ import annotations

import os
import threading
import unittest
import uuid

from fabric_registry import (
    CreateMode,
    EventType,
    InMemoryCoordinationClient,
    TokenIssuer,
    copy,
    create_client,
    delete_safe,
    get_properties,
    set_properties,
)
from fabric_registry.exceptions import NodeExistsError, NoNodeError, NotEmptyError

REDIS_URL = os.environ.get("FABRIC_REGISTRY_REDIS_URL", "")


@unittest.skipUnless(REDIS_URL, "FABRIC_REGISTRY_REDIS_URL is not set")
class RedisCoordinationClientIntegrationTest(unittest.TestCase):
    """
    Validates that two sessions over one namespace share a single tree.
    """

    def setUp(self) -> None:
        self.namespace = f"fabric-registry-test-{uuid.uuid4().hex}"
        self.client = create_client("redis", redis_url=REDIS_URL, namespace=self.namespace)
        self.peer = create_client("redis", redis_url=REDIS_URL, namespace=self.namespace)

    def tearDown(self) -> None:
        self.client.close()
        self.peer.close()
        redis = self.client._redis
        keys = list(redis.scan_iter(match=f"{self.namespace}:*"))
        if keys:
            redis.delete(*keys)

    def test_nodes_are_shared_between_sessions(self) -> None:
        self.client.create("/a/b", b"payload", make_parents=True)
        self.assertEqual(b"payload", self.peer.get_data("/a/b"))
        self.assertIsNone(self.peer.get_data("/a"))
        self.assertEqual(["b"], self.peer.get_children("/a"))

        self.peer.set_data("/a/b", b"changed")
        stat = self.client.exists("/a/b")
        self.assertEqual(1, stat.version)
        self.assertEqual(7, stat.data_length)

    def test_store_errors(self) -> None:
        self.client.create("/a/b", make_parents=True)
        with self.assertRaises(NodeExistsError):
            self.peer.create("/a/b")
        with self.assertRaises(NoNodeError):
            self.client.create("/x/y")
        with self.assertRaises(NotEmptyError):
            self.client.delete("/a")
        with self.assertRaises(NoNodeError):
            self.client.get_data("/missing")

    def test_ephemeral_nodes_removed_on_close(self) -> None:
        self.peer.create("/live/member", b"x", mode=CreateMode.EPHEMERAL, make_parents=True)
        self.assertTrue(self.client.exists("/live/member").is_ephemeral)
        self.peer.close()
        self.assertIsNone(self.client.exists("/live/member"))
        self.assertIsNotNone(self.client.exists("/live"))

    def test_watch_is_delivered(self) -> None:
        delivered = threading.Event()
        events = []

        def on_change(event) -> None:
            events.append(event)
            delivered.set()

        self.client.create("/w", b"1")
        self.client.get_data("/w", watch=on_change)
        self.peer.set_data("/w", b"2")
        self.assertTrue(delivered.wait(5.0))
        self.assertEqual(EventType.CHANGED, events[0].type)
        self.assertEqual("/w", events[0].path)

    def test_registry_operations_over_redis(self) -> None:
        source = InMemoryCoordinationClient()
        source.create("/fabric/configs/ensemble", b"# seeded\ntickTime=2000\n", make_parents=True)
        copy(source, self.client, "/fabric")
        set_properties(self.peer, "/fabric/configs/ensemble", {"tickTime": "2000", "initLimit": "10"})
        self.assertEqual(
            {"tickTime": "2000", "initLimit": "10"},
            get_properties(self.client, "/fabric/configs/ensemble"),
        )

        secret = TokenIssuer(self.client).generate_token("node1")
        self.assertEqual(secret, self.peer.get_data("/fabric/authentication/containers/node1").decode())

        delete_safe(self.peer, "/fabric")
        self.assertIsNone(self.client.exists("/fabric"))


if __name__ == "__main__":
    unittest.main()
