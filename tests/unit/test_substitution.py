"""
Unit tests for ``${zk:...}`` reference resolution.
"""

from __future__ import annotations

import unittest

from fabric_registry.config import SubstitutionConfig
from fabric_registry.memory import InMemoryCoordinationClient
from fabric_registry.substitution import (
    SubstitutionResolver,
    get_substituted_path,
    load_url,
    resolve,
)


class SubstitutionTest(unittest.TestCase):
    """
    Validates chained, nested, and failing reference resolution.
    """

    def setUp(self) -> None:
        self.client = InMemoryCoordinationClient()
        self.client.create("/cfg/db", b"url=jdbc:x\nuser=sa\n", make_parents=True)
        self.client.create("/cfg/host", b"db.local")
        self.client.create("/cfg/a", b"${zk:/cfg/host}:5432")
        self.client.create("/current", b"/cfg/host")

    def test_plain_reference(self) -> None:
        self.assertEqual("host=db.local", resolve(self.client, "host=${zk:/cfg/host}"))

    def test_fragment_selects_property(self) -> None:
        self.assertEqual("jdbc:x", resolve(self.client, "${zk:/cfg/db#url}"))
        self.assertEqual(b"sa", load_url(self.client, "zk:/cfg/db#user"))
        self.assertIsNone(load_url(self.client, "zk:/cfg/db#missing"))

    def test_loaded_content_is_resolved_again(self) -> None:
        self.assertEqual("db.local:5432", resolve(self.client, "${zk:/cfg/a}"))

    def test_nested_reference_resolves_innermost_first(self) -> None:
        self.assertEqual("db.local", resolve(self.client, "${zk:${zk:/current}}"))

    def test_unresolvable_reference_becomes_empty(self) -> None:
        self.assertEqual("xy", resolve(self.client, "x${zk:/missing}y"))
        self.assertEqual("xy", resolve(self.client, "x${zk:relative}y"))

    def test_unknown_scheme_is_left_alone(self) -> None:
        self.assertEqual("${env:HOME}/x", resolve(self.client, "${env:HOME}/x"))

    def test_cycle_resolves_to_empty(self) -> None:
        self.client.create("/c1", b"${zk:/c2}")
        self.client.create("/c2", b"${zk:/c1}")
        with self.assertLogs("fabric_registry.substitution", level="WARNING"):
            self.assertEqual("", resolve(self.client, "${zk:/c1}"))

    def test_depth_limit(self) -> None:
        self.client.create("/d1", b"${zk:/d2}")
        self.client.create("/d2", b"${zk:/d3}")
        self.client.create("/d3", b"end")
        self.assertEqual("end", resolve(self.client, "${zk:/d1}"))
        shallow = SubstitutionResolver(self.client, SubstitutionConfig(max_depth=2))
        self.assertEqual("", shallow.resolve("${zk:/d1}"))

    def test_none_text(self) -> None:
        self.assertIsNone(resolve(self.client, None))

    def test_get_substituted_path(self) -> None:
        self.assertEqual("db.local:5432", get_substituted_path(self.client, "/cfg/a"))
        self.assertEqual("sa", get_substituted_path(self.client, "/cfg/db#user"))
        self.assertIsNone(get_substituted_path(self.client, "/missing"))


if __name__ == "__main__":
    unittest.main()
