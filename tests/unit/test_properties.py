"""
Unit tests for layout-preserving property blobs.
"""

from __future__ import annotations

import unittest

from fabric_registry.memory import InMemoryCoordinationClient
from fabric_registry.nodes import get_string_data
from fabric_registry.properties import (
    PropertiesDocument,
    escape_key,
    escape_value,
    get_properties,
    set_properties,
)


class PropertiesDocumentTest(unittest.TestCase):
    """
    Validates parsing and minimal-diff merging of properties text.
    """

    def test_parse_separators_and_continuations(self) -> None:
        text = "# c\na=1\nb : 2\nc   3\nd=multi\\\n    line\n! other comment\n"
        document = PropertiesDocument.parse(text)
        self.assertEqual(
            {"a": "1", "b": "2", "c": "3", "d": "multiline"},
            document.as_dict(),
        )
        self.assertEqual(["a", "b", "c", "d"], document.keys())

    def test_parse_escapes(self) -> None:
        document = PropertiesDocument.parse("key\\ with\\ space=va\\tlue\\u0041\n")
        self.assertEqual("va\tlueA", document.get("key with space"))

    def test_only_cr_and_lf_end_lines(self) -> None:
        text = "a=x\u2028y\r\nb=1\rc=2"
        document = PropertiesDocument.parse(text)
        self.assertEqual({"a": "x\u2028y", "b": "1", "c": "2"}, document.as_dict())
        self.assertEqual(text, document.dumps())

    def test_last_duplicate_wins(self) -> None:
        document = PropertiesDocument.parse("a=1\na=2\n")
        self.assertEqual({"a": "2"}, document.as_dict())

    def test_dumps_reproduces_input(self) -> None:
        text = "# header\r\nkey = value\r\n\r\nother:x\\\n  y"
        self.assertEqual(text, PropertiesDocument.parse(text).dumps())

    def test_merge_only_touches_changed_lines(self) -> None:
        document = PropertiesDocument.parse("# header\na = 1\n\n# about b\nb:2\n")
        self.assertTrue(document.merge({"a": "1", "b": "3", "c": "4"}))
        self.assertEqual("# header\na = 1\n\n# about b\nb:3\nc=4\n", document.dumps())

    def test_merge_removes_absent_keys_and_keeps_comments(self) -> None:
        document = PropertiesDocument.parse("# header\na = 1\n\n# about b\nb:2\n")
        self.assertTrue(document.merge({"b": "2"}))
        self.assertEqual("# header\n\n# about b\nb:2\n", document.dumps())

    def test_merge_without_changes_reports_false(self) -> None:
        text = "a = 1\nb:2\n"
        document = PropertiesDocument.parse(text)
        self.assertFalse(document.merge({"b": "2", "a": "1"}))
        self.assertEqual(text, document.dumps())

    def test_append_after_unterminated_last_line(self) -> None:
        document = PropertiesDocument.parse("a=1")
        document.merge({"a": "1", "b": "2"})
        self.assertEqual("a=1\nb=2\n", document.dumps())

    def test_bare_key_rewrite_adds_separator(self) -> None:
        document = PropertiesDocument.parse("flag\n")
        self.assertEqual({"flag": ""}, document.as_dict())
        document.merge({"flag": "on"})
        self.assertEqual("flag=on\n", document.dumps())

    def test_escaping_helpers(self) -> None:
        self.assertEqual("a\\ b\\=c\\:d", escape_key("a b=c:d"))
        self.assertEqual("\\ x\\ny", escape_value(" x\ny"))


class NodePropertiesTest(unittest.TestCase):
    """
    Validates reading and writing properties stored in nodes.
    """

    def setUp(self) -> None:
        self.client = InMemoryCoordinationClient()

    def test_sequence_of_sets_keeps_operator_comment(self) -> None:
        self.client.create("/cfg", "# operator note\n".encode())
        set_properties(self.client, "/cfg", {"a": "1"})
        set_properties(self.client, "/cfg", {"a": "1", "b": "2"})
        set_properties(self.client, "/cfg", {"b": "2"})
        self.assertEqual({"b": "2"}, get_properties(self.client, "/cfg"))
        self.assertEqual("# operator note\nb=2\n", get_string_data(self.client, "/cfg"))

    def test_set_creates_missing_node_with_parents(self) -> None:
        set_properties(self.client, "/x/y", {"k": "v"})
        self.assertEqual("k=v\n", get_string_data(self.client, "/x/y"))

    def test_unchanged_set_does_not_write(self) -> None:
        set_properties(self.client, "/cfg", {"k": "v"})
        version = self.client.exists("/cfg").version
        set_properties(self.client, "/cfg", {"k": "v"})
        self.assertEqual(version, self.client.exists("/cfg").version)

    def test_values_round_trip_through_escaping(self) -> None:
        values = {"lead": " x", "multi": "a\nb", "path": "C:\\tmp", "key with space": "y"}
        set_properties(self.client, "/cfg", values)
        self.assertEqual(values, get_properties(self.client, "/cfg"))

    def test_unicode_line_breaks_stay_inside_values(self) -> None:
        for value in ("a\u2028b", "a\u2029b", "a\x85b", "a\x1cb", "a\x0bb"):
            with self.subTest(value=value):
                set_properties(self.client, "/cfg", {"k": value})
                self.assertEqual({"k": value}, get_properties(self.client, "/cfg"))
                version = self.client.exists("/cfg").version
                set_properties(self.client, "/cfg", {"k": value})
                self.assertEqual(version, self.client.exists("/cfg").version)

    def test_missing_or_undecodable_nodes_read_as_empty(self) -> None:
        self.assertEqual({}, get_properties(self.client, "/missing"))
        self.client.create("/binary", b"\xff\xfe=")
        self.assertEqual({}, get_properties(self.client, "/binary"))
        self.client.create("/empty")
        self.assertEqual({}, get_properties(self.client, "/empty"))


if __name__ == "__main__":
    unittest.main()
