"""Tests for node helpers."""

from tabflows.nodes import (
    is_tab,
    is_tab_member,
    is_tabless,
    safe_folder_name,
    sanitize_tab_name,
    sort_bucket,
    tab_display_name,
    to_json,
    without_ts,
)


class TestPredicates:
    """Tests for tab/member/tabless classification."""

    def test_tab_and_subflow_are_tabs(self):
        assert is_tab({"id": "t1", "type": "tab"})
        assert is_tab({"id": "s1", "type": "subflow"})
        assert not is_tab({"id": "n1", "type": "inject", "z": "t1"})

    def test_member_requires_truthy_z(self):
        assert is_tab_member({"id": "n1", "z": "t1"})
        assert not is_tab_member({"id": "n1", "z": ""})
        assert not is_tab_member({"id": "n1"})

    def test_tabless(self):
        assert is_tabless({"id": "c1", "type": "mqtt-broker"})
        assert is_tabless({"id": "c1", "type": "mqtt-broker", "z": ""})
        assert not is_tabless({"id": "t1", "type": "tab"})
        assert not is_tabless({"id": "n1", "type": "inject", "z": "t1"})


class TestNames:
    """Tests for tab folder naming."""

    def test_sanitize_collapses_runs(self):
        assert sanitize_tab_name('My Flow: a/b "c"') == "My-Flow-a-b-c-"
        assert sanitize_tab_name("a - b") == "a-b"
        assert sanitize_tab_name("plain_name") == "plain_name"

    def test_display_name_prefers_label(self):
        assert tab_display_name({"id": "t1", "type": "tab", "label": "Flow 1"}) == "Flow-1"
        assert tab_display_name({"id": "s1", "type": "subflow", "name": "Sub"}) == "Sub"
        assert tab_display_name({"id": "t1", "type": "tab"}) == "t1"

    def test_dot_only_names_cannot_leave_the_root(self):
        assert safe_folder_name("..") == "--"
        assert safe_folder_name(".") == "-"
        assert safe_folder_name("") == "-"
        assert safe_folder_name("..hidden") == "..hidden"
        assert tab_display_name({"id": "t1", "type": "tab", "label": ".."}) == "--"


class TestSorting:
    """Tests for bucket sorting."""

    def test_tab_moves_to_front(self):
        nodes = [
            {"id": "b", "type": "inject", "z": "t1"},
            {"id": "t1", "type": "tab"},
            {"id": "a", "type": "debug", "z": "t1"},
        ]
        ordered = sort_bucket(nodes)
        assert [n["id"] for n in ordered] == ["t1", "a", "b"]

    def test_missing_z_sorts_after_present(self):
        nodes = [
            {"id": "c1", "type": "mqtt-broker"},
            {"id": "n1", "type": "inject", "z": "t1"},
        ]
        assert [n["id"] for n in sort_bucket(nodes)] == ["n1", "c1"]

    def test_type_then_id(self):
        nodes = [
            {"id": "2", "type": "inject", "z": "t1"},
            {"id": "1", "type": "inject", "z": "t1"},
            {"id": "0", "type": "debug", "z": "t1"},
        ]
        assert [n["id"] for n in sort_bucket(nodes)] == ["0", "1", "2"]


class TestJson:
    """Tests for JSON encoding."""

    def test_compact_matches_stringify(self):
        assert to_json([{"id": "t1", "type": "tab"}]) == '[{"id":"t1","type":"tab"}]'

    def test_pretty_uses_four_spaces(self):
        assert to_json({"a": 1}, pretty=True) == '{\n    "a": 1\n}'

    def test_without_ts(self):
        assert without_ts({"id": "c1", "_ts": 5}) == {"id": "c1"}
