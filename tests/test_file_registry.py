"""Tests for per-tab file discovery."""

import os

import pytest

from tabflows.file_registry import FileRegistry, discover


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "flows"
    for rel in [
        "b/t2.flows.json",
        "a/t1.flows.json",
        "a/notes.json",
        "a/.t1.flows.json.backup",
        "C/t3.flows.json",
        "top.flows.json",
    ]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("[]")
    return root


class TestDiscover:
    """Tests for discover()."""

    def test_matches_suffix_only(self, tree):
        names = [p.name for p in discover(tree)]
        assert "notes.json" not in names
        assert ".t1.flows.json.backup" not in names
        assert len(names) == 4

    def test_sorted_case_sensitive_per_level(self, tree):
        rel = [p.relative_to(tree).as_posix() for p in discover(tree)]
        assert rel == [
            "C/t3.flows.json",
            "a/t1.flows.json",
            "b/t2.flows.json",
            "top.flows.json",
        ]

    def test_missing_root_is_empty(self, tmp_path):
        assert discover(tmp_path / "nope") == []

    def test_root_that_is_a_file_is_empty(self, tmp_path):
        f = tmp_path / "file"
        f.write_text("")
        assert discover(f) == []

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_loop_terminates(self, tree):
        try:
            os.symlink(tree, tree / "a" / "loop")
        except OSError:
            pytest.skip("cannot create symlink")
        paths = discover(tree)
        assert len(paths) == len(set(paths))

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_file_keeps_link_path(self, tree, tmp_path):
        target = tmp_path / "elsewhere" / "keep.flows.json"
        target.parent.mkdir()
        target.write_text("[]")
        link = tree / "a" / "tX.flows.json"
        try:
            os.symlink(target, link)
        except OSError:
            pytest.skip("cannot create symlink")

        paths = discover(tree)

        assert link in paths
        assert target not in paths


class TestFileRegistry:
    """Tests for FileRegistry."""

    def test_refresh_replaces_contents(self, tree, tmp_path):
        registry = FileRegistry()
        registry.add(tmp_path / "elsewhere.flows.json")
        registry.refresh(tree)
        assert len(registry) == 4
        assert tmp_path / "elsewhere.flows.json" not in registry

    def test_contains_resolves(self, tree):
        registry = FileRegistry()
        registry.refresh(tree)
        assert tree / "a" / ".." / "a" / "t1.flows.json" in registry

    def test_refresh_none(self):
        registry = FileRegistry()
        assert registry.refresh(None) == []

    def test_discard(self, tree):
        registry = FileRegistry()
        registry.refresh(tree)
        registry.discard(tree / "top.flows.json")
        assert tree / "top.flows.json" not in registry
        assert len(registry) == 3
