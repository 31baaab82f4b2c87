"""
Tests for traversal and staged output helpers.

This module tests:
- Deterministic pre-order and post-order traversal
- Link handling during traversal
- Commit and cleanup behaviour of staged_output
"""

import os
from pathlib import PurePosixPath

import pytest

from fileward.filesystem import discard, staged_output, staging, walk_postorder, walk_preorder


@pytest.fixture
def tree(tmp_path):
    top = tmp_path / "top"
    (top / "b_dir" / "nested").mkdir(parents=True)
    (top / "a.txt").write_text("a")
    (top / "b_dir" / "z.txt").write_text("z")
    (top / "b_dir" / "nested" / "deep.txt").write_text("deep")
    (top / "c.txt").write_text("c")
    return top


# =============================================================================
# Traversal Tests
# =============================================================================

class TestWalk:

    def test_preorder_is_sorted_and_depth_first(self, tree):
        names = [node.relative.as_posix() for node in walk_preorder(tree)]

        assert names == [
            "a.txt",
            "b_dir",
            "b_dir/nested",
            "b_dir/nested/deep.txt",
            "b_dir/z.txt",
            "c.txt",
        ]

    def test_postorder_puts_directories_after_contents(self, tree):
        names = [node.relative.as_posix() for node in walk_postorder(tree)]

        assert names.index("b_dir/nested/deep.txt") < names.index("b_dir/nested")
        assert names.index("b_dir/z.txt") < names.index("b_dir")
        assert len(names) == 6

    def test_node_fields(self, tree):
        nodes = {node.relative: node for node in walk_preorder(tree)}

        assert nodes[PurePosixPath("b_dir")].is_dir
        assert not nodes[PurePosixPath("a.txt")].is_dir
        assert nodes[PurePosixPath("a.txt")].path == tree / "a.txt"
        assert all(node.error is None for node in nodes.values())

    def test_empty_directory(self, tmp_path):
        assert list(walk_preorder(tmp_path)) == []

    def test_unlistable_top_reports_error(self, tmp_path):
        nodes = list(walk_preorder(tmp_path / "missing"))

        assert len(nodes) == 1
        assert nodes[0].error is not None

    @pytest.mark.skipif(os.name != "posix", reason="symlinks need POSIX")
    def test_directory_links_not_descended(self, tree):
        (tree / "link_dir").symlink_to(tree / "b_dir")

        nodes = [node for node in walk_preorder(tree) if node.relative.parts[0] == "link_dir"]

        assert len(nodes) == 1
        assert nodes[0].is_symlink
        assert not nodes[0].is_dir

    def test_deep_tree_does_not_recurse(self, tmp_path):
        current = tmp_path
        for i in range(200):
            current = current / f"d{i}"
        current.mkdir(parents=True)

        assert len(list(walk_preorder(tmp_path))) == 200


# =============================================================================
# Staged Output Tests
# =============================================================================

class TestStagedOutput:

    def test_commits_file_on_success(self, tmp_path):
        final = tmp_path / "out.bin"

        with staged_output(final) as temp_path:
            assert temp_path.parent == tmp_path
            assert temp_path.name.startswith(".out.bin.")
            temp_path.write_bytes(b"data")
            assert not final.exists()

        assert final.read_bytes() == b"data"
        assert not temp_path.exists()

    def test_replaces_existing_file(self, tmp_path):
        final = tmp_path / "out.bin"
        final.write_bytes(b"old")

        with staged_output(final) as temp_path:
            temp_path.write_bytes(b"new")

        assert final.read_bytes() == b"new"

    def test_discards_on_error(self, tmp_path):
        final = tmp_path / "out.bin"

        with pytest.raises(RuntimeError):
            with staged_output(final) as temp_path:
                temp_path.write_bytes(b"partial")
                raise RuntimeError("boom")

        assert not final.exists()
        assert list(tmp_path.iterdir()) == []

    def test_directory_staging(self, tmp_path):
        final = tmp_path / "tree"

        with staged_output(final, directory=True) as temp_path:
            assert temp_path.is_dir()
            (temp_path / "x.txt").write_text("x")

        assert (final / "x.txt").read_text() == "x"

    def test_directory_discarded_on_error(self, tmp_path):
        with pytest.raises(ValueError):
            with staged_output(tmp_path / "tree", directory=True) as temp_path:
                (temp_path / "x.txt").write_text("x")
                raise ValueError("stop")

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_committed_file_gets_umask_mode(self, tmp_path):
        umask = os.umask(0)
        os.umask(umask)

        with staged_output(tmp_path / "f") as temp_path:
            temp_path.write_bytes(b"")

        assert (tmp_path / "f").stat().st_mode & 0o777 == 0o666 & ~umask

    def test_process_umask_untouched(self, tmp_path, mocker):
        umask = mocker.spy(staging.os, "umask")

        with staged_output(tmp_path / "f") as temp_path:
            temp_path.write_bytes(b"x")
        with staged_output(tmp_path / "d", directory=True):
            pass

        umask.assert_not_called()
        assert (tmp_path / "d").is_dir()


class TestDiscard:

    def test_missing_path_ignored(self, tmp_path):
        discard(tmp_path / "missing")

    def test_removes_tree(self, tmp_path):
        (tmp_path / "t" / "u").mkdir(parents=True)

        discard(tmp_path / "t")

        assert not (tmp_path / "t").exists()
