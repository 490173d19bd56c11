"""Tests for the scratch directory containment check.

No mocks - uses real directories and symlinks under tmp_path.
"""

import os
import string
import sys
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from playspace.containment import resolve_in_scratch
from playspace.exceptions import OutsidePlayspaceError

skip_without_symlinks = pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")


@pytest.fixture
def root(tmp_path: Path) -> Path:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return scratch.resolve()


# ============================================================================
# Accepted Paths
# ============================================================================


class TestAccepted:
    def test_relative_is_joined_to_root(self, root: Path) -> None:
        assert resolve_in_scratch(root, "notes.txt") == root / "notes.txt"

    def test_relative_ignores_process_cwd(self, root: Path, tmp_path: Path) -> None:
        os.chdir(tmp_path)
        assert resolve_in_scratch(root, "notes.txt") == root / "notes.txt"

    def test_missing_parents_are_allowed(self, root: Path) -> None:
        assert resolve_in_scratch(root, "a/b/c.txt") == root / "a" / "b" / "c.txt"
        assert not (root / "a").exists()

    def test_absolute_inside_root(self, root: Path) -> None:
        assert resolve_in_scratch(root, root / "x.txt") == root / "x.txt"

    def test_root_itself(self, root: Path) -> None:
        assert resolve_in_scratch(root, ".") == root

    def test_dotdot_staying_inside(self, root: Path) -> None:
        (root / "sub").mkdir()
        assert resolve_in_scratch(root, "sub/../x.txt") == root / "x.txt"

    @skip_without_symlinks
    def test_symlink_within_root(self, root: Path) -> None:
        (root / "real").mkdir()
        (root / "link").symlink_to(root / "real")
        assert resolve_in_scratch(root, "link/file.txt") == root / "link" / "file.txt"

    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(parts=st.lists(st.text(string.ascii_lowercase + string.digits + "_-", min_size=1, max_size=8), min_size=1))
    def test_plain_relative_paths_stay_inside(self, root: Path, parts: list[str]) -> None:
        result = resolve_in_scratch(root, os.path.join(*parts))
        assert result.is_relative_to(root)
        assert result == root.joinpath(*parts)


# ============================================================================
# Rejected Paths
# ============================================================================


class TestRejected:
    def test_absolute_outside_root(self, root: Path, tmp_path: Path) -> None:
        outside = tmp_path / "outside.txt"
        with pytest.raises(OutsidePlayspaceError) as exc_info:
            resolve_in_scratch(root, outside)

        assert exc_info.value.path == outside
        assert str(outside) in exc_info.value.message
        assert not outside.exists()

    def test_relative_escape(self, root: Path) -> None:
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, "../escape.txt")

    def test_escape_through_missing_directory(self, root: Path) -> None:
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, "missing/../../escape.txt")

    def test_sibling_with_shared_prefix(self, root: Path) -> None:
        sibling = root.parent / (root.name + "-other")
        sibling.mkdir()
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, sibling / "x.txt")

    @skip_without_symlinks
    def test_symlink_out_of_root(self, root: Path, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "escape").symlink_to(outside)

        with pytest.raises(OutsidePlayspaceError) as exc_info:
            resolve_in_scratch(root, "escape/file.txt")
        assert exc_info.value.context["resolved"] == str(outside.resolve())

    @skip_without_symlinks
    def test_dangling_symlink_out_of_root(self, root: Path, tmp_path: Path) -> None:
        (root / "dangling").symlink_to(tmp_path / "not-yet-created.txt")
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, "dangling")
        assert not (tmp_path / "not-yet-created.txt").exists()

    @skip_without_symlinks
    def test_symlink_loop_inside_root(self, root: Path) -> None:
        (root / "loop").symlink_to("loop")
        with pytest.raises(OutsidePlayspaceError) as exc_info:
            resolve_in_scratch(root, "loop/x.txt")
        assert exc_info.value.context["checked"] == str(root / "loop")

    @skip_without_symlinks
    def test_symlink_cycle_between_two_links(self, root: Path) -> None:
        (root / "a").symlink_to("b")
        (root / "b").symlink_to("a")
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, "a")

    def test_overlong_component_outside_root(self, root: Path, tmp_path: Path) -> None:
        target = tmp_path / ("a" * 300) / "x.txt"
        with pytest.raises(OutsidePlayspaceError) as exc_info:
            resolve_in_scratch(root, target)
        assert exc_info.value.path == target

    @settings(max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(depth=st.integers(min_value=1, max_value=4), name=st.text(string.ascii_lowercase, min_size=1, max_size=8))
    def test_climbing_above_root_is_rejected(self, root: Path, depth: int, name: str) -> None:
        requested = os.path.join(*([".."] * depth), name)
        with pytest.raises(OutsidePlayspaceError):
            resolve_in_scratch(root, requested)
