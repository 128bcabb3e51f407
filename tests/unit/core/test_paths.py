"""Tests for working copy path helpers."""

import os
from pathlib import Path

from vcsfetch.core.paths import find_marker_root, is_empty_dir, path_to_root


class TestPathToRoot:
    """Tests for path_to_root."""

    def test_nested_location(self, tmp_path: Path):
        """Test a directory below the root."""
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert path_to_root(tmp_path, nested) == "a/b"

    def test_root_itself(self, tmp_path: Path):
        """Test that the root maps to an empty string."""
        assert path_to_root(tmp_path, tmp_path) == ""

    def test_relative_and_absolute_agree(self, tmp_path: Path, monkeypatch):
        """Test that relative input resolves against the working directory."""
        nested = tmp_path / "repo" / "src" / "lib"
        nested.mkdir(parents=True)
        monkeypatch.chdir(tmp_path)

        absolute = path_to_root(tmp_path / "repo", nested)
        relative = path_to_root("repo", os.path.join("repo", "src", "lib"))
        mixed = path_to_root(tmp_path / "repo", "repo/src/./lib")

        assert absolute == relative == mixed == "src/lib"

    def test_file_location(self, tmp_path: Path):
        """Test a file below the root."""
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "setup.py").write_text("")
        assert path_to_root(tmp_path, tmp_path / "pkg" / "setup.py") == "pkg/setup.py"


class TestMarkers:
    """Tests for find_marker_root and is_empty_dir."""

    def test_finds_closest_marker(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        inner = tmp_path / "vendor" / "lib"
        (inner / ".hg").mkdir(parents=True)
        deep = inner / "src"
        deep.mkdir()

        assert find_marker_root(deep, [".git"]) == tmp_path.resolve()
        assert find_marker_root(deep, [".hg"]) == inner.resolve()

    def test_no_marker(self, tmp_path: Path):
        assert find_marker_root(tmp_path, [".does-not-exist-marker"]) is None

    def test_is_empty_dir(self, tmp_path: Path):
        assert is_empty_dir(tmp_path)
        (tmp_path / "f").write_text("x")
        assert not is_empty_dir(tmp_path)
        assert not is_empty_dir(tmp_path / "missing")
