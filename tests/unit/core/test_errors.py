"""Tests for the failure taxonomy."""

from pathlib import Path

from vcsfetch.core.errors import (
    BackendExecutionFailure,
    NoApplicableBackend,
    ProcessFailure,
    TargetDirectoryConflict,
    collect_messages,
)


class TestCollectMessages:
    """Tests for collect_messages."""

    def test_follows_explicit_causes(self):
        try:
            try:
                try:
                    raise OSError("disk full")
                except OSError as e:
                    raise ProcessFailure("git fetch", Path("/tmp"), 1, "fatal") from e
            except ProcessFailure as e:
                raise BackendExecutionFailure("Git failed.", backend="Git") from e
        except BackendExecutionFailure as e:
            messages = collect_messages(e)

        assert messages[0] == "Git failed."
        assert messages[1].startswith("'git fetch' in directory")
        assert messages[2] == "disk full"

    def test_uses_type_name_for_empty_messages(self):
        assert collect_messages(KeyboardInterrupt()) == ["KeyboardInterrupt"]

    def test_stops_on_cycles(self):
        a = ValueError("a")
        b = ValueError("b")
        a.__cause__ = b
        b.__cause__ = a
        assert collect_messages(a) == ["a", "b"]


class TestMessages:
    """Tests for error message formatting."""

    def test_backend_failure_lists_causes(self):
        failure = BackendExecutionFailure("Git failed.", causes=["Git failed.", "exit 128"])
        assert str(failure) == "Git failed.\n  caused by: exit 128"

    def test_no_applicable_backend(self):
        assert "provider 'cvs'" in str(NoApplicableBackend("cvs", "u"))
        assert "URL 'u'" in str(NoApplicableBackend("", "u"))

    def test_target_conflict(self, tmp_path: Path):
        assert str(tmp_path) in str(TargetDirectoryConflict(tmp_path))
