"""Tests for external command execution, using the running Python as client."""

import sys
import threading
from pathlib import Path

import pytest

from vcsfetch.core.errors import ProcessCancelled, ProcessFailure, UnsupportedCommandVersion
from vcsfetch.core.process import (
    CancellationToken,
    ProcessCapture,
    check_command_version,
    get_command_version,
    run,
)


class TestProcessCapture:
    """Tests for ProcessCapture."""

    def test_captures_output(self, tmp_path: Path):
        capture = ProcessCapture(
            sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)", cwd=tmp_path
        )
        assert capture.exit_code == 0
        assert capture.stdout.strip() == "out"
        assert capture.stderr.strip() == "err"
        assert capture.working_dir == tmp_path

    def test_large_output_is_not_truncated(self):
        """Test that output well beyond pipe buffer sizes is kept in full."""
        capture = ProcessCapture(sys.executable, "-c", "print('x' * 1_000_000)")
        assert len(capture.stdout.strip()) == 1_000_000

    def test_non_zero_exit_raises_on_require(self):
        capture = ProcessCapture(sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)")
        assert capture.exit_code == 3

        with pytest.raises(ProcessFailure) as exc_info:
            capture.require_success()

        assert exc_info.value.exit_code == 3
        assert exc_info.value.stderr == "bad"
        assert "failed with exit code 3" in str(exc_info.value)
        assert "bad" in capture.fail_message

    def test_missing_executable(self):
        with pytest.raises(ProcessFailure) as exc_info:
            ProcessCapture("vcsfetch-no-such-client", "--version")
        assert exc_info.value.exit_code is None

    def test_env_is_added(self):
        capture = run(
            sys.executable, "-c", "import os; print(os.environ['VCSFETCH_TEST'])", env={"VCSFETCH_TEST": "1"}
        )
        assert capture.stdout.strip() == "1"

    def test_timeout(self):
        with pytest.raises(ProcessFailure) as exc_info:
            ProcessCapture(sys.executable, "-c", "import time; time.sleep(30)", timeout=0.5)
        assert "timed out" in exc_info.value.stderr

    def test_cancellation(self):
        """Test that cancelling the token terminates the running command."""
        token = CancellationToken()
        threading.Timer(0.3, token.cancel).start()

        with pytest.raises(ProcessCancelled):
            ProcessCapture(sys.executable, "-c", "import time; time.sleep(30)", cancel_token=token)

        assert token.cancelled

    def test_empty_command(self):
        with pytest.raises(ValueError):
            ProcessCapture()


class TestCommandVersion:
    """Tests for get_command_version and check_command_version."""

    PYTHON_VERSION = "{}.{}.{}".format(*sys.version_info[:3])

    def test_get_command_version(self):
        assert get_command_version(sys.executable).endswith(self.PYTHON_VERSION)

    def test_get_command_version_transform(self):
        assert get_command_version(sys.executable, transform=lambda s: s.split()[-1]) == self.PYTHON_VERSION

    def test_version_on_stderr(self):
        """Test tools that print their version to standard error."""
        output = get_command_version(sys.executable, "-c __import__('sys').stderr.write('4.5.6')")
        assert output == "4.5.6"

    def test_requirement_met(self):
        version = check_command_version(sys.executable, ">=3.0")
        assert str(version) == self.PYTHON_VERSION

    def test_requirement_not_met(self):
        with pytest.raises(UnsupportedCommandVersion) as exc_info:
            check_command_version(sys.executable, ">=99")
        assert exc_info.value.requirement == ">=99"
        assert exc_info.value.version == self.PYTHON_VERSION

    def test_ignore_actual_version(self, caplog):
        with caplog.at_level("WARNING", logger="vcsfetch"):
            version = check_command_version(sys.executable, ">=99", ignore_actual_version=True)
        assert str(version) == self.PYTHON_VERSION
        assert "Unsupported" in caplog.text

    def test_missing_command(self):
        with pytest.raises(ProcessFailure):
            check_command_version("vcsfetch-no-such-client", ">=1.0")
