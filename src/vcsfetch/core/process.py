"""
External command execution.

Every VCS client call goes through ProcessCapture: standard output and error
are redirected to temporary files so that arbitrarily large outputs are kept
in full, the call blocks until the process exits, and a CancellationToken can
abort it while it runs.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from packaging.specifiers import SpecifierSet
from packaging.version import Version

from .errors import ProcessCancelled, ProcessFailure, UnsupportedCommandVersion

logger = logging.getLogger(__name__)

_VERSION_NUMBER = re.compile(r"\d+(?:\.\d+)+")


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a download.

    Example:
        ```python
        token = CancellationToken()
        threading.Timer(60, token.cancel).start()
        downloader.download(descriptor, target, cancel_token=token)
        ```
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of every operation observing this token."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class ProcessCapture:
    """
    Run a command to completion and capture all of its output.

    The command runs in the constructor. Output is available afterwards via
    ``stdout`` and ``stderr``; a non-zero exit does not raise until
    ``require_success`` is called.

    Attributes:
        command: The command and its arguments.
        working_dir: Directory the command runs in (None for the current one).
        exit_code: Exit status of the terminated process.
        stdout: Complete standard output.
        stderr: Complete standard error.
    """

    POLL_INTERVAL = 0.1
    TERMINATE_GRACE = 5.0

    def __init__(
        self,
        *command: Union[str, os.PathLike],
        cwd: Optional[Union[str, os.PathLike]] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        if not command:
            raise ValueError("No command given")
        self.command: List[str] = [str(part) for part in command]
        self.working_dir = Path(cwd) if cwd is not None else None
        self.timeout = timeout
        self.cancel_token = cancel_token
        self.exit_code: Optional[int] = None
        self.stdout = ""
        self.stderr = ""

        full_env = None
        if env:
            full_env = {**os.environ, **env}
        self._run(full_env)

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    @property
    def fail_message(self) -> str:
        where = self.working_dir or Path.cwd()
        return (
            f"'{self.command_line}' in directory '{where}' failed with exit code "
            f"{self.exit_code}:\n{self.stderr}"
        )

    def _run(self, env: Optional[Dict[str, str]]) -> None:
        logger.info(f"Running '{self.command_line}'...")

        keep_files = logger.isEnabledFor(logging.DEBUG)
        prefix = Path(self.command[0]).name.ljust(3, "_")
        out = tempfile.NamedTemporaryFile(prefix=prefix, suffix=".stdout", delete=False)
        err = tempfile.NamedTemporaryFile(prefix=prefix, suffix=".stderr", delete=False)
        try:
            try:
                process = subprocess.Popen(
                    self.command,
                    cwd=self.working_dir,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                )
            except OSError as e:
                raise ProcessFailure(self.command_line, self.working_dir, None, str(e)) from e

            self.exit_code = self._wait(process)

            out.seek(0)
            err.seek(0)
            self.stdout = out.read().decode("utf-8", errors="replace")
            self.stderr = err.read().decode("utf-8", errors="replace")
        finally:
            out.close()
            err.close()
            if keep_files:
                logger.debug("Keeping temporary files:")
                logger.debug(out.name)
                logger.debug(err.name)
            else:
                for name in (out.name, err.name):
                    try:
                        os.unlink(name)
                    except OSError:
                        logger.debug(f"Could not remove temporary file {name}")

    def _wait(self, process: subprocess.Popen) -> int:
        deadline = time.monotonic() + self.timeout if self.timeout else None
        while True:
            try:
                return process.wait(timeout=self.POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                pass

            if self.cancel_token is not None and self.cancel_token.cancelled:
                self._terminate(process)
                raise ProcessCancelled(
                    self.command_line, self.working_dir, process.returncode, "cancelled"
                )

            if deadline is not None and time.monotonic() > deadline:
                self._terminate(process)
                raise ProcessFailure(
                    self.command_line,
                    self.working_dir,
                    process.returncode,
                    f"timed out after {self.timeout} seconds",
                )

    def _terminate(self, process: subprocess.Popen) -> None:
        logger.warning(f"Terminating '{self.command_line}'")
        process.terminate()
        try:
            process.wait(timeout=self.TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def require_success(self) -> "ProcessCapture":
        """
        Raise if the command did not exit with status 0.

        Returns:
            self, to allow chaining.

        Raises:
            ProcessFailure: With the complete stderr output attached.
        """
        if self.exit_code != 0:
            raise ProcessFailure(self.command_line, self.working_dir, self.exit_code, self.stderr)
        return self


def run(
    *command: Union[str, os.PathLike],
    cwd: Optional[Union[str, os.PathLike]] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ProcessCapture:
    """Run a command and require it to succeed."""
    return ProcessCapture(
        *command, cwd=cwd, env=env, timeout=timeout, cancel_token=cancel_token
    ).require_success()


def get_command_version(
    command: str,
    version_arguments: str = "--version",
    cwd: Optional[Union[str, os.PathLike]] = None,
    transform: Optional[Callable[[str], str]] = None,
) -> str:
    """
    Run a command to get its version output.

    Some tools report their version on stderr, so the first non-blank of
    stdout and stderr is returned.

    Args:
        command: Executable to ask.
        version_arguments: Space separated arguments printing the version.
        cwd: Directory to run in.
        transform: Applied to the stripped output before it is checked.

    Returns:
        The (transformed) version output, or "" if the command printed nothing.

    Raises:
        ProcessFailure: If the command is missing or fails.
    """
    capture = run(command, *version_arguments.split(), cwd=cwd)
    for output in (capture.stdout, capture.stderr):
        text = output.strip()
        if transform is not None:
            text = transform(text)
        if text:
            return text
    return ""


def check_command_version(
    command: str,
    requirement: Union[str, SpecifierSet],
    version_arguments: str = "--version",
    cwd: Optional[Union[str, os.PathLike]] = None,
    ignore_actual_version: bool = False,
    transform: Optional[Callable[[str], str]] = None,
) -> Optional[Version]:
    """
    Verify that an external command satisfies a version requirement.

    The first dotted number in the version output is taken as the version,
    so "git version 2.43.0" and "Mercurial Distributed SCM (version 6.5.2)"
    both work.

    Args:
        command: Executable to check.
        requirement: PEP 440 specifier, e.g. ">=2.8".
        version_arguments: Space separated arguments printing the version.
        cwd: Directory to run in.
        ignore_actual_version: Only log a warning when the requirement is not met.
        transform: Applied to the version output before parsing.

    Returns:
        The parsed version, or None if it could not be told and was ignored.

    Raises:
        ProcessFailure: If the command is missing or fails.
        UnsupportedCommandVersion: If the version is unknown or too old.
    """
    specifier = SpecifierSet(str(requirement))
    output = get_command_version(command, version_arguments, cwd, transform)

    match = _VERSION_NUMBER.search(output)
    version = Version(match.group()) if match else None

    if version is not None and specifier.contains(version, prereleases=True):
        logger.debug(f"Found {command} {version}, satisfying '{specifier}'")
        return version

    error = UnsupportedCommandVersion(command, str(version or output), str(specifier))
    if not ignore_actual_version:
        raise error
    logger.warning(f"{error} Still continuing because the actual version is ignored.")
    return version
