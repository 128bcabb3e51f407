"""
Failure taxonomy for source retrieval.

Every fatal condition of a single download is a subclass of VcsFetchError so
that batch callers can catch per-package failures and carry on with the
remaining packages.

Fatal:
    - NoSourceLocation: No usable URL after merging all sources
    - NoApplicableBackend: Neither provider hint nor URL matched a backend
    - BackendExecutionFailure: The external VCS client failed
    - TargetDirectoryConflict: The target directory has content or cannot be created
    - UnsupportedCommandVersion: The VCS client is too old

Non-fatal:
    - MalformedUrl: Only ever returned inside an Err, never raised
    - PartialResolution: Emitted through the warnings module
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional


class VcsFetchError(Exception):
    """Base class for all vcsfetch failures."""


class NoSourceLocation(VcsFetchError):
    """Raised when the merged descriptor has no repository URL."""

    def __init__(self, message: str = "No VCS URL provided."):
        self.message = message
        super().__init__(message)


class NoApplicableBackend(VcsFetchError):
    """
    Raised when no registered backend accepts a provider hint or URL.

    Attributes:
        provider: The provider hint that was tried (may be empty).
        url: The URL that was tried.
    """

    def __init__(self, provider: str, url: str):
        self.provider = provider
        self.url = url
        if provider.strip():
            message = f"No VCS backend is known for provider '{provider}'."
        else:
            message = f"No VCS backend is applicable for URL '{url}'."
        super().__init__(message)


class MalformedUrl(VcsFetchError):
    """
    Describes why a URL could not be decomposed confidently.

    Instances are handed around as values inside an Err; normalization never
    raises them.
    """

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot split '{url}': {reason}")


class ProcessFailure(VcsFetchError):
    """
    Raised when an external command exits with a non-zero status.

    Attributes:
        command_line: The command as a single string.
        working_dir: Directory the command ran in.
        exit_code: Process exit status, or None if it never started.
        stderr: Complete standard error output.
    """

    def __init__(
        self,
        command_line: str,
        working_dir: Optional[Path],
        exit_code: Optional[int],
        stderr: str = "",
    ):
        self.command_line = command_line
        self.working_dir = working_dir
        self.exit_code = exit_code
        self.stderr = stderr
        where = working_dir or Path.cwd()
        message = f"'{command_line}' in directory '{where}' failed with exit code {exit_code}"
        if stderr.strip():
            message += f":\n{stderr.strip()}"
        super().__init__(message)


class ProcessCancelled(ProcessFailure):
    """Raised when a running command was terminated through its token."""


class BackendExecutionFailure(VcsFetchError):
    """
    Raised when a backend cannot complete a checkout or query.

    Attributes:
        backend: Name of the backend that failed.
        causes: Messages of the whole cause chain, outermost first.
    """

    def __init__(self, message: str, backend: str = "", causes: Optional[List[str]] = None):
        self.message = message
        self.backend = backend
        self.causes = list(causes or [])
        super().__init__(message)

    def __str__(self) -> str:
        details = [c for c in self.causes if c != self.message]
        if not details:
            return self.message
        return self.message + "\n" + "\n".join(f"  caused by: {c}" for c in details)


class DownloadCancelled(BackendExecutionFailure):
    """Raised when a running checkout was aborted through its token."""


class TargetDirectoryConflict(VcsFetchError):
    """
    Raised when the download target cannot receive a working copy.

    Attributes:
        target_dir: The requested target directory.
        reason: Why the directory could not be created, if it did not exist.
    """

    def __init__(self, target_dir: Path, reason: str = ""):
        self.target_dir = target_dir
        self.reason = reason
        if reason:
            message = f"Target directory '{target_dir}' cannot be created: {reason}"
        else:
            message = f"Target directory '{target_dir}' already exists and is not empty."
        super().__init__(message)


class UnsupportedCommandVersion(VcsFetchError):
    """
    Raised when an external client is older than a backend requires.

    Attributes:
        command: The client executable.
        version: The version the client reported, or its raw output.
        requirement: The version specifier that was not met.
    """

    def __init__(self, command: str, version: str, requirement: str):
        self.command = command
        self.version = version
        self.requirement = requirement
        super().__init__(
            f"Unsupported {command} version '{version}' does not fulfill '{requirement}'."
        )


class PartialResolution(UserWarning):
    """A checkout succeeded but its revision could not be resolved concretely."""


def collect_messages(exc: BaseException) -> List[str]:
    """
    Collect the messages of an exception and all of its causes.

    Follows explicit causes first and implicit context otherwise, stopping on
    cycles.

    Args:
        exc: The outermost exception.

    Returns:
        The message of every exception in the chain, outermost first.
    """
    messages: List[str] = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, BackendExecutionFailure):
            text = current.message
        else:
            text = str(current) or type(current).__name__
        messages.append(text)
        current = current.__cause__ or current.__context__
    return messages
