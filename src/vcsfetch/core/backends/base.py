"""
Common backend interface.

A backend adapts one external VCS client. Backends hold no state apart from
their command timeout and whether the client version was checked; all
per-checkout state lives in the target directory, so one instance may serve
concurrent downloads into distinct directories.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ClassVar, FrozenSet, Iterable, Iterator, List, Optional

from ..cache import MetadataCache
from ..errors import (
    BackendExecutionFailure,
    DownloadCancelled,
    ProcessCancelled,
    ProcessFailure,
    UnsupportedCommandVersion,
    collect_messages,
)
from ..paths import PathLike, find_marker_root, path_to_root
from ..process import CancellationToken, ProcessCapture, check_command_version
from ..types import VcsDescriptor, VcsType

logger = logging.getLogger(__name__)

_TAG_SEPARATORS = "-_/@"


class RemoteTags:
    """
    Lazy, restartable view on the tags of a remote repository.

    Nothing is queried until iteration starts, and every new iteration asks
    the client again, so tags pushed in between show up.

    Example:
        ```python
        tags = backend.list_remote_tags(working_dir)
        latest = next(iter(tags), None)
        ```
    """

    def __init__(self, loader: Callable[[], Iterable[str]]):
        self._loader = loader

    def __iter__(self) -> Iterator[str]:
        return iter(self._loader())


def match_version_tag(version: str, tags: Iterable[str]) -> Optional[str]:
    """
    Pick the tag that corresponds to a package version.

    An exact match ("1.2.0") wins over a "v" prefix ("v1.2.0"), which wins over
    a tag ending in the version after a separator ("release-1.2.0",
    "pkg@1.2.0"). Ambiguous suffix matches yield no tag.

    Args:
        version: Package version to look for.
        tags: Candidate tag names.

    Returns:
        The matching tag name, or None.
    """
    version = version.strip()
    if not version:
        return None

    names = list(tags)
    for exact in (version, f"v{version}", f"V{version}"):
        if exact in names:
            return exact

    pattern = re.compile(rf"[{re.escape(_TAG_SEPARATORS)}][vV]?{re.escape(version)}$")
    suffixed = [name for name in names if pattern.search(name)]
    if len(suffixed) == 1:
        return suffixed[0]
    if len(suffixed) > 1:
        logger.debug(f"Tags {suffixed} are ambiguous for version '{version}'")
    return None


class VcsBackend(ABC):
    """
    Adapter around one version control client.

    Subclasses define the class attributes and the client specific commands.

    Attributes:
        vcs_type: Identity reported in results.
        aliases: Lower-case provider names this backend answers to.
        marker: Directory name marking a working copy root.
        command: Executable of the client.
        version_requirement: PEP 440 specifier the client version must meet,
            empty to skip the check.
        version_arguments: Arguments making the client print its version.
        timeout: Per-command timeout in seconds, or None.
    """

    vcs_type: ClassVar[VcsType]
    aliases: ClassVar[FrozenSet[str]]
    marker: ClassVar[str]
    command: ClassVar[str]
    version_requirement: ClassVar[str] = ""
    version_arguments: ClassVar[str] = "--version"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._client_checked = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout})"

    @property
    def name(self) -> str:
        return str(self.vcs_type)

    # Applicability

    def matches_provider_name(self, hint: str) -> bool:
        """Case-insensitive test of a provider name against the aliases."""
        return hint.strip().lower() in self.aliases

    @abstractmethod
    def matches_url(self, url: str) -> bool:
        """Pure pattern test whether ``url`` looks like a repository of this kind."""

    # Working copy queries

    def find_working_copy_root(self, path: PathLike) -> Optional[Path]:
        return find_marker_root(path, [self.marker])

    def working_tree(self, path: PathLike) -> Optional["WorkingTree"]:
        """Get a WorkingTree for ``path`` if it lies inside a working copy."""
        if self.find_working_copy_root(path) is None:
            return None
        return WorkingTree(self, Path(path))

    @abstractmethod
    def get_remote_url(self, working_dir: Path) -> str:
        ...

    @abstractmethod
    def get_revision(self, working_dir: Path) -> str:
        ...

    def list_remote_tags(self, working_dir: Path) -> RemoteTags:
        return RemoteTags(lambda: self._remote_tag_names(working_dir))

    @abstractmethod
    def _remote_tag_names(self, working_dir: Path) -> Iterator[str]:
        ...

    # Checkout

    def check_client(self) -> None:
        """
        Verify once per instance that the client is installed and recent enough.

        Raises:
            ProcessFailure: If the client is missing.
            UnsupportedCommandVersion: If the client is too old.
        """
        if self._client_checked or not self.version_requirement:
            return
        check_command_version(self.command, self.version_requirement, self.version_arguments)
        self._client_checked = True

    def download(
        self,
        url: str,
        revision: str,
        path: str,
        version_hint: str,
        target_dir: Path,
        *,
        cache: Optional[MetadataCache] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Check out ``url`` into the existing, empty ``target_dir``.

        Args:
            url: Repository URL.
            revision: Revision to check out; blank means "pick one".
            path: Sub-path to restrict the checkout to, if supported.
            version_hint: Package version used to find a tag for a blank revision.
            target_dir: Directory receiving the working copy.
            cache: Optional cache for remote queries.
            cancel_token: Token aborting the running client.

        Returns:
            The revision that was checked out, or "" if it cannot be told.

        Raises:
            DownloadCancelled: If the token was cancelled.
            BackendExecutionFailure: If the client is unusable or failed, or the
                working copy could not be written.
        """
        logger.info(f"Using {self.name} to download '{url}' to '{target_dir}'.")
        try:
            self.check_client()
            return self._download(
                url, revision, path, version_hint, target_dir, cache, cancel_token
            )
        except ProcessCancelled as e:
            raise DownloadCancelled(
                f"{self.name} download of '{url}' was cancelled.",
                backend=self.name,
                causes=collect_messages(e),
            ) from e
        except (ProcessFailure, UnsupportedCommandVersion, OSError) as e:
            message = f"{self.name} failed to download from URL '{url}'."
            raise BackendExecutionFailure(
                message, backend=self.name, causes=[message, *collect_messages(e)]
            ) from e

    @abstractmethod
    def _download(
        self,
        url: str,
        revision: str,
        path: str,
        version_hint: str,
        target_dir: Path,
        cache: Optional[MetadataCache],
        cancel_token: Optional[CancellationToken],
    ) -> str:
        ...

    # Helpers

    def _capture(
        self,
        *args: str,
        cwd: Optional[Path] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ProcessCapture:
        return ProcessCapture(
            self.command, *args, cwd=cwd, timeout=self.timeout, cancel_token=cancel_token
        )

    def _run(
        self,
        *args: str,
        cwd: Optional[Path] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Run the client, require success and return stripped stdout."""
        return self._capture(*args, cwd=cwd, cancel_token=cancel_token).require_success().stdout.strip()


@dataclass(frozen=True)
class WorkingTree:
    """
    A local working copy paired with the backend that manages it.

    Attributes:
        backend: Backend owning the working copy.
        directory: Any directory inside the working copy.
    """

    backend: VcsBackend
    directory: Path

    def get_root_path(self) -> Path:
        root = self.backend.find_working_copy_root(self.directory)
        return root if root is not None else self.directory.resolve()

    def get_path_to_root(self, location: Optional[PathLike] = None) -> str:
        """Root-relative path of ``location`` (default: this tree's directory)."""
        return path_to_root(self.get_root_path(), location or self.directory)

    def get_remote_url(self) -> str:
        return self.backend.get_remote_url(self.get_root_path())

    def get_revision(self) -> str:
        return self.backend.get_revision(self.get_root_path())

    def list_remote_tags(self) -> RemoteTags:
        return self.backend.list_remote_tags(self.get_root_path())

    def get_info(self) -> VcsDescriptor:
        """
        Describe the working copy.

        Raises:
            ProcessFailure: If the client cannot query the working copy.
        """
        return VcsDescriptor(
            provider=self.backend.name,
            url=self.get_remote_url(),
            revision=self.get_revision(),
            path=self.get_path_to_root(),
        )


def url_segments(path: str) -> List[str]:
    return [s for s in path.split("/") if s]
