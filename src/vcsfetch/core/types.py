"""
Core type definitions for vcsfetch.

VcsDescriptor is the value passed between every stage: declared metadata,
URL heuristics and working-tree introspection each produce one, and
merge_descriptors reconciles them. Empty strings mean "unknown".
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import List
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field


class VcsType(StrEnum):
    """Identities of the registered VCS backends."""
    GIT = "Git"
    GIT_REPO = "GitRepo"
    MERCURIAL = "Mercurial"
    SUBVERSION = "Subversion"


class VcsDescriptor(BaseModel):
    """
    Loosely structured version-control information about a package.

    Attributes:
        provider: Name of the VCS, e.g. "Git" or "svn". Spelling varies by source.
        url: Repository URL.
        revision: Branch, tag or commit the package version maps to.
        path: Sub-path inside the repository relevant to the package.
    """

    provider: str = ""
    url: str = ""
    revision: str = ""
    path: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def is_empty(self) -> bool:
        return not any(v.strip() for v in (self.provider, self.url, self.revision, self.path))

    def merge(self, other: "VcsDescriptor") -> "VcsDescriptor":
        """Fill gaps in this descriptor from ``other``. See merge_descriptors."""
        return merge_descriptors(self, other)


EMPTY = VcsDescriptor()


def merge_descriptors(primary: VcsDescriptor, secondary: VcsDescriptor) -> VcsDescriptor:
    """
    Merge two partial descriptors field by field.

    Values in ``primary`` win. Blank url/revision/path fields are taken from
    ``secondary``. The provider is only ever re-spelled: if both name the same
    provider case-insensitively and the secondary spelling is already the
    capitalized form (e.g. "Git"), that spelling is adopted.

    Args:
        primary: The descriptor with precedence.
        secondary: The descriptor used to fill gaps.

    Returns:
        A new descriptor; neither input is modified.
    """
    provider = primary.provider
    if provider.lower() == secondary.provider.lower():
        if secondary.provider.lower().capitalize() == secondary.provider:
            provider = secondary.provider

    def pick(mine: str, theirs: str) -> str:
        if not mine.strip() and theirs.strip():
            return theirs
        return mine

    return VcsDescriptor(
        provider=provider,
        url=pick(primary.url, secondary.url),
        revision=pick(primary.revision, secondary.revision),
        path=pick(primary.path, secondary.path),
    )


class DownloadResult(BaseModel):
    """
    Outcome of one completed checkout.

    Attributes:
        provider: Identity of the backend that performed the checkout.
        url: Repository URL that was checked out.
        resolved_revision: Concrete revision that ended up in the working copy.
        path: Sub-path that was checked out, if any.
        local_directory: Directory holding the working copy.
    """

    provider: str
    url: str
    resolved_revision: str
    path: str = ""
    local_directory: Path

    model_config = ConfigDict(frozen=True)


class DownloadRequest(BaseModel):
    """
    One entry of a batch download.

    Attributes:
        name: Package name, used for the target directory.
        version: Package version, used for the target directory and as tag hint.
        vcs: Declared VCS metadata.
        homepage_url: Fallback URL for heuristics when vcs.url is blank.
    """

    name: str
    version: str = ""
    vcs: VcsDescriptor = Field(default_factory=VcsDescriptor)
    homepage_url: str = ""

    model_config = ConfigDict(extra="ignore")

    @property
    def identifier(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name

    def target_name(self) -> Path:
        """Filesystem-safe ``<name>/<version>`` sub-directory for this request."""
        parts = [_fs_encode(self.name)]
        if self.version:
            parts.append(_fs_encode(self.version))
        return Path(*parts)


class BatchFailure(BaseModel):
    """A request that could not be downloaded, with its cause chain."""
    request: str
    causes: List[str] = Field(default_factory=list)


class BatchReport(BaseModel):
    """Per-request outcomes of a batch run, in request order."""
    results: List[DownloadResult] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


def _fs_encode(name: str) -> str:
    encoded = quote(name.strip(), safe=" -_.@+")
    if encoded in ("", ".", ".."):
        encoded = encoded.replace(".", "%2E") or "_"
    return encoded
