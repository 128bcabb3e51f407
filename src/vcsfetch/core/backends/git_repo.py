"""
Backend for Android "repo" manifest checkouts.

The repository URL points at a manifest repository; ``path`` names the
manifest file inside it. Resolved revisions refer to the manifest repository.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

from ..cache import MetadataCache
from ..process import CancellationToken
from ..types import VcsType
from .base import VcsBackend
from .git import GitBackend

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST = "default.xml"
DEFAULT_BRANCH = "master"


class GitRepoBackend(VcsBackend):
    """Backend driving the ``repo`` tool. Only selected by provider name."""

    vcs_type = VcsType.GIT_REPO
    aliases = frozenset({"gitrepo", "git-repo", "repo"})
    marker = ".repo"
    command = "repo"

    def __init__(self, timeout: Optional[float] = None):
        super().__init__(timeout)
        self._git = GitBackend(timeout)

    def matches_url(self, url: str) -> bool:
        return False

    @staticmethod
    def manifests_dir(root: Path) -> Path:
        return root / ".repo" / "manifests"

    def get_remote_url(self, working_dir: Path) -> str:
        return self._git.get_remote_url(self.manifests_dir(working_dir))

    def get_revision(self, working_dir: Path) -> str:
        return self._git.get_revision(self.manifests_dir(working_dir))

    def _remote_tag_names(self, working_dir: Path) -> Iterator[str]:
        yield from self._git.list_remote_tags(self.manifests_dir(working_dir))

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
        manifest = path or DEFAULT_MANIFEST
        branch = revision or DEFAULT_BRANCH
        logger.info(f"Initializing repo checkout of manifest '{manifest}' on '{branch}'.")
        self._run(
            "init", "--depth", "1", "-b", branch, "-u", url, "-m", manifest,
            cwd=target_dir, cancel_token=cancel_token,
        )
        logger.info("Starting repo sync.")
        self._run("sync", "-c", cwd=target_dir, cancel_token=cancel_token)
        return self._git.get_revision(self.manifests_dir(target_dir))
