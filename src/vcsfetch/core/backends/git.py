"""
Git backend.

Checkouts are built from an empty repository with a single remote so that a
shallow fetch of exactly the wanted revision is possible. Servers that refuse
fetching arbitrary revisions get a full fetch as fallback.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional
from urllib.parse import urlsplit

from ..cache import MetadataCache
from ..errors import ProcessCancelled, ProcessFailure
from ..process import CancellationToken
from ..types import VcsType
from .base import VcsBackend, match_version_tag

logger = logging.getLogger(__name__)

GIT_HOSTS = frozenset({"github.com", "gitlab.com"})
TAG_REF_PREFIX = "refs/tags/"


def parse_ls_remote_tags(output: str) -> Iterator[str]:
    """Yield tag names from ``git ls-remote --tags --refs`` output, in order."""
    for line in output.splitlines():
        _, _, ref = line.partition("\t")
        if ref.startswith(TAG_REF_PREFIX):
            yield ref[len(TAG_REF_PREFIX):]


class GitBackend(VcsBackend):
    """Backend for plain Git repositories."""

    vcs_type = VcsType.GIT
    aliases = frozenset({"git"})
    marker = ".git"
    command = "git"
    # ls-remote --refs
    version_requirement = ">=2.8"

    def matches_url(self, url: str) -> bool:
        url = url.strip()
        if url.startswith("git@"):
            return True
        try:
            parts = urlsplit(url)
        except ValueError:
            return False

        scheme = parts.scheme.lower()
        if scheme == "git" or scheme.startswith("git+"):
            return True
        if parts.path.rstrip("/").lower().endswith(".git"):
            return True
        host = (parts.hostname or "").removeprefix("www.")
        return host in GIT_HOSTS

    def get_remote_url(self, working_dir: Path) -> str:
        capture = self._capture("config", "--get", "remote.origin.url", cwd=working_dir)
        # Exit code 1 means the key is not set.
        if capture.exit_code == 1:
            return ""
        return capture.require_success().stdout.strip()

    def get_revision(self, working_dir: Path) -> str:
        return self._run("rev-parse", "HEAD", cwd=working_dir)

    def _remote_tag_names(self, working_dir: Path) -> Iterator[str]:
        output = self._run("ls-remote", "--tags", "--refs", "origin", cwd=working_dir)
        yield from parse_ls_remote_tags(output)

    def _tags_of(
        self,
        url: str,
        cwd: Path,
        cache: Optional[MetadataCache],
        cancel_token: Optional[CancellationToken],
    ) -> List[str]:
        key = f"tags:{url}"
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                logger.debug(f"Using cached tags of '{url}'")
                return cached.splitlines()

        output = self._run("ls-remote", "--tags", "--refs", url, cwd=cwd, cancel_token=cancel_token)
        tags = list(parse_ls_remote_tags(output))
        if cache is not None:
            cache.put(key, "\n".join(tags))
        return tags

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
        def git(*args: str) -> str:
            return self._run(*args, cwd=target_dir, cancel_token=cancel_token)

        git("init", "--quiet")
        git("remote", "add", "origin", url)

        if path:
            logger.info(f"Configuring Git to do sparse checkout of path '{path}'.")
            git("config", "core.sparseCheckout", "true")
            sparse_file = target_dir / ".git" / "info" / "sparse-checkout"
            sparse_file.parent.mkdir(parents=True, exist_ok=True)
            sparse_file.write_text(f"/{path.strip('/')}\n", encoding="utf-8")

        ref = revision.strip()
        if not ref and version_hint.strip():
            tag = match_version_tag(
                version_hint, self._tags_of(url, target_dir, cache, cancel_token)
            )
            if tag:
                logger.info(f"Using tag '{tag}' for version '{version_hint}'.")
                ref = tag

        if not ref:
            logger.info("No revision given, checking out the default branch.")
            git("fetch", "--depth", "1", "origin", "HEAD")
            git("checkout", "--quiet", "FETCH_HEAD")
            return git("rev-parse", "HEAD")

        try:
            logger.info(f"Trying to fetch only revision '{ref}' with depth limited to 1.")
            git("fetch", "--depth", "1", "origin", ref)
            git("checkout", "--quiet", "FETCH_HEAD")
        except ProcessCancelled:
            raise
        except ProcessFailure as e:
            logger.info(
                f"Could not fetch only revision '{ref}': {e.stderr.strip() or e}. "
                "Falling back to fetching all revisions."
            )
            git("fetch", "--tags", "origin")
            git("checkout", "--quiet", ref)

        return git("rev-parse", "HEAD")
