"""
Subversion backend.

Subversion has no separate notion of a sub-path checkout: the path is simply
appended to the repository URL. Tags are looked up in the conventional
``tags/`` directory next to the given URL.
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
from .base import VcsBackend, match_version_tag, url_segments

logger = logging.getLogger(__name__)

TAGS_DIR = "tags"


def join_url(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


class SubversionBackend(VcsBackend):
    """Backend for Subversion repositories."""

    vcs_type = VcsType.SUBVERSION
    aliases = frozenset({"subversion", "svn"})
    marker = ".svn"
    command = "svn"
    # info --show-item
    version_requirement = ">=1.9"
    version_arguments = "--version --quiet"

    def matches_url(self, url: str) -> bool:
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return False

        scheme = parts.scheme.lower()
        if scheme == "svn" or scheme.startswith("svn+"):
            return True
        host = (parts.hostname or "").removeprefix("www.")
        return host.startswith("svn.") or "svn" in url_segments(parts.path)

    def _info(self, item: str, working_dir: Path) -> str:
        return self._run("info", "--non-interactive", "--show-item", item, cwd=working_dir)

    def get_remote_url(self, working_dir: Path) -> str:
        return self._info("url", working_dir)

    def get_revision(self, working_dir: Path) -> str:
        return self._info("revision", working_dir)

    def _list_tags(
        self, tags_url: str, cwd: Path, cancel_token: Optional[CancellationToken] = None
    ) -> List[str]:
        output = self._run("list", "--non-interactive", tags_url, cwd=cwd, cancel_token=cancel_token)
        return [line.rstrip("/") for line in output.splitlines() if line.strip()]

    def _remote_tag_names(self, working_dir: Path) -> Iterator[str]:
        root = self._info("repos-root-url", working_dir)
        yield from self._list_tags(join_url(root, TAGS_DIR), working_dir)

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
        def svn(*args: str) -> str:
            return self._run("--non-interactive", *args, cwd=target_dir, cancel_token=cancel_token)

        checkout_url = join_url(url, path)
        ref = revision.strip()

        if not ref and version_hint.strip():
            tags_url = join_url(url, TAGS_DIR)
            key = f"tags:{tags_url}"
            cached = cache.get(key) if cache is not None else None
            if cached is not None:
                tags = cached.splitlines()
            else:
                try:
                    tags = self._list_tags(tags_url, target_dir, cancel_token)
                except ProcessCancelled:
                    raise
                except ProcessFailure as e:
                    logger.info(f"No tags found at '{tags_url}': {e.stderr.strip() or e}")
                    tags = []
                if cache is not None and tags:
                    cache.put(key, "\n".join(tags))
            tag = match_version_tag(version_hint, tags)
            if tag:
                logger.info(f"Using tag '{tag}' for version '{version_hint}'.")
                checkout_url = join_url(tags_url, tag, path)

        svn("checkout", "-r", ref or "HEAD", checkout_url, ".")
        return svn("info", "--show-item", "revision")
