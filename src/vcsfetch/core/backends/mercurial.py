"""
Mercurial backend.

Mercurial cannot list the tags of a remote without fetching its history, so
remote tags are read from a scratch clone of the default path. The working
copy being asked is never pulled into.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlsplit

from ..cache import MetadataCache
from ..process import CancellationToken
from ..types import VcsType
from .base import VcsBackend, match_version_tag, url_segments

logger = logging.getLogger(__name__)

TIP = "tip"


class MercurialBackend(VcsBackend):
    """Backend for Mercurial repositories."""

    vcs_type = VcsType.MERCURIAL
    aliases = frozenset({"mercurial", "hg"})
    marker = ".hg"
    command = "hg"
    # debugsparse
    version_requirement = ">=4.3"

    def matches_url(self, url: str) -> bool:
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return False

        scheme = parts.scheme.lower()
        if scheme == "hg" or scheme.startswith("hg+"):
            return True
        host = (parts.hostname or "").removeprefix("www.")
        if host.startswith("hg."):
            return True
        if "hg" in url_segments(parts.path):
            return True
        return host == "bitbucket.org" and not parts.path.rstrip("/").lower().endswith(".git")

    def get_remote_url(self, working_dir: Path) -> str:
        capture = self._capture("paths", "default", cwd=working_dir)
        if capture.exit_code == 1:
            return ""
        return capture.require_success().stdout.strip()

    def get_revision(self, working_dir: Path) -> str:
        return self._run("log", "-r", ".", "--template", "{node}", cwd=working_dir)

    def _tag_names(self, working_dir: Path, cancel_token: Optional[CancellationToken] = None):
        output = self._run("tags", "--quiet", cwd=working_dir, cancel_token=cancel_token)
        return [tag for tag in output.splitlines() if tag and tag != TIP]

    def _remote_tag_names(self, working_dir: Path) -> Iterator[str]:
        remote = self.get_remote_url(working_dir)
        if not remote:
            logger.info(f"No default path configured in '{working_dir}', so no remote tags.")
            return
        with tempfile.TemporaryDirectory(prefix="vcsfetch-hg-") as scratch:
            self._run("clone", "--noupdate", "--quiet", remote, scratch, cwd=working_dir)
            yield from self._tag_names(Path(scratch))

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
        def hg(*args: str) -> str:
            return self._run(*args, cwd=target_dir, cancel_token=cancel_token)

        hg("clone", "--noupdate", url, ".")

        if path:
            logger.info(f"Configuring Mercurial to do sparse checkout of path '{path}'.")
            with open(target_dir / ".hg" / "hgrc", "a", encoding="utf-8") as f:
                f.write("\n[extensions]\nsparse =\n")
            hg("debugsparse", "--include", path.strip("/"))

        ref = revision.strip()
        if not ref and version_hint.strip():
            ref = match_version_tag(version_hint, self._tag_names(target_dir, cancel_token)) or ""
            if ref:
                logger.info(f"Using tag '{ref}' for version '{version_hint}'.")
        if not ref:
            ref = TIP

        hg("update", "-r", ref)
        return hg("log", "-r", ".", "--template", "{node}")
