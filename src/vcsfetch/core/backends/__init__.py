"""
VCS backend registry.

The set of backends is closed and ordered. URL matching walks the registry in
order, so a URL matching several backends goes to the first one (Git before
Mercurial before Subversion). Registries are plain tuples; callers needing a
different command timeout build their own with create_backends.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple

from ..errors import NoApplicableBackend
from ..paths import PathLike
from .base import RemoteTags, VcsBackend, WorkingTree, match_version_tag
from .git import GitBackend
from .git_repo import GitRepoBackend
from .mercurial import MercurialBackend
from .subversion import SubversionBackend

logger = logging.getLogger(__name__)

Registry = Sequence[VcsBackend]


def create_backends(timeout: Optional[float] = None) -> Tuple[VcsBackend, ...]:
    """Build a registry whose backends use the given per-command timeout."""
    return (
        GitBackend(timeout),
        GitRepoBackend(timeout),
        MercurialBackend(timeout),
        SubversionBackend(timeout),
    )


BACKENDS: Tuple[VcsBackend, ...] = create_backends()


def select_backend(provider_hint: str, url: str, registry: Registry = BACKENDS) -> VcsBackend:
    """
    Choose the backend for a download.

    A non-blank provider hint is authoritative: if no backend knows the name,
    selection fails even when the URL would match one. Only a blank hint falls
    back to URL matching.

    Args:
        provider_hint: Provider name from metadata, may be blank.
        url: Repository URL.
        registry: Backends to choose from, in priority order.

    Returns:
        The selected backend.

    Raises:
        NoApplicableBackend: If nothing matches.
    """
    if provider_hint.strip():
        for backend in registry:
            if backend.matches_provider_name(provider_hint):
                logger.debug(f"Provider '{provider_hint}' selects {backend.name}")
                return backend
        raise NoApplicableBackend(provider_hint, url)

    for backend in registry:
        if backend.matches_url(url):
            logger.debug(f"URL '{url}' selects {backend.name}")
            return backend
    raise NoApplicableBackend(provider_hint, url)


def for_directory(path: PathLike, registry: Registry = BACKENDS) -> Optional[WorkingTree]:
    """
    Find the working copy containing ``path``.

    When markers of several backends are found, the one closest to ``path``
    wins; ties go to the earlier backend.

    Returns:
        A WorkingTree, or None if ``path`` is not inside any working copy.
    """
    best: Optional[Tuple[VcsBackend, Path]] = None
    for backend in registry:
        root = backend.find_working_copy_root(path)
        if root is None:
            continue
        if best is None or len(root.parts) > len(best[1].parts):
            best = (backend, root)

    if best is None:
        return None
    return WorkingTree(best[0], Path(path))


__all__ = [
    "BACKENDS",
    "GitBackend",
    "GitRepoBackend",
    "MercurialBackend",
    "RemoteTags",
    "SubversionBackend",
    "VcsBackend",
    "WorkingTree",
    "create_backends",
    "for_directory",
    "match_version_tag",
    "select_backend",
]
