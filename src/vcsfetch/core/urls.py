"""
VCS URL normalization and heuristic splitting.

Repository URLs in package metadata are written by hand and copied from
browsers. This module turns them into something a VCS client accepts and,
for well-known hosting services, splits browse URLs such as

    https://github.com/babel/babel/tree/master/packages/babel-code-frame

into repository URL, revision and sub-path.

Splitting is conservative: anything not matching a known host
layout is passed through unchanged rather than guessed at. On hosts with a
fixed owner/repository layout a browse marker ("tree", "blob", "src") is only
honoured as the third path segment, so an owner or repository that happens to
be called "blob" is never misread. GitLab projects may live in nested groups,
so there the repository ends at the "-" separator segment, and a longer path
without one cannot be split.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Optional, Tuple
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .errors import MalformedUrl
from .result import Err, Ok, Result
from .types import VcsDescriptor, VcsType

logger = logging.getLogger(__name__)

GIT_SUFFIX = ".git"


@dataclass(frozen=True)
class HostLayout:
    """
    How a hosting service lays out repository browse URLs.

    Attributes:
        provider: Provider assumed for a bare repository URL on this host.
        suffix: Suffix the host requires on repository URLs for that provider.
        ref_markers: Third path segments introducing a branch or tag to browse.
        commit_markers: Third path segments introducing a commit or file view.
            On hosts whose default provider is not Git these views only exist
            for Git repositories, so they force the Git provider and suffix.
        separator: Segment between a nested repository path and its browse
            marker. Hosts with a separator allow repositories in nested groups.
    """

    provider: VcsType
    suffix: str
    ref_markers: FrozenSet[str] = frozenset()
    commit_markers: FrozenSet[str] = frozenset()
    separator: str = ""

    @property
    def markers(self) -> FrozenSet[str]:
        return self.ref_markers | self.commit_markers


HOST_LAYOUTS: Mapping[str, HostLayout] = MappingProxyType(
    {
        "github.com": HostLayout(
            VcsType.GIT, GIT_SUFFIX, frozenset({"tree"}), frozenset({"blob"})
        ),
        "gitlab.com": HostLayout(
            VcsType.GIT, GIT_SUFFIX, frozenset({"tree"}), frozenset({"blob"}), separator="-"
        ),
        "bitbucket.org": HostLayout(VcsType.MERCURIAL, "", frozenset(), frozenset({"src"})),
    }
)

# Prefixes that package managers put in front of a real scheme.
SCHEME_FIXUPS: Mapping[str, str] = MappingProxyType(
    {
        "git+https": "https",
        "git+http": "http",
        "git+ssh": "ssh",
        "git+git": "git",
        "htps": "https",
        "htttps": "https",
        "https+git": "https",
    }
)

# Schemes whose user name is part of the address rather than a credential.
_USER_SCHEMES = frozenset({"ssh"})

_SCP_LIKE = re.compile(r"^(?P<user>[\w.+-]+)@(?P<host>[\w.-]+):(?!//)(?P<path>.+)$")
_CVS_PREFIXES = (":pserver:", ":ext:")
_SHORTCUT = re.compile(
    r"^(?:(?P<kind>github|gitlab|bitbucket|gist):)?"
    r"(?P<path>[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_.-]+)?)$"
)
_SHORTCUT_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {
        "github": "https://github.com/{}.git",
        "gitlab": "https://gitlab.com/{}.git",
        "bitbucket": "https://bitbucket.org/{}.git",
        "gist": "https://gist.github.com/{}",
    }
)
_SCM_CONNECTION = re.compile(r"^scm:(?P<provider>[^:]+):(?P<url>.+)$")


def _layout_for(host: Optional[str]) -> Optional[HostLayout]:
    if not host:
        return None
    if host.startswith("www."):
        host = host[4:]
    return HOST_LAYOUTS.get(host)


def _has_suffix(name: str, suffix: str) -> bool:
    return bool(suffix) and name.lower().endswith(suffix)


def _strip_suffix(name: str, suffix: str) -> str:
    return name[: -len(suffix)] if _has_suffix(name, suffix) else name


def _after_segments(path: str, count: int) -> str:
    """The rest of ``path`` behind its first ``count`` segments, separators kept."""
    match = re.match(rf"/*(?:[^/]+(?:/+|$)){{{count}}}", path)
    return path[match.end():] if match else ""


def _format_host(host: str) -> str:
    return f"[{host}]" if ":" in host else host


def _netloc(parts: SplitResult, scheme: str) -> str:
    """Rebuild the network location without credentials (ports are kept)."""
    netloc = _format_host(parts.hostname or "")
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    if scheme in _USER_SCHEMES and parts.username:
        netloc = f"{parts.username}@{netloc}"
    return netloc


def normalize_vcs_url(url: str) -> str:
    """
    Canonicalize a repository URL.

    Fixes scp-like Git addresses, package-manager scheme prefixes and common
    scheme typos, drops embedded credentials, lower-cases the host and adds the
    ".git" suffix for hosts that require it. Normalizing an already normalized
    URL returns it unchanged. Strings that cannot be parsed are returned as is.

    Args:
        url: URL as found in package metadata.

    Returns:
        The normalized URL.
    """
    url = url.strip()
    if not url or url.startswith(_CVS_PREFIXES):
        return url

    url = url.rstrip("/")

    if "://" not in url:
        match = _SCP_LIKE.match(url)
        if match:
            url = f"ssh://{match['user']}@{match['host']}/{match['path'].lstrip('/')}"
        elif _layout_for(url.split("/", 1)[0].lower()) is not None:
            url = f"https://{url}"

    try:
        parts = urlsplit(url)
        # Accessing the port validates it.
        parts.port
    except ValueError:
        logger.debug(f"Leaving unparsable URL '{url}' untouched")
        return url

    if not parts.hostname:
        return url

    scheme = parts.scheme.lower()
    scheme = SCHEME_FIXUPS.get(scheme, scheme)
    layout = _layout_for(parts.hostname)
    # Known hosts only serve repositories over HTTPS.
    if layout is not None and scheme in ("git", "http"):
        scheme = "https"

    path = parts.path
    if layout is not None and layout.suffix:
        segments = [s for s in path.split("/") if s]
        if len(segments) == 2 and not _has_suffix(path, layout.suffix):
            path = path.rstrip("/") + layout.suffix

    return urlunsplit((scheme, _netloc(parts, scheme), path, parts.query, parts.fragment))


def expand_shortcut_url(url: str) -> str:
    """
    Expand npm-style repository shortcuts.

    "owner/repo" and "github:owner/repo" expand to GitHub, "gitlab:",
    "bitbucket:" and "gist:" to their hosts. Anything else is returned
    unchanged.
    """
    match = _SHORTCUT.match(url.strip())
    if not match:
        return url
    kind = match["kind"] or "github"
    path = match["path"]
    if kind != "gist" and "/" not in path:
        return url
    return _SHORTCUT_TEMPLATES[kind].format(path)


def parse_scm_connection(connection: str, tag: str = "") -> VcsDescriptor:
    """
    Read a Maven-style "scm:<provider>:<url>" connection string.

    Args:
        connection: The connection string.
        tag: Tag declared alongside the connection, used as revision.

    Returns:
        A descriptor with provider and url, or only the revision if the
        connection does not match.
    """
    match = _SCM_CONNECTION.match(connection.strip())
    if not match:
        return VcsDescriptor(revision=tag)
    return VcsDescriptor(provider=match["provider"], url=match["url"], revision=tag)


def _repository_segments(
    segments: List[str], layout: HostLayout
) -> Optional[Tuple[List[str], List[str]]]:
    """Divide path segments into the repository path and the browse view behind it."""
    if not layout.separator:
        return segments[:2], segments[2:]
    if layout.separator in segments:
        index = segments.index(layout.separator)
        return segments[:index], segments[index + 1:]
    if len(segments) <= 2 or _has_suffix(segments[-1], GIT_SUFFIX):
        return segments, []
    return None


def try_split_vcs_url(url: str) -> Result[VcsDescriptor, MalformedUrl]:
    """
    Split a hosting-service URL into repository URL, revision and path.

    Returns:
        Ok with the descriptor if the host layout was recognized, otherwise
        Err describing why no confident split was possible.
    """
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError as e:
        return Err(MalformedUrl(url, f"unparsable ({e})"))

    if parts.query or parts.fragment:
        return Err(MalformedUrl(url, "has a query or fragment"))

    layout = _layout_for(parts.hostname)
    if layout is None:
        return Err(MalformedUrl(url, f"unknown host '{parts.hostname or ''}'"))

    segments = [s for s in parts.path.split("/") if s]
    split = _repository_segments(segments, layout)
    if split is None:
        return Err(MalformedUrl(url, "repository path is ambiguous without a separator"))
    repo_segments, browse = split
    if len(repo_segments) < 2:
        return Err(MalformedUrl(url, "no owner and repository in path"))

    provider = layout.provider
    suffix = layout.suffix
    if _has_suffix(repo_segments[-1], GIT_SUFFIX):
        provider = VcsType.GIT
        suffix = GIT_SUFFIX
    repo_path = "/".join([*repo_segments[:-1], _strip_suffix(repo_segments[-1], GIT_SUFFIX)])

    revision = ""
    path = ""
    if len(browse) >= 2 and browse[0] in layout.markers:
        if browse[0] in layout.commit_markers:
            provider = VcsType.GIT
            suffix = GIT_SUFFIX
        revision = browse[1]
        consumed = len(segments) - len(browse) + 2
        path = _strip_suffix(_after_segments(parts.path, consumed).lstrip("/"), GIT_SUFFIX)

    scheme = parts.scheme.lower()
    repo_url = urlunsplit((scheme, _netloc(parts, scheme), f"/{repo_path}{suffix}", "", ""))
    return Ok(VcsDescriptor(provider=str(provider), url=repo_url, revision=revision, path=path))


def split_vcs_url(url: str) -> VcsDescriptor:
    """
    Split a URL like try_split_vcs_url, degrading instead of failing.

    Returns:
        The split descriptor, or ``{"", url, "", ""}`` when the URL could not be
        decomposed confidently.
    """
    result = try_split_vcs_url(url)
    if result.is_err():
        logger.debug(str(result.error))
    return result.unwrap_or(VcsDescriptor(url=url))
