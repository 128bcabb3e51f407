"""
vcsfetch Core Module.

Building blocks for locating and checking out package sources:

URL Heuristics:
    - normalize_vcs_url: Canonicalize hand-written repository URLs
    - split_vcs_url / try_split_vcs_url: Decompose hosting-service browse URLs

Backends:
    - VcsBackend: Adapter around one VCS client (git, repo, hg, svn)
    - select_backend: Choose a backend by provider name or URL
    - for_directory: Find the working copy containing a path

Orchestration:
    - Downloader: Merge metadata, select a backend, check out, report
    - merge_descriptors: Field-level precedence merge of VcsDescriptors
    - path_to_root: Root-relative path inside a working copy
"""

from .backends import (
    BACKENDS,
    RemoteTags,
    VcsBackend,
    WorkingTree,
    create_backends,
    for_directory,
    select_backend,
)
from .cache import DiskCache, MetadataCache
from .downloader import Downloader, DownloadState
from .errors import (
    BackendExecutionFailure,
    DownloadCancelled,
    MalformedUrl,
    NoApplicableBackend,
    NoSourceLocation,
    PartialResolution,
    ProcessFailure,
    TargetDirectoryConflict,
    UnsupportedCommandVersion,
    VcsFetchError,
    collect_messages,
)
from .paths import path_to_root
from .process import CancellationToken, ProcessCapture, check_command_version, get_command_version
from .result import Err, Ok, Result
from .types import (
    EMPTY,
    BatchReport,
    DownloadRequest,
    DownloadResult,
    VcsDescriptor,
    VcsType,
    merge_descriptors,
)
from .urls import (
    expand_shortcut_url,
    normalize_vcs_url,
    parse_scm_connection,
    split_vcs_url,
    try_split_vcs_url,
)

__all__ = [
    # Types
    "EMPTY",
    "BatchReport",
    "DownloadRequest",
    "DownloadResult",
    "VcsDescriptor",
    "VcsType",
    "merge_descriptors",
    # URLs
    "expand_shortcut_url",
    "normalize_vcs_url",
    "parse_scm_connection",
    "split_vcs_url",
    "try_split_vcs_url",
    # Backends
    "BACKENDS",
    "RemoteTags",
    "VcsBackend",
    "WorkingTree",
    "create_backends",
    "for_directory",
    "select_backend",
    # Orchestration
    "CancellationToken",
    "DiskCache",
    "DownloadState",
    "Downloader",
    "MetadataCache",
    "ProcessCapture",
    "check_command_version",
    "get_command_version",
    "path_to_root",
    # Results & errors
    "Err",
    "Ok",
    "Result",
    "BackendExecutionFailure",
    "DownloadCancelled",
    "MalformedUrl",
    "NoApplicableBackend",
    "NoSourceLocation",
    "PartialResolution",
    "ProcessFailure",
    "TargetDirectoryConflict",
    "UnsupportedCommandVersion",
    "VcsFetchError",
    "collect_messages",
]
