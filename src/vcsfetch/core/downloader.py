"""
Download Orchestrator.

Turns declared VCS metadata into a local working copy.

Flow:
    START -> VALIDATED -> BACKEND_SELECTED -> CHECKED_OUT -> SUCCESS
    Any step may end in FAILED with a typed VcsFetchError.

Precedence of information:
    1. Declared metadata
    2. Heuristic reading of the declared (or homepage) URL
    3. State of the fresh working copy, for reporting only

Backend selection only ever sees the first two.
"""

from __future__ import annotations

import logging
import shutil
import warnings
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .backends import BACKENDS, Registry, VcsBackend, select_backend
from .cache import MetadataCache
from .errors import (
    BackendExecutionFailure,
    DownloadCancelled,
    NoSourceLocation,
    PartialResolution,
    ProcessFailure,
    TargetDirectoryConflict,
    VcsFetchError,
    collect_messages,
)
from .paths import is_empty_dir
from .process import CancellationToken
from .types import (
    BatchFailure,
    BatchReport,
    DownloadRequest,
    DownloadResult,
    VcsDescriptor,
    merge_descriptors,
)
from .urls import normalize_vcs_url, try_split_vcs_url

logger = logging.getLogger(__name__)


class DownloadState(StrEnum):
    """Stages of a single download."""
    START = "start"
    VALIDATED = "validated"
    BACKEND_SELECTED = "backend_selected"
    CHECKED_OUT = "checked_out"
    SUCCESS = "success"
    FAILED = "failed"


class Downloader:
    """
    Resolves and checks out package sources.

    Attributes:
        registry: Backends to select from, in priority order.
        cache: Optional cache handed to backends for remote queries.

    Example:
        ```python
        downloader = Downloader()
        result = downloader.download(
            VcsDescriptor(url="https://github.com/babel/babel/tree/master/packages/babel-code-frame"),
            Path("out/babel-code-frame"),
        )
        print(result.resolved_revision)
        ```
    """

    def __init__(self, registry: Registry = BACKENDS, cache: Optional[MetadataCache] = None):
        self.registry = registry
        self.cache = cache

    def process(self, declared: VcsDescriptor, homepage_url: str = "") -> VcsDescriptor:
        """
        Merge declared metadata with what its URL tells about itself.

        The declared URL (or the homepage URL if none is declared) is
        normalized and split. When the split recognizes a hosting-service
        layout, the canonical repository URL stands in for the declared one,
        since both carry the same information. Declared revision and path keep
        precedence over the ones read from the URL.

        Args:
            declared: Metadata as declared by the package.
            homepage_url: Fallback URL to read when nothing is declared.

        Returns:
            The merged descriptor. Its url may still be blank.
        """
        declared_url = normalize_vcs_url(declared.url)
        source_url = declared_url or normalize_vcs_url(homepage_url)
        if not source_url:
            return declared.model_copy(update={"url": declared_url})

        split = try_split_vcs_url(source_url)
        if split.is_err():
            logger.debug(str(split.error))
            heuristic = VcsDescriptor(url=source_url)
        else:
            heuristic = split.value
            if declared_url:
                declared_url = heuristic.url

        primary = declared.model_copy(update={"url": declared_url})
        return merge_descriptors(primary, heuristic)

    def _transition(self, state: DownloadState, subject: str) -> None:
        logger.debug(f"[{subject}] -> {state}")

    def download(
        self,
        declared: VcsDescriptor,
        target_dir: Path,
        version_hint: str = "",
        *,
        homepage_url: str = "",
        cancel_token: Optional[CancellationToken] = None,
    ) -> DownloadResult:
        """
        Check out the sources described by ``declared`` into ``target_dir``.

        A failed or cancelled checkout leaves ``target_dir`` as it was before
        the call, so the caller may retry into the same directory.

        Args:
            declared: Declared VCS metadata, possibly empty.
            target_dir: Directory for the working copy; must be absent or empty.
            version_hint: Package version, used to find a tag if no revision is known.
            homepage_url: Fallback URL when ``declared`` has none.
            cancel_token: Token to abort the download.

        Returns:
            The DownloadResult of the checkout.

        Raises:
            NoSourceLocation: If no URL is known.
            NoApplicableBackend: If no backend fits the provider or URL.
            TargetDirectoryConflict: If ``target_dir`` has content or cannot be created.
            BackendExecutionFailure: If the VCS client failed.
            DownloadCancelled: If ``cancel_token`` was cancelled.
        """
        target_dir = Path(target_dir)
        subject = str(target_dir)
        self._transition(DownloadState.START, subject)

        merged = self.process(declared, homepage_url)
        if not merged.url.strip():
            self._transition(DownloadState.FAILED, subject)
            raise NoSourceLocation()
        self._transition(DownloadState.VALIDATED, subject)

        try:
            backend = select_backend(merged.provider, merged.url, self.registry)
        except VcsFetchError:
            self._transition(DownloadState.FAILED, subject)
            raise
        self._transition(DownloadState.BACKEND_SELECTED, subject)

        if not merged.revision.strip():
            logger.warning(
                f"Package has no revision for '{merged.url}'; "
                f"{backend.name} will pick one (version hint: '{version_hint}')."
            )

        created = self._prepare_target(target_dir)
        try:
            if cancel_token is not None and cancel_token.cancelled:
                raise DownloadCancelled(
                    f"Download of '{merged.url}' was cancelled before it started.",
                    backend=backend.name,
                )
            resolved = backend.download(
                merged.url,
                merged.revision,
                merged.path,
                version_hint,
                target_dir,
                cache=self.cache,
                cancel_token=cancel_token,
            )
        except BackendExecutionFailure:
            self._transition(DownloadState.FAILED, subject)
            self._discard_target(target_dir, created)
            raise
        self._transition(DownloadState.CHECKED_OUT, subject)

        report = merge_descriptors(merged, self._working_tree_state(backend, target_dir))
        resolved = resolved.strip()
        if not resolved:
            warnings.warn(
                f"{backend.name} checked out '{merged.url}' but could not tell the revision; "
                f"reporting '{report.revision}'.",
                PartialResolution,
                stacklevel=2,
            )
            resolved = report.revision

        result = DownloadResult(
            provider=backend.name,
            url=merged.url,
            resolved_revision=resolved,
            path=report.path,
            local_directory=target_dir,
        )
        self._transition(DownloadState.SUCCESS, subject)
        logger.info(f"Downloaded '{result.url}' at '{result.resolved_revision}' to '{target_dir}'.")
        return result

    @staticmethod
    def _prepare_target(target_dir: Path) -> bool:
        """Create the target directory. Returns whether it was created here."""
        if target_dir.exists():
            if not is_empty_dir(target_dir):
                raise TargetDirectoryConflict(target_dir)
            return False
        try:
            target_dir.mkdir(parents=True)
        except OSError as e:
            raise TargetDirectoryConflict(target_dir, reason=e.strerror or str(e)) from e
        return True

    @staticmethod
    def _discard_target(target_dir: Path, created: bool) -> None:
        logger.info(f"Removing partial checkout in '{target_dir}'.")
        if created:
            shutil.rmtree(target_dir, ignore_errors=True)
            return
        for child in target_dir.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child, ignore_errors=True)
            else:
                child.unlink(missing_ok=True)

    @staticmethod
    def _working_tree_state(backend: VcsBackend, target_dir: Path) -> VcsDescriptor:
        working_tree = backend.working_tree(target_dir)
        if working_tree is None:
            return VcsDescriptor()
        try:
            return working_tree.get_info()
        except ProcessFailure as e:
            logger.warning(f"Could not inspect working copy in '{target_dir}': {e}")
            return VcsDescriptor()

    def download_all(
        self,
        requests: Iterable[DownloadRequest],
        output_dir: Path,
        *,
        jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchReport:
        """
        Download many packages, continuing past individual failures.

        Each request goes to ``output_dir/<name>/<version>``.

        Args:
            requests: Packages to download.
            output_dir: Parent directory of all working copies.
            jobs: Number of parallel downloads.
            cancel_token: Token aborting all remaining downloads.

        Returns:
            BatchReport with results and failures in request order.
        """
        requests = list(requests)
        output_dir = Path(output_dir)

        def run_one(request: DownloadRequest) -> Union[DownloadResult, BatchFailure]:
            target = output_dir / request.target_name()
            logger.info(f"Downloading '{request.identifier}' to '{target}'.")
            try:
                return self.download(
                    request.vcs,
                    target,
                    request.version,
                    homepage_url=request.homepage_url,
                    cancel_token=cancel_token,
                )
            except VcsFetchError as e:
                logger.warning(f"Failed to download '{request.identifier}': {e}")
                causes = collect_messages(e)
                if isinstance(e, BackendExecutionFailure) and e.causes:
                    causes = e.causes
                return BatchFailure(request=request.identifier, causes=causes)

        if jobs > 1 and len(requests) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                outcomes: List[Union[DownloadResult, BatchFailure]] = list(pool.map(run_one, requests))
        else:
            outcomes = [run_one(request) for request in requests]

        report = BatchReport()
        for outcome in outcomes:
            if isinstance(outcome, BatchFailure):
                report.failures.append(outcome)
            else:
                report.results.append(outcome)
        return report
