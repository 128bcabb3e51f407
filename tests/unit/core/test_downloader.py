"""
Tests for the Download Orchestrator.

Backends are replaced by in-memory fakes registered in a custom registry, so
these tests exercise merging, selection, validation and failure mapping only.
"""

import warnings
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from vcsfetch.core.backends import GitBackend, MercurialBackend
from vcsfetch.core.downloader import Downloader
from vcsfetch.core.errors import (
    BackendExecutionFailure,
    DownloadCancelled,
    NoApplicableBackend,
    NoSourceLocation,
    PartialResolution,
    TargetDirectoryConflict,
)
from vcsfetch.core.process import CancellationToken
from vcsfetch.core.types import DownloadRequest, VcsDescriptor


class RecordingGit(GitBackend):
    """Git backend whose checkout only records its arguments."""

    version_requirement = ""

    def __init__(self, resolved: str = "0123456789abcdef", error: Optional[Exception] = None):
        super().__init__()
        self.resolved = resolved
        self.error = error
        self.calls: List[tuple] = []

    def _download(self, url, revision, path, version_hint, target_dir, cache, cancel_token):
        self.calls.append((url, revision, path, version_hint, target_dir))
        (target_dir / "README").write_text("checked out")
        if self.error is not None:
            raise self.error
        return self.resolved

    def working_tree(self, path):
        return None


class TestProcess:
    """Tests for Downloader.process."""

    def test_declared_browse_url_is_split(self):
        """Test that a browse URL yields repository, revision and path."""
        merged = Downloader().process(
            VcsDescriptor(url="https://github.com/babel/babel/tree/master/packages/babel-code-frame")
        )
        assert merged == VcsDescriptor(
            provider="Git",
            url="https://github.com/babel/babel.git",
            revision="master",
            path="packages/babel-code-frame",
        )

    def test_declared_fields_win(self):
        """Test that declared revision and path override the URL reading."""
        merged = Downloader().process(
            VcsDescriptor(
                provider="git",
                url="git+https://github.com/org/repo/tree/main/docs",
                revision="v2.0",
                path="lib",
            )
        )
        assert merged.provider == "Git"
        assert merged.url == "https://github.com/org/repo.git"
        assert merged.revision == "v2.0"
        assert merged.path == "lib"

    def test_homepage_fallback(self):
        """Test that the homepage URL is used when nothing is declared."""
        merged = Downloader().process(VcsDescriptor(), homepage_url="https://bitbucket.org/paniq/masagin")
        assert merged.url == "https://bitbucket.org/paniq/masagin"
        assert merged.provider == ""

    def test_unknown_host_passthrough(self):
        merged = Downloader().process(VcsDescriptor(url="https://example.org/svn/x/"))
        assert merged == VcsDescriptor(url="https://example.org/svn/x")

    def test_nothing_known(self):
        assert Downloader().process(VcsDescriptor(revision="1.0")) == VcsDescriptor(revision="1.0")


class TestDownload:
    """Tests for Downloader.download."""

    def test_blank_url_fails_before_selection(self, tmp_path: Path):
        """Test NoSourceLocation without touching any backend."""
        backend = MagicMock()
        downloader = Downloader(registry=[backend])

        with pytest.raises(NoSourceLocation):
            downloader.download(VcsDescriptor(provider="git", revision="1.0"), tmp_path / "out")

        assert backend.method_calls == []
        assert not (tmp_path / "out").exists()

    def test_success(self, tmp_path: Path):
        """Test the result of a successful checkout."""
        backend = RecordingGit()
        target = tmp_path / "out" / "babel"

        result = Downloader(registry=[backend]).download(
            VcsDescriptor(url="https://github.com/babel/babel/tree/master/packages/babel-code-frame"),
            target,
            "6.26.0",
        )

        assert backend.calls == [
            ("https://github.com/babel/babel.git", "master", "packages/babel-code-frame", "6.26.0", target)
        ]
        assert result.provider == "Git"
        assert result.url == "https://github.com/babel/babel.git"
        assert result.resolved_revision == "0123456789abcdef"
        assert result.path == "packages/babel-code-frame"
        assert result.local_directory == target

    def test_provider_hint_selects_backend(self, tmp_path: Path):
        """Test that the declared provider wins over URL matching."""
        git = RecordingGit()
        hg = MagicMock(spec=MercurialBackend)
        hg.matches_provider_name.return_value = True
        hg.name = "Mercurial"
        hg.download.return_value = "abc"
        hg.working_tree.return_value = None

        result = Downloader(registry=[git, hg]).download(
            VcsDescriptor(provider="hg", url="https://github.com/org/repo.git", revision="1"),
            tmp_path / "out",
        )

        assert git.calls == []
        assert result.provider == "Mercurial"

    def test_no_backend(self, tmp_path: Path):
        with pytest.raises(NoApplicableBackend):
            Downloader(registry=[RecordingGit()]).download(
                VcsDescriptor(url="https://example.org/archive.zip"), tmp_path / "out"
            )

    def test_target_conflict(self, tmp_path: Path):
        """Test that a non-empty target directory is refused."""
        target = tmp_path / "out"
        target.mkdir()
        (target / "existing").write_text("x")
        backend = RecordingGit()

        with pytest.raises(TargetDirectoryConflict):
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), target
            )
        assert backend.calls == []

    def test_empty_existing_target_is_fine(self, tmp_path: Path):
        result = Downloader(registry=[RecordingGit()]).download(
            VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), tmp_path
        )
        assert result.local_directory == tmp_path

    def test_blank_revision_is_only_a_warning(self, tmp_path: Path, caplog):
        with caplog.at_level("WARNING", logger="vcsfetch"):
            result = Downloader(registry=[RecordingGit()]).download(
                VcsDescriptor(url="https://github.com/org/repo.git"), tmp_path / "out"
            )
        assert result.resolved_revision
        assert "no revision" in caplog.text

    def test_partial_resolution(self, tmp_path: Path):
        """Test the warning and the fallback to the requested revision."""
        downloader = Downloader(registry=[RecordingGit(resolved="")])

        with pytest.warns(PartialResolution):
            result = downloader.download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="v1.0"), tmp_path / "out"
            )

        assert result.resolved_revision == "v1.0"

    def test_backend_failure_keeps_causes(self, tmp_path: Path):
        """Test that the cause chain survives unchanged and nothing is retried."""
        error = BackendExecutionFailure("Git failed.", backend="Git", causes=["Git failed.", "exit 128"])
        backend = RecordingGit(error=error)

        with pytest.raises(BackendExecutionFailure) as exc_info:
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), tmp_path / "out"
            )

        assert exc_info.value.causes == ["Git failed.", "exit 128"]
        assert len(backend.calls) == 1

    def test_backend_failure_allows_retry(self, tmp_path: Path):
        """Test that a failed checkout leaves nothing behind, so a retry can succeed."""
        target = tmp_path / "out"
        backend = RecordingGit(error=BackendExecutionFailure("Git failed.", backend="Git"))
        downloader = Downloader(registry=[backend])
        declared = VcsDescriptor(url="https://github.com/org/repo.git", revision="main")

        with pytest.raises(BackendExecutionFailure):
            downloader.download(declared, target)
        assert not target.exists()

        backend.error = None
        result = downloader.download(declared, target)

        assert result.local_directory == target
        assert len(backend.calls) == 2

    def test_backend_failure_empties_existing_target(self, tmp_path: Path):
        backend = RecordingGit(error=BackendExecutionFailure("Git failed.", backend="Git"))

        with pytest.raises(BackendExecutionFailure):
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), tmp_path
            )

        assert list(tmp_path.iterdir()) == []

    def test_filesystem_error_in_backend(self, tmp_path: Path):
        """Test that an OSError inside the checkout becomes a backend failure."""
        backend = RecordingGit(error=PermissionError("Permission denied"))

        with pytest.raises(BackendExecutionFailure) as exc_info:
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), tmp_path / "out"
            )

        assert exc_info.value.causes[-1] == "Permission denied"
        assert not (tmp_path / "out").exists()

    def test_target_cannot_be_created(self, tmp_path: Path):
        """Test that a file in the way of the target is a typed conflict."""
        (tmp_path / "blocker").write_text("x")
        backend = RecordingGit()

        with pytest.raises(TargetDirectoryConflict) as exc_info:
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"),
                tmp_path / "blocker" / "out",
            )

        assert exc_info.value.reason
        assert "cannot be created" in str(exc_info.value)
        assert backend.calls == []

    def test_cancellation_removes_created_target(self, tmp_path: Path):
        """Test that a cancelled download leaves no partial directory behind."""
        target = tmp_path / "out"
        backend = RecordingGit(error=DownloadCancelled("cancelled", backend="Git"))

        with pytest.raises(DownloadCancelled):
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), target
            )

        assert not target.exists()

    def test_cancellation_empties_existing_target(self, tmp_path: Path):
        backend = RecordingGit(error=DownloadCancelled("cancelled", backend="Git"))

        with pytest.raises(DownloadCancelled):
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git", revision="main"), tmp_path
            )

        assert tmp_path.exists()
        assert list(tmp_path.iterdir()) == []

    def test_already_cancelled_token(self, tmp_path: Path):
        token = CancellationToken()
        token.cancel()
        backend = RecordingGit()

        with pytest.raises(DownloadCancelled):
            Downloader(registry=[backend]).download(
                VcsDescriptor(url="https://github.com/org/repo.git"), tmp_path / "out", cancel_token=token
            )

        assert backend.calls == []
        assert not (tmp_path / "out").exists()


class TestDownloadAll:
    """Tests for Downloader.download_all."""

    REQUESTS = [
        DownloadRequest(name="good", version="1.0", vcs=VcsDescriptor(url="https://github.com/org/good")),
        DownloadRequest(name="nourl", version="2.0"),
        DownloadRequest(name="other", version="3.0", homepage_url="https://github.com/org/other"),
    ]

    @pytest.mark.parametrize("jobs", [1, 3])
    def test_continues_after_failures(self, tmp_path: Path, jobs: int):
        """Test that one failing package does not stop the others."""
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            report = Downloader(registry=[RecordingGit()]).download_all(
                self.REQUESTS, tmp_path, jobs=jobs
            )

        assert not report.success
        assert [r.local_directory for r in report.results] == [
            tmp_path / "good" / "1.0",
            tmp_path / "other" / "3.0",
        ]
        assert [f.request for f in report.failures] == ["nourl@2.0"]
        assert report.failures[0].causes == ["No VCS URL provided."]

    def test_failure_causes_from_backend(self, tmp_path: Path):
        error = BackendExecutionFailure("Git failed.", backend="Git", causes=["Git failed.", "boom"])
        report = Downloader(registry=[RecordingGit(error=error)]).download_all(
            self.REQUESTS[:1], tmp_path
        )
        assert report.failures[0].causes == ["Git failed.", "boom"]

    def test_unusable_target_does_not_stop_batch(self, tmp_path: Path):
        """Test that a target blocked by a file is recorded and the run goes on."""
        (tmp_path / "good").write_text("x")

        report = Downloader(registry=[RecordingGit()]).download_all(
            [self.REQUESTS[0], self.REQUESTS[2]], tmp_path
        )

        assert [f.request for f in report.failures] == ["good@1.0"]
        assert "cannot be created" in report.failures[0].causes[0]
        assert [r.local_directory for r in report.results] == [tmp_path / "other" / "3.0"]
