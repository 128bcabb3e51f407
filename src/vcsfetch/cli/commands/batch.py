"""
Batch Command - Download many packages in one run.

The requests file is YAML (or JSON, which YAML reads too):

    - name: babel-code-frame
      version: 6.26.0
      vcs:
        provider: git
        url: https://github.com/babel/babel.git
        path: packages/babel-code-frame
    - name: left-pad
      version: 1.3.0
      homepage_url: https://github.com/stevemao/left-pad
    - name: commons-lang3
      version: 3.12.0
      scm:
        connection: scm:git:https://gitbox.apache.org/repos/asf/commons-lang.git
        tag: rel/commons-lang-3.12.0

A Maven-style "scm" entry (a mapping or just the connection string) stands
in for a missing "vcs" entry and otherwise fills its blank url, revision and
path.

Failures of single packages are reported and do not stop the run.
"""

import sys
from pathlib import Path
from typing import Any, List, Optional

import click
import yaml
from pydantic import ValidationError
from rich.table import Table

from ...core.backends import create_backends
from ...core.downloader import Downloader
from ...core.types import BatchReport, DownloadRequest
from ...core.urls import parse_scm_connection
from ..utils import console, echo_error, echo_success, echo_warning, get_settings


def load_requests(path: Path) -> List[DownloadRequest]:
    """
    Read download requests from a YAML or JSON file.

    Raises:
        click.ClickException: If the file is malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
    except yaml.YAMLError as e:
        raise click.ClickException(f"Cannot parse {path}: {e}") from e

    if isinstance(data, dict) and "packages" in data:
        data = data["packages"]
    if not isinstance(data, list):
        raise click.ClickException(f"{path} must contain a list of packages")

    try:
        return [_parse_entry(entry, path) for entry in data]
    except ValidationError as e:
        raise click.ClickException(f"Invalid request in {path}: {e}") from e


def _parse_entry(entry: Any, path: Path) -> DownloadRequest:
    """Build one request, filling gaps in its vcs entry from a Maven scm entry."""
    if not isinstance(entry, dict) or "scm" not in entry:
        return DownloadRequest.model_validate(entry)

    fields = dict(entry)
    scm = fields.pop("scm") or {}
    if isinstance(scm, str):
        scm = {"connection": scm}
    if not isinstance(scm, dict):
        raise click.ClickException(f"'scm' in {path} must be a connection string or a mapping")

    request = DownloadRequest.model_validate(fields)
    scm_vcs = parse_scm_connection(str(scm.get("connection") or ""), str(scm.get("tag") or ""))
    if scm_vcs.is_empty:
        return request
    vcs = scm_vcs if request.vcs.is_empty else request.vcs.merge(scm_vcs)
    return request.model_copy(update={"vcs": vcs})


@click.command()
@click.argument("requests_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False),
    required=True,
    help="Parent directory for all working copies",
)
@click.option("--jobs", "-j", type=int, default=None, help="Parallel downloads")
@click.option("--timeout", type=float, default=None, help="Timeout per VCS command in seconds")
@click.pass_context
def batch(
    ctx: click.Context,
    requests_file: str,
    output_dir: str,
    jobs: Optional[int],
    timeout: Optional[float],
):
    """Download every package listed in REQUESTS_FILE into OUTPUT/<name>/<version>."""
    settings = get_settings(ctx, jobs=jobs, command_timeout=timeout)
    requests = load_requests(Path(requests_file))
    if not requests:
        echo_warning(f"No packages listed in {requests_file}")
        return

    downloader = Downloader(
        registry=create_backends(settings.command_timeout),
        cache=settings.create_cache(),
    )
    report = downloader.download_all(requests, Path(output_dir), jobs=settings.jobs)
    _print_report(report)

    if not report.success:
        echo_error(f"{len(report.failures)} of {len(requests)} downloads failed")
        sys.exit(1)
    echo_success(f"Downloaded {len(report.results)} packages")


def _print_report(report: BatchReport) -> None:
    """Print batch results as a table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Package", style="cyan")
    table.add_column("Status")
    table.add_column("Revision / Cause")

    for result in report.results:
        table.add_row(
            str(result.local_directory),
            f"[green]{result.provider}[/green]",
            result.resolved_revision[:12] or "[dim]unknown[/dim]",
        )
    for failure in report.failures:
        table.add_row(
            failure.request,
            "[red]failed[/red]",
            failure.causes[-1] if failure.causes else "",
        )

    console.print(table)
