"""
Download Command - Check out the sources of one package.

Usage:
    vcsfetch download https://github.com/org/repo -o out/repo
    vcsfetch download https://github.com/org/repo -o out/repo --version-hint 1.2.0
"""

import sys
from pathlib import Path
from typing import Optional

import click

from ...core.backends import create_backends
from ...core.downloader import Downloader
from ...core.errors import VcsFetchError
from ...core.types import VcsDescriptor
from ..utils import echo_error, echo_success, get_settings


@click.command()
@click.argument("url", default="")
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False),
    required=True,
    help="Directory for the working copy (must be absent or empty)",
)
@click.option("--provider", default="", help="VCS name, e.g. git, hg, svn, repo")
@click.option("--revision", "-r", default="", help="Branch, tag or commit to check out")
@click.option("--path", "sub_path", default="", help="Sub-path inside the repository")
@click.option("--version-hint", default="", help="Package version used to find a tag")
@click.option("--homepage", default="", help="Fallback URL if URL is empty")
@click.option("--timeout", type=float, default=None, help="Timeout per VCS command in seconds")
@click.option("--no-cache", is_flag=True, help="Do not cache remote tag listings")
@click.option("--json", "as_json", is_flag=True, help="Output the result as JSON")
@click.pass_context
def download(
    ctx: click.Context,
    url: str,
    output_dir: str,
    provider: str,
    revision: str,
    sub_path: str,
    version_hint: str,
    homepage: str,
    timeout: Optional[float],
    no_cache: bool,
    as_json: bool,
):
    """
    Download the repository at URL into a local working copy.

    \b
    Examples:
        vcsfetch download https://github.com/babel/babel/tree/master/packages/babel-code-frame -o out
        vcsfetch download https://svn.example.org/repo --provider svn -r 1234 -o out
    """
    settings = get_settings(ctx, command_timeout=timeout)
    downloader = Downloader(
        registry=create_backends(settings.command_timeout),
        cache=None if no_cache else settings.create_cache(),
    )
    declared = VcsDescriptor(provider=provider, url=url, revision=revision, path=sub_path)

    try:
        result = downloader.download(
            declared, Path(output_dir), version_hint, homepage_url=homepage
        )
    except VcsFetchError as e:
        echo_error(str(e))
        sys.exit(1)

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    else:
        echo_success(
            f"Checked out {result.url} at {result.resolved_revision or 'unknown revision'} "
            f"into {result.local_directory} ({result.provider})"
        )
