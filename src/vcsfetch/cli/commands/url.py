"""
URL Commands - Inspect how repository URLs are understood.

Usage:
    vcsfetch normalize git@github.com:org/repo
    vcsfetch split https://github.com/org/repo/tree/main/docs --json
"""

import json

import click

from ...core.urls import expand_shortcut_url, normalize_vcs_url, split_vcs_url
from ..utils import console, descriptor_table


@click.command()
@click.argument("url")
@click.option("--shortcuts", is_flag=True, help="Expand npm-style shortcuts like 'github:org/repo' first")
def normalize(url: str, shortcuts: bool):
    """Print the normalized form of URL."""
    if shortcuts:
        url = expand_shortcut_url(url)
    click.echo(normalize_vcs_url(url))


@click.command()
@click.argument("url")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def split(url: str, as_json: bool):
    """
    Split a hosting-service URL into repository, revision and path.

    URLs that are not recognized come back unchanged with no provider.
    """
    descriptor = split_vcs_url(normalize_vcs_url(url))
    if as_json:
        click.echo(json.dumps(descriptor.model_dump(), indent=2))
    else:
        console.print(descriptor_table(descriptor))
