"""
Clear Cache Command - Drop cached remote metadata.

Tag listings of remote repositories are cached between runs. Clearing the
cache makes the next download ask the remotes again.
"""

import click

from ..utils import echo_success, get_settings


@click.command("clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context):
    """Remove every entry from the remote metadata cache."""
    settings = get_settings(ctx)
    removed = settings.create_cache().clear()
    echo_success(f"Removed {removed} cache entries from {settings.cache_dir}")
