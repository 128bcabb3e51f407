"""
vcsfetch CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

from pathlib import Path
from typing import Optional

import click

from .commands import batch, cache, download, info, url
from .utils import configure_logging


@click.group()
@click.version_option(package_name="vcsfetch")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file (default: .vcsfetch/config.yaml)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[str]):
    """vcsfetch: Locate and check out package sources.

    Reads loosely specified VCS metadata, works out repository, revision
    and sub-path, and drives git, repo, hg or svn to get the sources.

    \b
    Quick Start:
      vcsfetch split https://github.com/org/repo/tree/main/docs
      vcsfetch download https://github.com/org/repo -o out/repo
      vcsfetch batch packages.yaml -o out --jobs 4
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None


# Register commands
main.add_command(url.normalize)
main.add_command(url.split)
main.add_command(info.info)
main.add_command(download.download)
main.add_command(batch.batch)
main.add_command(cache.clear_cache)

if __name__ == "__main__":
    main()
