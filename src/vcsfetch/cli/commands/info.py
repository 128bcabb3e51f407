"""
Info Command - Describe an existing working copy.

Usage:
    vcsfetch info            # Current directory
    vcsfetch info src/lib --json
"""

import json
import sys
from pathlib import Path

import click

from ...core.backends import for_directory
from ...core.errors import VcsFetchError
from ..utils import console, descriptor_table, echo_error


@click.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def info(directory: str, as_json: bool):
    """Show VCS information for DIRECTORY and its path below the working copy root."""
    working_tree = for_directory(Path(directory))
    if working_tree is None:
        echo_error(f"'{directory}' is not inside a known working copy.")
        sys.exit(1)

    try:
        descriptor = working_tree.get_info()
    except VcsFetchError as e:
        echo_error(str(e))
        sys.exit(1)

    if as_json:
        data = descriptor.model_dump()
        data["root"] = str(working_tree.get_root_path())
        click.echo(json.dumps(data, indent=2))
        return

    console.print(descriptor_table(descriptor, title=str(working_tree.get_root_path())))
