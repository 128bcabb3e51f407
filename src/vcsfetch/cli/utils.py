"""
CLI Utilities - Shared helper functions for command line operations.

Formatted printing, logging setup and settings loading used by every
command.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import ConfigError, Settings, load_settings
from ..core.types import VcsDescriptor

console = Console()
err_console = Console(stderr=True)


def echo_success(message: str) -> None:
    """
    Print a success message with a green checkmark.

    Args:
        message (str): The message to display.
    """
    click.echo(click.style(f"✅ {message}", fg="green"))


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_warning(message: str) -> None:
    """Print a warning message with a yellow alert symbol."""
    click.echo(click.style(f"⚠️  {message}", fg="yellow"), err=True)


def configure_logging(verbose: bool) -> None:
    """Route log records of the vcsfetch package through rich."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=err_console, show_path=False, show_time=verbose)
    package_logger = logging.getLogger("vcsfetch")
    package_logger.handlers[:] = [handler]
    package_logger.setLevel(level)


def get_settings(ctx: click.Context, **overrides: Any) -> Settings:
    """
    Load settings for the current invocation, exiting on invalid config.

    Args:
        ctx: Click context carrying the --config option of the group.
        **overrides: Values from command options; None means "not given".
    """
    config_path: Optional[Path] = (ctx.obj or {}).get("config_path")
    try:
        return load_settings(config_path, **overrides)
    except ConfigError as e:
        echo_error(str(e))
        sys.exit(1)


def descriptor_table(descriptor: VcsDescriptor, title: str = "") -> Table:
    """Render a descriptor as a two-column table."""
    table = Table(show_header=False, title=title or None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in descriptor.model_dump().items():
        table.add_row(field, value or "[dim]-[/dim]")
    return table
