"""Shared utilities for statehub CLI commands."""
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..config import HubConfig
from ..errors import ConfigError

# Verbosity levels
VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2


def should_print(verbosity: int, message_level: int) -> bool:
    """Determine if a message should be printed at the current verbosity."""
    return verbosity >= message_level


def echo_verbose(message: str, verbosity: int) -> None:
    """Print a message only in verbose mode."""
    if should_print(verbosity, VERBOSITY_VERBOSE):
        click.echo(message)


def echo_normal(message: str, verbosity: int) -> None:
    """Print a message in normal and verbose modes."""
    if should_print(verbosity, VERBOSITY_NORMAL):
        click.echo(message)


def echo_quiet(message: str, verbosity: int) -> None:
    """Print a message that is shown even in quiet mode."""
    click.echo(message)


def load_config(ctx: click.Context, overrides: Optional[Dict[str, Any]] = None) -> HubConfig:
    """Resolve the hub config for a command, exiting with a message when it is invalid.

    Args:
        ctx: Click context carrying 'data_dir' and 'verbosity'.
        overrides: Option values given on the command line.
    """
    data_dir: Optional[Path] = ctx.obj.get('data_dir')
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)
    try:
        return HubConfig.load(data_dir=data_dir, overrides=overrides)
    except ConfigError as e:
        echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
        sys.exit(1)


def configure_logging(level: str, verbosity: int) -> None:
    """Set up root logging for a long-running command."""
    if verbosity >= VERBOSITY_VERBOSE:
        level = "DEBUG"
    elif verbosity <= VERBOSITY_QUIET:
        level = "WARNING"
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
