"""statehub CLI

Command modules:
- serve.py: serve, state
- config.py: config show, config set
- common.py: shared utilities
"""
from pathlib import Path

import click

from .. import __version__
from .common import VERBOSITY_NORMAL, VERBOSITY_QUIET, VERBOSITY_VERBOSE
from .config import config_group
from .serve import serve, state


@click.group()
@click.version_option(version=__version__, prog_name="statehub")
@click.option('--data-dir', type=click.Path(), default=None, envvar='STATEHUB_DATA_DIR',
              help='Directory for store.json and config.yaml (default: ~/.statehub)')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Enable verbose output')
@click.option('--quiet', '-q', is_flag=True, default=False,
              help='Suppress non-essential output')
@click.pass_context
def cli(ctx, data_dir, verbose, quiet):
    """statehub - real-time state synchronization hub

    \b
    Commands:
        serve             Start the hub server
        state             Print the state snapshot of a running hub
        config            Configuration management

    \b
    Examples:
        statehub serve --port 5920
        statehub state --name version
        statehub config show
    """
    ctx.ensure_object(dict)

    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")

    if quiet:
        ctx.obj['verbosity'] = VERBOSITY_QUIET
    elif verbose:
        ctx.obj['verbosity'] = VERBOSITY_VERBOSE
    else:
        ctx.obj['verbosity'] = VERBOSITY_NORMAL

    ctx.obj['data_dir'] = Path(data_dir) if data_dir else None


cli.add_command(serve)
cli.add_command(state)
cli.add_command(config_group, name='config')


def main():
    """Entry point for the statehub console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
