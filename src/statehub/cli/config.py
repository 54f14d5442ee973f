"""Configuration commands for statehub CLI."""
import sys

import click
import yaml

from ..config import HubConfig
from ..errors import ConfigError
from .common import echo_normal, echo_quiet, load_config


@click.group()
def config_group():
    """Configuration management commands."""
    pass


@config_group.command('show')
@click.pass_context
def config_show(ctx) -> None:
    """Show the resolved configuration.

    Values come from config.yaml, then environment variables, in that order.

    Examples:
        statehub config show
        PORT=8080 statehub config show
    """
    verbosity = ctx.obj.get('verbosity', 1)
    config = load_config(ctx)
    echo_quiet(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=True).rstrip(), verbosity)


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key: str, value: str) -> None:
    """Set a value in config.yaml.

    Args:
        key: Config field (e.g., 'port', 'error_broadcast')
        value: Value to store

    Examples:
        statehub config set port 5921
        statehub config set error_broadcast origin
    """
    verbosity = ctx.obj.get('verbosity', 1)
    if key not in HubConfig.__dataclass_fields__ or key == 'data_dir':
        echo_quiet(click.style(f"Error: Unknown config key '{key}'", fg="red"), verbosity)
        sys.exit(1)

    config_path = load_config(ctx).config_path
    previous = config_path.read_text() if config_path.exists() else None
    try:
        data = yaml.safe_load(previous or "") or {}
        data[key] = yaml.safe_load(value)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(yaml.safe_dump(data, default_flow_style=False))
    except (OSError, yaml.YAMLError) as e:
        echo_quiet(click.style(f"Error: Failed to set config: {e}", fg="red"), verbosity)
        sys.exit(1)

    try:
        HubConfig.load(data_dir=config_path.parent)
    except ConfigError as e:
        if previous is None:
            config_path.unlink()
        else:
            config_path.write_text(previous)
        echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
        sys.exit(1)

    echo_normal(click.style(f"✓ Set {key} = {value}", fg="green"), verbosity)
