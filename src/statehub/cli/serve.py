"""statehub CLI - serve and state commands."""
import json
import sys

import click
import requests

from ..errors import StateHubError
from .common import configure_logging, echo_normal, echo_quiet, load_config


@click.command()
@click.option('--host', default=None, help='Host to bind to (default: 0.0.0.0)')
@click.option('--port', default=None, type=int, help='Port to bind to (default: 5920)')
@click.option('--static-dir', type=click.Path(exists=True, file_okay=False), default=None,
              help='Directory served at / after the API routes')
@click.option('--error-broadcast', type=click.Choice(['all', 'origin']), default=None,
              help='Who receives error messages for failed actions')
@click.pass_context
def serve(ctx, host, port, static_dir, error_broadcast) -> None:
    """Start the hub server.

    Starts a FastAPI server that provides:
    - WebSocket sync channel at /ws
    - State snapshot at /state

    Examples:
        statehub serve
        statehub serve --port 5921
        PORT=8080 statehub serve --static-dir ./dist
    """
    from ..server import run

    verbosity = ctx.obj.get('verbosity', 1)
    config = load_config(ctx, {
        'host': host,
        'port': port,
        'static_dir': static_dir,
        'error_broadcast': error_broadcast,
    })
    configure_logging(config.log_level, verbosity)

    scheme = "https" if config.use_https else "http"
    echo_normal(click.style("Starting statehub...", fg="cyan", bold=True), verbosity)
    echo_normal(f"  Listening: {scheme}://{config.host}:{config.port}", verbosity)
    echo_normal(f"  Data dir: {config.data_dir}", verbosity)
    echo_normal(f"  Errors: broadcast to {config.error_broadcast}", verbosity)

    try:
        run(config)
    except KeyboardInterrupt:
        echo_normal(click.style("Server stopped.", fg="yellow"), verbosity)
    except (StateHubError, ImportError) as e:
        echo_quiet(click.style(f"Error starting server: {e}", fg="red"), verbosity)
        sys.exit(1)


@click.command()
@click.option('--url', default=None, help='Hub base URL (default: http(s)://localhost:<port>)')
@click.option('--name', default=None, help='Only print this state')
@click.option('--timeout', default=5.0, type=float, help='Request timeout in seconds')
@click.pass_context
def state(ctx, url, name, timeout) -> None:
    """Print the current state snapshot of a running hub.

    Examples:
        statehub state
        statehub state --name updateChannel
        statehub state --url https://localhost:5920
    """
    verbosity = ctx.obj.get('verbosity', 1)
    if url is None:
        config = load_config(ctx)
        scheme = "https" if config.use_https else "http"
        url = f"{scheme}://localhost:{config.port}"

    try:
        response = requests.get(f"{url.rstrip('/')}/state", timeout=timeout)
        response.raise_for_status()
        snapshot = response.json()
    except requests.RequestException as e:
        echo_quiet(click.style(f"Error: Could not read state from {url}: {e}", fg="red"), verbosity)
        sys.exit(1)

    if name is not None:
        if name not in snapshot:
            echo_quiet(click.style(f"Error: Unknown state '{name}'", fg="red"), verbosity)
            sys.exit(1)
        snapshot = snapshot[name]

    echo_quiet(json.dumps(snapshot, indent=2, sort_keys=True), verbosity)
