"""CLI entry point for relay-proxy."""

import sys
from datetime import datetime

from rich.console import Console

from app import create_app
from core.config import CONFIG_FILE, load_config
from core.exceptions import InvalidTargetError
from services.upstream import parse_target
from ui.dashboard import Dashboard
from ui.log_utils import write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    config = load_config()

    # Handle CLI arguments
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

        console.print(f"[red][ERROR][/red] Unknown argument: {arg}")
        _print_help()
        sys.exit(2)

    # An invalid target is reported per request as 502, so only warn here
    try:
        parse_target(config.upstream.target_url)
    except InvalidTargetError as e:
        console.print(f"[yellow]Warning:[/yellow] {e}")
        console.print(f"[dim]Edit {CONFIG_FILE} and set upstream.target_url[/dim]")

    dashboard = Dashboard(config)

    import uvicorn

    app = create_app(config, dashboard)

    # Run with dashboard
    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    dashboard.start()
    start_time = datetime.now()
    write_cli_log("STARTUP", "Proxy started", port=config.proxy.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        dashboard.stop()


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Relay Proxy[/bold cyan]

Forwards every request, whatever its method or path, to one upstream URL
and relays the upstream status, headers and body back.

[bold]Usage:[/bold]
    relay-proxy              Start with live dashboard
    relay-proxy --config     Show config location
    relay-proxy --help       Show this help

[bold]Configuration:[/bold]
    upstream.target_url      URL every request is forwarded to
    upstream.user_agent      User-Agent sent upstream
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
