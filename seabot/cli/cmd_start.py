"""Start and dashboard commands."""

import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the WhatsApp bot."""
    from seabot.main import main
    console.print("[bold blue]Starting SeaBot...[/bold blue]")
    main(debug=debug)


@cli.command()
@click.option("--host", default=None, help="Bind host (default: SEABOT_DASHBOARD_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (default: SEABOT_DASHBOARD_PORT)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def dashboard(host, port, debug):
    """Serve the admin dashboard API."""
    import uvicorn

    from seabot.config import load_settings
    from seabot.dashboard import create_app
    from seabot.main import configure_logging

    settings = load_settings()
    configure_logging("DEBUG" if debug else settings.log_level, settings.log_file)
    if not settings.dashboard_token:
        console.print("[yellow]SEABOT_DASHBOARD_TOKEN is not set: every API request will be refused.[/yellow]")

    host = host or settings.dashboard_host
    port = port or settings.dashboard_port
    console.print(f"[bold blue]Dashboard on http://{host}:{port}[/bold blue]")
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
