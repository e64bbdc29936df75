"""
Top-level CLI commands: start.
"""

import os
from typing import Optional

import typer

from tabkeeper.config import CONFIG


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from tabkeeper.logger import setup_logging

    log_level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING")
    setup_logging(level=log_level, log_file=CONFIG.log_file)


def register_commands(app: typer.Typer):
    @app.command()
    def start(
        host: Optional[str] = typer.Option(None, help="Interface to bind"),
        port: Optional[int] = typer.Option(None, help="Port to listen on"),
    ):
        """Start the tabkeeper server."""
        from tabkeeper.logger import setup_logging
        from tabkeeper.server import run

        # Server logs at INFO unless configured otherwise
        setup_logging(level=CONFIG.log_level, log_file=CONFIG.log_file)
        typer.echo(f"🚀 Starting tabkeeper on {host or CONFIG.host}:{port or CONFIG.port}")
        run(host=host, port=port)
