"""
tabkeeper CLI.

- main:     start
- autosave: pending, refresh, enable, status
"""

import typer

from tabkeeper.cli._http import _http_get, _http_post  # noqa: F401 - re-export for test patching
from tabkeeper.cli.autosave import register_autosave_commands
from tabkeeper.cli.main import configure_logging, register_commands

app = typer.Typer(help="tabkeeper - automatic tab saving")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    tabkeeper - automatic tab saving.
    """
    configure_logging(verbose)


register_commands(app)
register_autosave_commands(app)

if __name__ == "__main__":
    app()
