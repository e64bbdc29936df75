"""
CLI commands for inspecting and controlling auto-save on a running server.

Usage:
    tabkeeper pending
    tabkeeper refresh
    tabkeeper enable <tab_id> [--disable]
    tabkeeper status <tab_id>
"""

import typer

from tabkeeper.cli._http import _http_get, _http_post


def register_autosave_commands(app: typer.Typer):
    @app.command("pending")
    def pending():
        """Show pending save intents and running saves."""
        data = _http_get("/pending")
        entries = data.get("entries", {})
        redirects = data.get("redirects", {})

        typer.echo(f"💾 Saves running: {data.get('inFlight', 0)}")
        if not entries:
            typer.echo("No pending saves.")
        else:
            typer.echo(f"Pending ({len(entries)}):")
            for tab_id, kind in entries.items():
                typer.echo(f"  • tab {tab_id}: {kind}")
        for origin, target in redirects.items():
            typer.echo(f"  ↪ tab {origin} now {target}")

    @app.command("refresh")
    def refresh():
        """Push current options to every known tab."""
        _http_post("/refresh")
        typer.echo("✅ Refresh sent.")

    @app.command("enable")
    def enable(
        tab_id: int = typer.Argument(..., help="Tab to change"),
        disable: bool = typer.Option(False, "--disable", help="Switch auto-save off instead"),
    ):
        """Switch auto-save on (or off) for a tab."""
        _http_post(
            "/external",
            {"message": {"method": "enableAutoSave", "enabled": not disable}, "tabId": tab_id},
        )
        typer.echo(f"✅ Auto-save {'disabled' if disable else 'enabled'} for tab {tab_id}.")

    @app.command("status")
    def status(tab_id: int = typer.Argument(..., help="Tab to query")):
        """Show whether a tab is auto-save eligible."""
        data = _http_post(
            "/external", {"message": {"method": "isAutoSaveEnabled"}, "tabId": tab_id}
        )
        icon = "🟢" if data.get("result") else "🔴"
        state = "on" if data.get("result") else "off"
        typer.echo(f"{icon} Auto-save is {state} for tab {tab_id}")
