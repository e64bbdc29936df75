"""
Shared HTTP helpers for CLI commands that talk to the running server.
"""

import os

import httpx
import typer


def get_server_url() -> str:
    """Get the server URL from the environment or the configured default."""
    if url := os.getenv("TABKEEPER_SERVER_URL"):
        return url.rstrip("/")
    host = os.getenv("TABKEEPER_CLIENT_HOST", "localhost")
    port = os.getenv("TABKEEPER_PORT", "8000")
    return f"http://{host}:{port}"


def _request(method: str, path: str, data: dict = None, timeout: float = 10.0) -> dict:
    url = f"{get_server_url()}{path}"
    try:
        resp = httpx.request(method, url, json=data, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except httpx.ConnectError:
        typer.echo("❌ Cannot connect to tabkeeper server. Is it running?")
        raise typer.Exit(code=1)
    except httpx.HTTPStatusError as e:
        try:
            detail = e.response.json().get("error", str(e))
        except Exception:
            detail = str(e)
        typer.echo(f"❌ Server error: {detail}")
        raise typer.Exit(code=1)
    except httpx.HTTPError as e:
        typer.echo(f"❌ Error: {e}")
        raise typer.Exit(code=1)


def _http_get(path: str) -> dict:
    """Make a GET request to the running server."""
    return _request("GET", path)


def _http_post(path: str, data: dict = None) -> dict:
    """Make a POST request to the running server."""
    return _request("POST", path, data or {}, timeout=30.0)
