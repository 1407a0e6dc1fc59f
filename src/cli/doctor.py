"""`doctor`: checks identity key, REST API, local store and AI settings."""

from __future__ import annotations

import asyncio

import httpx
import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from adapters.local_store import JsonFileStore
from core.config import AppSettings, read_user_env_vars, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Diagnose and configure the ComunidadPro client.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except httpx.HTTPError as exc:
        return False, str(exc) or type(exc).__name__


def _check_store(settings: AppSettings) -> tuple[bool, str]:
    """Open the local store and list its collections."""

    path = settings.resolved_local_store_path
    try:
        keys = sorted(JsonFileStore(path).keys())
    except OSError as exc:
        return False, str(exc)
    return True, f"{path} ({', '.join(keys) or 'empty'})"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="ComunidadPro Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    if settings.identity_api_key:
        table.add_row("Identity key", "OK", settings.identity_base_url)
    else:
        table.add_row("Identity key", "FAIL", "Set COMUNIDAD_PRO_IDENTITY_API_KEY (doctor setup)")

    ok_api, detail_api = asyncio.run(_check_http(settings.api_base_url, settings))
    table.add_row("REST API", "OK" if ok_api else "FAIL", f"{settings.api_base_url} -> {detail_api}")

    ok_store, detail_store = _check_store(settings)
    table.add_row("Local store", "OK" if ok_store else "FAIL", detail_store)
    table.add_row("Local-only", "INFO", ", ".join(settings.local_only_collections) or "-")

    if settings.ai_enabled:
        table.add_row("AI key", "OK", f"{settings.ai_base_url} ({settings.ai_model})")
    else:
        table.add_row("AI key", "OPTIONAL", "No key set -> fallback messages")

    _console.print(table)

    if not ok_api:
        _console.print(
            "\n[yellow]Note:[/yellow] Without the API the session loads from the local store."
        )


@app.command(name="setup")
def setup() -> None:
    """Prompt for endpoints and keys; saved to the per-user .env."""

    current = read_user_env_vars()
    api_url = typer.prompt(
        "REST API base URL",
        default=current.get("COMUNIDAD_PRO_API_BASE_URL", "http://localhost:3001/api"),
    ).strip()
    identity_key = typer.prompt(
        "Identity provider API key",
        default=current.get("COMUNIDAD_PRO_IDENTITY_API_KEY", ""),
        hide_input=True,
        show_default=False,
    ).strip()
    ai_key = typer.prompt("AI API key (empty to skip)", default="", hide_input=True, show_default=False).strip()

    if not identity_key:
        raise typer.BadParameter("the identity provider key is required to log in")

    values = {
        "COMUNIDAD_PRO_API_BASE_URL": api_url,
        "COMUNIDAD_PRO_IDENTITY_API_KEY": identity_key,
    }
    if ai_key:
        values["COMUNIDAD_PRO_AI_API_KEY"] = ai_key

    _console.print(f"[green]Saved to[/green] {write_user_env_vars(values)}")
