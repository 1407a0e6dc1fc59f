"""CLI de ComunidadPro (Typer).

Cada comando abre un `AppContext`, inicia sesión, carga la sesión completa y
presenta el resultado con Rich. Los errores de dominio se muestran con el
mensaje amigable y salen con código 1.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console

from adapters.ai_assistant import ask_community_assistant, get_financial_insights
from cli import doctor
from cli.ui_components import (
    build_dashboard_table,
    build_insight_panel,
    build_session_table,
    build_transactions_table,
    print_banner,
)
from core.config import AppSettings
from core.domain.language import Language
from core.domain.models import TransactionType
from core.errors import ComunidadError, user_message
from core.logging_setup import setup_logging
from core.services.app_context import AppContext
from core.services.reports import (
    TransactionFilter,
    dashboard_summary,
    filter_transactions,
    financial_totals,
)
from core.services.session_loader import SessionHooks, SessionLoadResult

app = typer.Typer(no_args_is_help=True, help="ComunidadPro: administración de la comunidad.")
app.add_typer(doctor.app, name="doctor")

_console = Console()

T = TypeVar("T")

EmailArg = typer.Argument(..., help="Correo del usuario.")
PasswordOpt = typer.Option(..., prompt=True, hide_input=True, help="Contraseña.")


@app.callback()
def main(
    context: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Logs de depuración."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Archivo de log."),
    lang: Optional[str] = typer.Option(None, "--lang", help="Idioma de los mensajes (es/en)."),
) -> None:
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file)
    context.obj = {"lang": lang}


def _hooks() -> SessionHooks:
    return SessionHooks(warning=lambda message: _console.print(f"[yellow]Aviso:[/yellow] {message}"))


def _run_session(
    context: typer.Context,
    email: str,
    password: str,
    action: Callable[[AppContext, SessionLoadResult], Awaitable[T]],
) -> T:
    settings = AppSettings()
    lang = (context.obj or {}).get("lang")
    if lang:
        settings.default_language = Language.from_code(lang)

    async def flow() -> T:
        async with await AppContext.open(settings, hooks=_hooks()) as ctx:
            with _console.status("Sincronizando..."):
                result = await ctx.session.login(email, password)
            return await action(ctx, result)

    try:
        return asyncio.run(flow())
    except ComunidadError as exc:
        _console.print(f"[red]{user_message(exc, settings.default_language)}[/red]")
        raise typer.Exit(code=1) from exc


@app.command()
def login(context: typer.Context, email: str = EmailArg, password: str = PasswordOpt) -> None:
    """Inicia sesión, carga todas las colecciones y muestra el resumen."""

    async def show(ctx: AppContext, result: SessionLoadResult) -> None:
        print_banner(_console)
        user = ctx.session.user
        if user is not None:
            _console.print(f"Bienvenido, [bold]{user.name or user.email}[/bold] ({user.role.value})")
        _console.print(build_session_table(result))
        data = ctx.session.data
        _console.print(build_dashboard_table(dashboard_summary(transactions=data.transactions, people=data.people)))

    _run_session(context, email, password, show)


@app.command()
def insights(context: typer.Context, email: str = EmailArg, password: str = PasswordOpt) -> None:
    """Análisis IA de las finanzas de la comunidad."""

    async def analyse(ctx: AppContext, result: SessionLoadResult) -> None:
        data = ctx.session.data
        with _console.status("Analizando..."):
            report = await get_financial_insights(
                transactions=data.transactions,
                categories=data.categories,
                settings=ctx.settings,
            )
        _console.print(build_insight_panel(report))

    _run_session(context, email, password, analyse)


@app.command()
def ask(
    context: typer.Context,
    email: str = EmailArg,
    question: str = typer.Argument(..., help="Pregunta para el asistente."),
    password: str = PasswordOpt,
) -> None:
    """Pregunta al asistente IA sobre miembros, ministerios o finanzas."""

    async def answer(ctx: AppContext, result: SessionLoadResult) -> None:
        data = ctx.session.data
        with _console.status("Pensando..."):
            report = await ask_community_assistant(
                question,
                people=data.people,
                ministries=data.ministries,
                transactions=data.transactions,
                categories=data.categories,
                settings=ctx.settings,
            )
        _console.print(build_insight_panel(report, title="Asistente IA"))

    _run_session(context, email, password, answer)


@app.command()
def report(
    context: typer.Context,
    email: str = EmailArg,
    password: str = PasswordOpt,
    start: Optional[str] = typer.Option(None, help="Desde (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, help="Hasta (YYYY-MM-DD)."),
    kind: Optional[TransactionType] = typer.Option(None, "--type", help="Ingreso o Gasto."),
) -> None:
    """Reporte financiero filtrado por fechas y tipo."""

    async def show(ctx: AppContext, result: SessionLoadResult) -> None:
        data = ctx.session.data
        rows = filter_transactions(data.transactions, TransactionFilter(start=start, end=end, type=kind))
        _console.print(build_transactions_table(rows, data.categories, financial_totals(rows)))

    _run_session(context, email, password, show)


def run() -> None:
    app()
