"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from typing import Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import Category, InsightReport, Transaction, TransactionType
from core.services.reports import DashboardSummary, FinancialTotals
from core.services.session_loader import SessionLoadResult


def _money(value: float) -> str:
    return f"${value:,.0f}"


def print_banner(console: Console) -> None:
    title = Text("ComunidadPro", style="bold cyan")
    subtitle = Text("Miembros • Ministerios • Finanzas • IA", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_session_table(result: SessionLoadResult) -> Table:
    """Una fila por colección: cantidad y procedencia (API, caché, defaults)."""

    table = Table(title="Sesión")
    table.add_column("Colección", style="cyan", no_wrap=True)
    table.add_column("Registros", style="white", justify="right")
    table.add_column("Origen", style="green")
    table.add_column("Error", style="red")

    for name, outcome in result.outcomes.items():
        value = outcome.value
        count = len(value) if isinstance(value, list) else 1
        table.add_row(name, str(count), outcome.source.value, str(outcome.error or ""))
    return table


def build_dashboard_table(summary: DashboardSummary) -> Table:
    table = Table(title="Resumen")
    table.add_column("Indicador", style="cyan")
    table.add_column("Valor", style="white", justify="right")
    table.add_row("Ingresos", _money(summary.totals.income))
    table.add_row("Egresos", _money(summary.totals.expense))
    table.add_row("Balance", _money(summary.totals.net))
    table.add_row("Personas", str(summary.people_count))
    if summary.birthdays_today:
        names = ", ".join(p.full_name for p in summary.birthdays_today)
        table.add_row("Cumpleaños hoy", names)
    return table


def build_transactions_table(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    totals: FinancialTotals,
) -> Table:
    names = {c.id: c.name for c in categories}
    table = Table(title="Reporte financiero", caption=f"Neto: {_money(totals.net)}")
    table.add_column("Fecha", no_wrap=True)
    table.add_column("Tipo")
    table.add_column("Categoría")
    table.add_column("Medio")
    table.add_column("Valor", justify="right")
    for tx in transactions:
        style = "green" if tx.type is TransactionType.INCOME else "red"
        table.add_row(
            tx.date,
            tx.type.value,
            names.get(tx.category_id, "-"),
            tx.payment_method.value,
            Text(_money(tx.value), style=style),
        )
    return table


def build_insight_panel(report: InsightReport, *, title: str = "Análisis IA") -> Panel:
    body = Text(report.text.strip())
    if report.model and not report.fallback:
        body.append(f"\n\nModelo: {report.model}", style="dim")
    border = "yellow" if report.fallback else "magenta"
    return Panel(body, title=Text(title, style="bold yellow"), border_style=border)
