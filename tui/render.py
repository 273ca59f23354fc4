"""Rich rendering for strike reports, alert history and provider status."""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from config.schema import BondiSettings
from core.alerts import AlertHistory
from core.checker import CheckResult
from core.report import STATUS_LABELS, LineState, StrikeReport

STATUS_STYLES: dict[LineState, str] = {
    LineState.TOTAL: "bold red",
    LineState.PARTIAL: "bold dark_orange",
    LineState.DELAYED: "bold blue",
    LineState.LIFTED: "bold magenta",
    LineState.NORMAL: "bold green",
}

STATUS_ICONS: dict[LineState, str] = {
    LineState.TOTAL: "🚫",
    LineState.PARTIAL: "⚠️",
    LineState.DELAYED: "🕐",
    LineState.LIFTED: "🟢",
    LineState.NORMAL: "✅",
}

CONFIDENCE_LABELS = {"high": "alta", "medium": "media", "low": "baja"}


def plain(value: str | None) -> Text:
    """Model-supplied text, never parsed as rich markup."""
    return Text(value or "")


def status_text(status: LineState) -> Text:
    return Text(f"{STATUS_ICONS[status]} {STATUS_LABELS[status]}", style=STATUS_STYLES[status])


def lines_table(report: StrikeReport, favorites: set[str] | None = None) -> Table:
    favorites = favorites or set()
    table = Table(title="Líneas afectadas", expand=True)
    table.add_column("Línea", style="cyan", no_wrap=True)
    table.add_column("Estado", no_wrap=True)
    table.add_column("Empresa", style="white")
    table.add_column("Motivo", style="white", max_width=40)
    table.add_column("Horario", style="dim")
    table.add_column("Fuente", style="dim")

    for entry in report.sorted_lines():
        line = f"⭐ {entry.line}" if entry.key in favorites else entry.line
        window = " → ".join(p for p in (entry.from_, entry.to) if p)
        table.add_row(
            plain(line), status_text(entry.status), plain(entry.company), plain(entry.reason), plain(window), plain(entry.source)
        )
    return table


def lifted_table(report: StrikeReport) -> Table:
    table = Table(title="Paros levantados", expand=True)
    table.add_column("Línea", style="cyan", no_wrap=True)
    table.add_column("Hora", style="magenta")
    table.add_column("Detalle", style="white", max_width=50)
    table.add_column("Servicio", no_wrap=True)
    for item in report.lifted_strikes:
        service = Text("NORMALIZADO", style="green") if item.service_restored else Text("RESTABLECIÉNDOSE", style="yellow")
        table.add_row(plain(item.line), plain(item.lifted_at), plain(item.detail), service)
    return table


def render_report(report: StrikeReport, favorites: set[str] | None = None) -> Group:
    headline = Text()
    if report.has_strikes:
        headline.append("HAY PAROS", style="bold red")
    else:
        headline.append("SIN PAROS REPORTADOS", style="bold green")
    if report.date:
        headline.append(f"  ·  {report.date}", style="dim")
    if report.confidence:
        headline.append(f"  ·  confiabilidad {CONFIDENCE_LABELS[report.confidence.value]}", style="dim")

    parts = [Panel(Text(report.summary or "Sin resumen"), title=headline, border_style="bright_blue")]
    if report.affected_lines:
        parts.append(lines_table(report, favorites))
    if report.lifted_strikes:
        parts.append(lifted_table(report))
    if report.upcoming_actions:
        upcoming = Table(title="Próximas medidas", expand=True)
        upcoming.add_column("Fecha", style="cyan")
        upcoming.add_column("Tipo", style="yellow")
        upcoming.add_column("Convoca")
        upcoming.add_column("Detalle", max_width=50)
        for action in report.upcoming_actions:
            upcoming.add_row(plain(action.date), plain(action.type), plain(action.called_by), plain(action.detail))
        parts.append(upcoming)
    if report.general_news:
        news = Text()
        for item in report.general_news:
            news.append(f"• {item.title or ''}", style="bold")
            if item.detail:
                news.append(f" {item.detail}")
            if item.source:
                news.append(f" ({item.source})", style="dim")
            news.append("\n")
        parts.append(Panel(news, title="Info general", border_style="dim"))
    footer = []
    if report.sources_consulted:
        footer.append("Fuentes: " + ", ".join(report.sources_consulted))
    if report.note:
        footer.append(f"Nota: {report.note}")
    if footer:
        parts.append(Text("\n".join(footer), style="dim"))
    return Group(*parts)


def render_result(console: Console, result: CheckResult, favorites: set[str] | None = None) -> None:
    stamp = result.checked_at.strftime("%H:%M")
    if result.error is not None:
        console.print(Panel(Text(result.display_text, style="red"), title=f"Error · {stamp}", border_style="red"))
        return
    if result.report is not None:
        console.print(render_report(result.report, favorites))
    else:
        # Unstructured answer: show whatever text came back
        console.print(Panel(Text(result.display_text), title="Respuesta sin estructura", border_style="yellow"))
    reply = result.reply
    if reply is not None:
        console.print(Text(f"{stamp} · {reply.provider_id} · {reply.model_id}", style="dim"))


def history_table(history: AlertHistory) -> Table:
    table = Table(title="Alertas", expand=True)
    table.add_column("Hora", style="dim", no_wrap=True)
    table.add_column("Evento")
    for entry in history:
        table.add_row(entry.time.strftime("%H:%M"), plain(entry.text))
    return table


def providers_table(settings: BondiSettings) -> Table:
    configured = set(settings.configured_providers())
    table = Table(title="Proveedores")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Nombre", style="cyan")
    table.add_column("Modelo")
    table.add_column("Key")
    for index, spec in enumerate(settings.active_providers(), start=1):
        key = Text("✓", style="green") if spec.name in configured else Text(f"✗ {spec.api_key_env}", style="red")
        table.add_row(str(index), spec.name, spec.model, key)
    return table


class ConsoleSink:
    """Prints notifications to the terminal."""

    def __init__(self, console: Console):
        self.console = console

    async def notify(self, title: str, body: str) -> None:
        self.console.print(Panel(plain(body), title=plain(title), border_style="bright_yellow"))
