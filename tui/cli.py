#!/usr/bin/env python3
"""
Bondi CLI - ¿hay paro de colectivos hoy?

Terminal front end for the status checker: one-shot checks, a watch loop,
API key configuration and the web backend launcher.
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from config.loader import ConfigLoader
from config.schema import BondiSettings
from core.checker import CheckInProgressError, StatusChecker
from tui.config import ConfigManager, interactive_config, show_config
from tui.render import ConsoleSink, history_table, providers_table, render_result

console = Console()


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def _load(args):
    ConfigManager().load_to_env()
    loader = ConfigLoader(workspace_root=args.workspace)
    overrides = {}
    if args.only_favorites:
        overrides.setdefault("monitor", {})["notify_only_favorites"] = True
    if args.favorites:
        overrides.setdefault("monitor", {})["favorites"] = [f.strip() for f in args.favorites.split(",") if f.strip()]
    return loader, loader.load(cli_overrides=overrides or None)


def _build_checker(args) -> tuple[StatusChecker, BondiSettings]:
    loader, settings = _load(args)
    if not settings.configured_providers():
        console.print("\n  [red]✗[/] No hay API keys configuradas, ejecutá: [cyan]bondi config[/]\n")
        sys.exit(1)
    sink = None if settings.monitor.webhook_url else ConsoleSink(console)
    return StatusChecker.from_settings(settings, loader=loader, sink=sink), settings


def _favorites(settings: BondiSettings) -> set[str]:
    return {f.casefold() for f in settings.monitor.favorites}


async def _check_once(checker: StatusChecker, favorites: set[str]) -> int:
    with console.status("Consultando fuentes..."):
        result = await checker.check()
    render_result(console, result, favorites)
    return 0 if result.ok else 2


async def _watch(checker: StatusChecker, favorites: set[str], interval_min: float, iterations: int | None) -> None:
    async for result in checker.watch(interval_min * 60, iterations):
        render_result(console, result, favorites)
        if len(checker.history):
            console.print(history_table(checker.history))
        console.print(f"[dim]Próxima consulta en {interval_min:g} min · Ctrl+C para salir[/dim]")


def cmd_check(args) -> int:
    checker, settings = _build_checker(args)
    try:
        return asyncio.run(_check_once(checker, _favorites(settings)))
    except CheckInProgressError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return 1


def cmd_watch(args) -> int:
    checker, settings = _build_checker(args)
    favorites = _favorites(settings)
    interval = args.interval if args.interval is not None else float(settings.monitor.refresh_minutes)
    if interval <= 0:
        console.print("[yellow]Auto-refresh desactivado (refresh_minutes = 0), ejecutando una sola consulta[/yellow]")
        return asyncio.run(_check_once(checker, favorites))
    try:
        asyncio.run(_watch(checker, favorites, interval, args.iterations))
    except KeyboardInterrupt:
        console.print("\n[dim]Detenido[/dim]")
    return 0


def cmd_providers(args) -> int:
    _, settings = _load(args)
    console.print(providers_table(settings))
    return 0


def cmd_config(args) -> int:
    if args.subcommand == "show":
        show_config()
    elif args.subcommand == "set":
        if len(args.extra_args) != 2:
            console.print("[red]Uso: bondi config set KEY VALUE[/red]")
            return 1
        key, value = args.extra_args
        ConfigManager().set(key, value)
        console.print(f"  [green]✓[/] {key} guardado")
    elif args.subcommand == "unset":
        if len(args.extra_args) != 1:
            console.print("[red]Uso: bondi config unset KEY[/red]")
            return 1
        if not ConfigManager().unset(args.extra_args[0]):
            console.print(f"[yellow]{args.extra_args[0]} no estaba configurado[/yellow]")
    else:
        interactive_config()
    return 0


def cmd_serve(args) -> int:
    from backend.web.main import _resolve_port, run

    _, settings = _load(args)
    port = args.port or _resolve_port(settings.server.port)
    run(host=args.host or settings.server.host, port=port, reload=args.reload)
    return 0


COMMANDS = {
    "check": cmd_check,
    "watch": cmd_watch,
    "providers": cmd_providers,
    "config": cmd_config,
    "serve": cmd_serve,
}


def _show_main_help() -> None:
    print("Bondi - ¿hay paro de colectivos hoy?\n")
    print("Uso:")
    print("  bondi                        consulta una vez (igual que `bondi check`)")
    print("  bondi check                  consulta una vez y muestra el reporte")
    print("  bondi watch [--interval N]   consulta cada N minutos y avisa cambios")
    print("  bondi providers              muestra la cadena de proveedores")
    print("  bondi serve [--port N]       levanta el backend web (/api/chat)")
    print("  bondi config                 configura API keys")
    print("  bondi config show            muestra la configuración")
    print("  bondi config set KEY VALUE   guarda un valor")
    print("  bondi config unset KEY       borra un valor")
    print()
    print("Opciones:")
    print("  --favorites 60,152           líneas favoritas")
    print("  --only-favorites             avisar solo de favoritas")
    print("  --workspace <dir>            directorio con .bondi/runtime.json")
    print("  -d, --debug                  logs detallados")


def main():
    parser = argparse.ArgumentParser(description="Bondi - ¿hay paro de colectivos hoy?", add_help=False)
    parser.add_argument("--workspace", type=str, help="Directorio del proyecto (.bondi/)")
    parser.add_argument("--favorites", type=str, help="Líneas favoritas separadas por coma")
    parser.add_argument("--only-favorites", action="store_true", help="Notificar solo líneas favoritas")
    parser.add_argument("--interval", type=float, help="Minutos entre consultas (watch)")
    parser.add_argument("--iterations", type=int, help="Cantidad de consultas (watch)")
    parser.add_argument("--host", type=str, help="Host (serve)")
    parser.add_argument("--port", type=int, help="Puerto (serve)")
    parser.add_argument("--reload", action="store_true", help="Auto-reload (serve)")
    parser.add_argument("-d", "--debug", action="store_true", help="Logs detallados")
    parser.add_argument("-h", "--help", action="store_true", help="Mostrar ayuda")
    parser.add_argument("command", nargs="?", default="check", help="Comando")
    parser.add_argument("subcommand", nargs="?", help="Subcomando")
    parser.add_argument("extra_args", nargs="*", help="Argumentos extra")

    args = parser.parse_args()

    if args.help:
        _show_main_help()
        return

    handler = COMMANDS.get(args.command)
    if handler is None:
        console.print(f"[red]Comando desconocido: {args.command}[/red]\n")
        _show_main_help()
        sys.exit(1)

    setup_logging(args.debug)
    sys.exit(handler(args))


if __name__ == "__main__":
    main()
