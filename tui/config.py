"""
Bondi API key management (~/.bondi/config.env)
"""

import os
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from config.schema import DEFAULT_KEY_ENV

console = Console()

PROVIDER_LABELS = {
    "anthropic": "Anthropic (principal)",
    "gemini": "Gemini (búsqueda de Google)",
    "openai": "OpenAI (último recurso)",
}


class ConfigManager:
    """Stores provider API keys as KEY=value lines."""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path.home() / ".bondi"
        self.config_file = self.config_dir / "config.env"
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> str | None:
        return self.list_all().get(key)

    def set(self, key: str, value: str):
        config = self.list_all()
        config[key] = value
        with self.config_file.open("w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")

    def unset(self, key: str) -> bool:
        config = self.list_all()
        if key not in config:
            return False
        del config[key]
        with self.config_file.open("w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")
        return True

    def list_all(self) -> dict[str, str]:
        config = {}
        if self.config_file.exists():
            for line in self.config_file.read_text().splitlines():
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    k, v = line.split("=", 1)
                    config[k.strip()] = v.strip()
        return config

    def load_to_env(self):
        """Export stored values; variables already in the environment win."""
        for key, value in self.list_all().items():
            if key not in os.environ:
                os.environ[key] = value


def mask(value: str) -> str:
    return value[:8] + "..." if len(value) > 8 else "***"


def interactive_config(manager: ConfigManager | None = None):
    manager = manager or ConfigManager()

    title = Text()
    title.append("🚌 ", style="bright_yellow")
    title.append("Bondi", style="bold bright_cyan")
    title.append(" · API keys", style="bold white")

    console.print()
    console.print(Panel(
        "[dim]Enter para conservar el valor actual · al menos una key es necesaria[/dim]",
        title=title,
        border_style="bright_blue",
        padding=(0, 2),
    ))
    console.print()

    try:
        for index, (kind, env_name) in enumerate(DEFAULT_KEY_ENV.items(), start=1):
            current = manager.get(env_name)
            label = f"  [bright_cyan]{index}.[/] {env_name} [dim]({PROVIDER_LABELS[kind]})[/]"
            if current:
                value = Prompt.ask(label, default=mask(current), show_default=True, console=console)
                if value and value != mask(current):
                    manager.set(env_name, value)
            else:
                value = Prompt.ask(label, default="", show_default=False, console=console)
                if value:
                    manager.set(env_name, value)

        if not any(manager.get(env) for env in DEFAULT_KEY_ENV.values()):
            console.print("\n  [red]✗[/] No se configuró ninguna API key")
            return

        console.print()
        console.print(f"  [green]✓[/] Guardado en [dim]{manager.config_file}[/dim]")
        console.print()

    except KeyboardInterrupt:
        console.print("\n\n  [dim]Cancelado[/dim]\n")
        return


def show_config(manager: ConfigManager | None = None):
    manager = manager or ConfigManager()
    config = manager.list_all()

    if not config:
        console.print("\n  [red]✗[/] Sin configuración, ejecutá: [cyan]bondi config[/]\n")
        return

    console.print()
    console.print(Panel(
        "\n".join(
            f"  [bright_cyan]{k}[/] = [dim]{mask(v) if 'KEY' in k.upper() else v}[/dim]"
            for k, v in config.items()
        ),
        title="[bold]📋 Configuración[/]",
        border_style="bright_blue",
        padding=(0, 2),
    ))
    console.print(f"  [dim]Archivo: {manager.config_file}[/dim]")
    console.print()
