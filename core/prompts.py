"""Strike prompt rendering: long Spanish date plus configured zones and lines."""

from __future__ import annotations

from datetime import datetime
from string import Template
from zoneinfo import ZoneInfo

from config.loader import ConfigLoader
from config.schema import MonitorConfig
from core.conversation import Conversation

WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}


def spanish_long_date(moment: datetime) -> str:
    """e.g. ``martes, 14 de octubre de 2025`` (es-AR long format)."""
    return f"{WEEKDAYS[moment.weekday()]}, {moment.day} de {MONTHS[moment.month - 1]} de {moment.year}"


def local_now(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


class StrikePrompt:
    """Builds the dated strike-check conversation from the prompt template."""

    def __init__(self, config: MonitorConfig | None = None, loader: ConfigLoader | None = None):
        self.config = config or MonitorConfig()
        self.loader = loader or ConfigLoader()

    def template(self) -> str:
        prompt = self.loader.get_prompt(self.config.prompt)
        if prompt is None:
            raise ValueError(f"Prompt not found: {self.config.prompt}")
        return prompt.text

    def render(self, now: datetime | None = None) -> str:
        now = now or local_now(self.config.timezone)
        return Template(self.template()).safe_substitute(
            date=spanish_long_date(now),
            zones=", ".join(self.config.zones),
            lines=", ".join(self.config.lines),
        )

    def conversation(self, now: datetime | None = None) -> Conversation:
        params = {"model": self.config.model, "max_tokens": self.config.max_tokens}
        if self.config.web_search_tool:
            params["tools"] = [WEB_SEARCH_TOOL]
        return Conversation.from_prompt(self.render(now), **params)
