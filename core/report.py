"""StrikeReport - canonical domain object recovered from model output.

Accepts the Spanish keys the strike prompt asks for (``lineas_afectadas``,
``estado: paro_total`` ...) as well as the English field names.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


class LineState(str, Enum):
    TOTAL = "total"
    PARTIAL = "partial"
    DELAYED = "delayed"
    LIFTED = "lifted"
    NORMAL = "normal"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


STRIKE_STATES = frozenset({LineState.TOTAL, LineState.PARTIAL})

STATUS_LABELS: dict[LineState, str] = {
    LineState.TOTAL: "PARO TOTAL",
    LineState.PARTIAL: "PARO PARCIAL",
    LineState.DELAYED: "DEMORAS",
    LineState.LIFTED: "LEVANTADO",
    LineState.NORMAL: "NORMAL",
}

STATUS_PRIORITY: dict[LineState, int] = {
    LineState.TOTAL: 4,
    LineState.PARTIAL: 3,
    LineState.DELAYED: 2,
    LineState.LIFTED: 1,
    LineState.NORMAL: 0,
}

_STATUS_ALIASES: dict[str, LineState] = {
    "paro_total": LineState.TOTAL,
    "paro_parcial": LineState.PARTIAL,
    "demoras": LineState.DELAYED,
    "levantado": LineState.LIFTED,
    "normal": LineState.NORMAL,
}

# Checked in order, first match wins
_STATUS_KEYWORDS: tuple[tuple[str, LineState], ...] = (
    ("levant", LineState.LIFTED),
    ("lift", LineState.LIFTED),
    ("parcial", LineState.PARTIAL),
    ("partial", LineState.PARTIAL),
    ("total", LineState.TOTAL),
    ("demora", LineState.DELAYED),
    ("delay", LineState.DELAYED),
)

_CONFIDENCE_ALIASES: dict[str, Confidence] = {
    "alta": Confidence.HIGH,
    "media": Confidence.MEDIUM,
    "baja": Confidence.LOW,
}


def parse_status(value: Any) -> LineState:
    """Map a raw status (Spanish alias, English value, free text) to a LineState."""
    if isinstance(value, LineState):
        return value
    if not isinstance(value, str):
        return LineState.NORMAL
    raw = value.strip().lower()
    if raw in _STATUS_ALIASES:
        return _STATUS_ALIASES[raw]
    try:
        return LineState(raw)
    except ValueError:
        pass
    for keyword, state in _STATUS_KEYWORDS:
        if keyword in raw:
            return state
    return LineState.NORMAL


def line_key(line: Any) -> str:
    """Case-insensitive identity of a line id (ids are strings, not numbers)."""
    return str(line).strip().casefold()


_TRUE_WORDS = frozenset({"true", "sí", "si", "yes", "verdadero", "1"})
_FALSE_WORDS = frozenset({"false", "no", "falso", "0", ""})


def parse_flag(value: Any) -> bool | None:
    """Lenient boolean: Spanish/English yes-no words and numbers. None when unknown."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _TRUE_WORDS:
            return True
        if raw in _FALSE_WORDS:
            return False
    return None


def _coerce_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        joined = ", ".join(str(v).strip() for v in value if v is not None and not isinstance(v, dict) and str(v).strip())
        return joined or None
    if isinstance(value, dict):
        return None
    return str(value)


def _coerce_text_list(value: Any) -> list[str]:
    if value is None or isinstance(value, dict):
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(v).strip() for v in value if v is not None and not isinstance(v, dict) and str(v).strip()]


def _as_entries(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return value
    return []


def _valid_entries(model: type[BaseModel], value: Any) -> list[Any]:
    """Validate list entries one by one, dropping the ones that do not fit ``model``."""
    entries = []
    for item in _as_entries(value):
        if not isinstance(item, dict):
            continue
        try:
            entries.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping %s entry: %s", model.__name__, e.errors(include_url=False)[:1])
    return entries


def _has_line_id(value: Any) -> bool:
    return value is not None and not isinstance(value, (bool, dict, list)) and bool(str(value).strip())


def _coerce_line(value: Any) -> str:
    if not _has_line_id(value):
        raise ValueError("line id is required")
    return str(value).strip()


class _ReportModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class LineStatus(_ReportModel):
    line: str = Field(validation_alias=AliasChoices("line", "linea"))
    company: str | None = Field(None, validation_alias=AliasChoices("company", "empresa"))
    status: LineState = Field(LineState.NORMAL, validation_alias=AliasChoices("status", "estado"))
    reason: str | None = Field(None, validation_alias=AliasChoices("reason", "motivo"))
    from_: str | None = Field(None, validation_alias=AliasChoices("from", "from_", "desde"))
    to: str | None = Field(None, validation_alias=AliasChoices("to", "hasta"))
    zones: list[str] = Field(default_factory=list, validation_alias=AliasChoices("zones", "zonas"))
    source: str | None = Field(None, validation_alias=AliasChoices("source", "fuente"))

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, v: Any) -> str:
        return _coerce_line(v)

    @field_validator("company", "reason", "from_", "to", "source", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_text(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> LineState:
        return parse_status(v)

    @field_validator("zones", mode="before")
    @classmethod
    def coerce_zones(cls, v: Any) -> list[str]:
        return _coerce_text_list(v)

    @property
    def key(self) -> str:
        return line_key(self.line)

    @property
    def label(self) -> str:
        return STATUS_LABELS[self.status]


class LiftedStrike(_ReportModel):
    line: str = Field(validation_alias=AliasChoices("line", "linea"))
    company: str | None = Field(None, validation_alias=AliasChoices("company", "empresa"))
    lifted_at: str | None = Field(None, validation_alias=AliasChoices("lifted_at", "hora_levantamiento"))
    detail: str | None = Field(None, validation_alias=AliasChoices("detail", "detalle"))
    service_restored: bool = Field(False, validation_alias=AliasChoices("service_restored", "servicio_normalizado"))
    source: str | None = Field(None, validation_alias=AliasChoices("source", "fuente"))

    @field_validator("service_restored", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return bool(parse_flag(v))

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, v: Any) -> str:
        return _coerce_line(v)

    @field_validator("company", "lifted_at", "detail", "source", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_text(v)


class UpcomingAction(_ReportModel):
    date: str | None = Field(None, validation_alias=AliasChoices("date", "fecha"))
    type: str | None = Field(None, validation_alias=AliasChoices("type", "tipo"))
    called_by: str | None = Field(None, validation_alias=AliasChoices("called_by", "convocante"))
    detail: str | None = Field(None, validation_alias=AliasChoices("detail", "detalle"))
    source: str | None = Field(None, validation_alias=AliasChoices("source", "fuente"))

    @field_validator("date", "type", "called_by", "detail", "source", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_text(v)


class NewsItem(_ReportModel):
    title: str | None = Field(None, validation_alias=AliasChoices("title", "titulo"))
    detail: str | None = Field(None, validation_alias=AliasChoices("detail", "detalle"))
    source: str | None = Field(None, validation_alias=AliasChoices("source", "fuente"))
    url: str | None = None

    @field_validator("title", "detail", "source", "url", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_text(v)


class StrikeReport(_ReportModel):
    date: str | None = Field(None, validation_alias=AliasChoices("date", "fecha"))
    # None while validating means "unknown"; filled from the strike lines afterwards
    has_strikes: bool | None = Field(None, validation_alias=AliasChoices("has_strikes", "hay_paros"))
    summary: str = Field("", validation_alias=AliasChoices("summary", "resumen_general"))
    affected_lines: list[LineStatus] = Field(
        default_factory=list, validation_alias=AliasChoices("affected_lines", "lineas_afectadas")
    )
    lifted_strikes: list[LiftedStrike] = Field(
        default_factory=list, validation_alias=AliasChoices("lifted_strikes", "paros_levantados")
    )
    upcoming_actions: list[UpcomingAction] = Field(
        default_factory=list, validation_alias=AliasChoices("upcoming_actions", "proximas_medidas")
    )
    general_news: list[NewsItem] = Field(
        default_factory=list, validation_alias=AliasChoices("general_news", "info_general")
    )
    sources_consulted: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("sources_consulted", "fuentes_consultadas")
    )
    confidence: Confidence | None = Field(None, validation_alias=AliasChoices("confidence", "confiabilidad"))
    note: str | None = Field(None, validation_alias=AliasChoices("note", "nota"))

    @field_validator("date", "note", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_text(v)

    @field_validator("summary", mode="before")
    @classmethod
    def coerce_summary(cls, v: Any) -> str:
        return _coerce_text(v) or ""

    @field_validator("affected_lines", mode="before")
    @classmethod
    def keep_valid_lines(cls, v: Any) -> list[Any]:
        return _valid_entries(LineStatus, v)

    @field_validator("lifted_strikes", mode="before")
    @classmethod
    def keep_valid_lifted(cls, v: Any) -> list[Any]:
        return _valid_entries(LiftedStrike, v)

    @field_validator("upcoming_actions", mode="before")
    @classmethod
    def keep_valid_actions(cls, v: Any) -> list[Any]:
        return _valid_entries(UpcomingAction, v)

    @field_validator("general_news", mode="before")
    @classmethod
    def keep_valid_news(cls, v: Any) -> list[Any]:
        return _valid_entries(NewsItem, v)

    @field_validator("has_strikes", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool | None:
        return parse_flag(v)

    @field_validator("sources_consulted", mode="before")
    @classmethod
    def coerce_sources(cls, v: Any) -> list[str]:
        return _coerce_text_list(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Confidence | None:
        if v is None or isinstance(v, Confidence):
            return v
        raw = str(v).strip().lower()
        if raw in _CONFIDENCE_ALIASES:
            return _CONFIDENCE_ALIASES[raw]
        try:
            return Confidence(raw)
        except ValueError:
            return None

    @model_validator(mode="after")
    def infer_has_strikes(self) -> StrikeReport:
        if self.has_strikes is None:
            self.has_strikes = bool(self.strikes())
        return self

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> StrikeReport:
        return cls.model_validate(payload)

    def statuses(self) -> dict[str, LineState]:
        """Line key -> status for every affected line; a repeated line keeps its most severe status."""
        return {key: entry.status for key, entry in self.lines_by_key().items()}

    def lines_by_key(self) -> dict[str, LineStatus]:
        """One entry per line key, in first-seen order, keeping the most severe entry."""
        collapsed: dict[str, LineStatus] = {}
        for entry in self.affected_lines:
            kept = collapsed.get(entry.key)
            if kept is None or STATUS_PRIORITY[entry.status] > STATUS_PRIORITY[kept.status]:
                collapsed[entry.key] = entry
        return collapsed

    def strikes(self) -> list[LineStatus]:
        return [entry for entry in self.affected_lines if entry.status in STRIKE_STATES]

    def sorted_lines(self) -> list[LineStatus]:
        """Affected lines, most severe first."""
        return sorted(self.affected_lines, key=lambda e: STATUS_PRIORITY[e.status], reverse=True)


REPORT_DATE_KEYS = ("fecha", "date")
REPORT_LINE_KEYS = ("lineas_afectadas", "affected_lines")


def looks_like_report(payload: Any) -> bool:
    """A parsed object plausibly is a StrikeReport when it has a date or a line list."""
    if not isinstance(payload, dict):
        return False
    if any(payload.get(k) for k in REPORT_DATE_KEYS):
        return True
    return any(isinstance(payload.get(k), list) for k in REPORT_LINE_KEYS)
