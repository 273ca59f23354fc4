"""
Snapshot differ - turns successive StrikeReports into alert events.

Pure: takes the previous status map and the new report, returns the events
and the next map. The caller owns the map and swaps it in as a whole.

Rules, in order:
1. a total/partial line whose previous status differs -> NEW_STRIKE
2. a lifted line whose previous status was not lifted -> LIFTED
3. a previous total/partial line absent from the new report -> RESOLVED

A line going straight from total to normal emits nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType

from core.report import STATUS_LABELS, STRIKE_STATES, LineState, StrikeReport, line_key, parse_status

StatusMap = Mapping[str, LineState]


class AlertKind(str, Enum):
    NEW_STRIKE = "new_strike"
    LIFTED = "lifted"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class AlertEvent:
    kind: AlertKind
    line: str
    status: LineState
    message: str
    timestamp: datetime
    reason: str | None = None


@dataclass(frozen=True)
class DiffResult:
    events: tuple[AlertEvent, ...]
    snapshot: StatusMap = field(default_factory=lambda: MappingProxyType({}))

    def of_kind(self, kind: AlertKind) -> list[AlertEvent]:
        return [e for e in self.events if e.kind == kind]


def _message(kind: AlertKind, line: str, status: LineState, reason: str | None) -> str:
    if kind == AlertKind.RESOLVED:
        return f"Línea {line}: normalizado"
    return f"Línea {line}: {STATUS_LABELS[status]} — {reason or ''}".rstrip(" —")


def diff(previous: StatusMap, current: StrikeReport, now: datetime | None = None) -> DiffResult:
    """Compare ``current`` to the ``previous`` status map.

    Lines are matched by ``line_key``. A line listed more than once in
    ``current`` counts once, with its most severe status, for both the
    events and the returned snapshot.
    """
    now = now or datetime.now(timezone.utc)
    names = {line_key(k): str(k).strip() for k in previous}
    previous = {line_key(k): parse_status(v) for k, v in previous.items()}
    lines = current.lines_by_key()
    events: list[AlertEvent] = []

    def emit(kind: AlertKind, line: str, status: LineState, reason: str | None) -> None:
        events.append(AlertEvent(kind, line, status, _message(kind, line, status, reason), now, reason))

    for key, entry in lines.items():
        if entry.status in STRIKE_STATES and previous.get(key) != entry.status:
            emit(AlertKind.NEW_STRIKE, entry.line, entry.status, entry.reason)

    for key, entry in lines.items():
        if entry.status == LineState.LIFTED and previous.get(key) != LineState.LIFTED:
            emit(AlertKind.LIFTED, entry.line, entry.status, entry.reason)

    for key, old_status in previous.items():
        if old_status in STRIKE_STATES and key not in lines:
            emit(AlertKind.RESOLVED, names[key], LineState.NORMAL, None)

    # keyed by the line id as reported, so later messages keep its casing
    snapshot = {entry.line: entry.status for entry in lines.values()}
    return DiffResult(events=tuple(events), snapshot=MappingProxyType(snapshot))
