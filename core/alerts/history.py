"""Bounded alert history and favourite-line filter."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime

from core.alerts.differ import AlertEvent
from core.report import line_key

DEFAULT_HISTORY_SIZE = 25


@dataclass(frozen=True)
class HistoryEntry:
    text: str
    time: datetime


class AlertHistory:
    """Most recent entries first, capped at ``limit``."""

    def __init__(self, limit: int = DEFAULT_HISTORY_SIZE):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)

    def add(self, text: str, time: datetime | None = None) -> HistoryEntry:
        entry = HistoryEntry(text=text, time=time or datetime.now())
        self._entries.appendleft(entry)
        return entry

    def add_events(self, events: Iterable[AlertEvent]) -> None:
        for event in events:
            self.add(event.message, event.timestamp)

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)


class AlertFilter:
    """Restricts events to favourite lines when asked to."""

    def __init__(self, favorites: Iterable[str] = (), only_favorites: bool = False):
        self.favorites = {line_key(f) for f in favorites}
        self.only_favorites = only_favorites

    @property
    def active(self) -> bool:
        return self.only_favorites and bool(self.favorites)

    def allows(self, line: str) -> bool:
        return not self.active or line_key(line) in self.favorites

    def apply(self, events: Iterable[AlertEvent]) -> list[AlertEvent]:
        return [e for e in events if self.allows(e.line)]
