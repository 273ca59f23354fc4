"""Tests for alert history, favourite filter and notification sinks."""

import asyncio
import json
from datetime import datetime

import httpx
import pytest

from core.alerts import (
    AlertEvent,
    AlertFilter,
    AlertHistory,
    AlertKind,
    NullSink,
    WebhookSink,
    dispatch,
    group_notifications,
)
from core.alerts import sinks
from core.report import LineState

NOW = datetime(2025, 10, 14, 9, 30)


def _event(kind: AlertKind, line: str, status: LineState = LineState.TOTAL) -> AlertEvent:
    return AlertEvent(kind=kind, line=line, status=status, message=f"{kind.value} {line}", timestamp=NOW)


class TestAlertHistory:
    def test_newest_first(self):
        history = AlertHistory()
        history.add("primero")
        history.add("segundo")
        assert [e.text for e in history] == ["segundo", "primero"]

    def test_bounded(self):
        history = AlertHistory(limit=3)
        for i in range(5):
            history.add(f"msg {i}")
        assert len(history) == 3
        assert [e.text for e in history.entries()] == ["msg 4", "msg 3", "msg 2"]

    def test_default_limit(self):
        history = AlertHistory()
        for i in range(30):
            history.add(str(i))
        assert len(history) == 25

    def test_add_events_keeps_timestamp(self):
        history = AlertHistory()
        history.add_events([_event(AlertKind.NEW_STRIKE, "60")])
        assert history.entries()[0].time == NOW
        assert history.entries()[0].text == "new_strike 60"

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            AlertHistory(limit=0)


class TestAlertFilter:
    def test_inactive_by_default(self):
        events = [_event(AlertKind.NEW_STRIKE, "60"), _event(AlertKind.LIFTED, "152")]
        assert AlertFilter().apply(events) == events

    def test_only_favorites(self):
        events = [_event(AlertKind.NEW_STRIKE, "60"), _event(AlertKind.RESOLVED, "152")]
        assert AlertFilter(["152"], only_favorites=True).apply(events) == [events[1]]

    def test_only_favorites_with_empty_list_passes_everything(self):
        events = [_event(AlertKind.NEW_STRIKE, "60")]
        assert AlertFilter([], only_favorites=True).apply(events) == events

    def test_case_insensitive(self):
        assert AlertFilter(["D60"], only_favorites=True).allows("d60")


class TestGroupNotifications:
    def test_grouping(self):
        events = [
            _event(AlertKind.NEW_STRIKE, "60", LineState.TOTAL),
            _event(AlertKind.NEW_STRIKE, "152", LineState.PARTIAL),
            _event(AlertKind.LIFTED, "15", LineState.LIFTED),
            _event(AlertKind.LIFTED, "19", LineState.LIFTED),
            _event(AlertKind.RESOLVED, "21", LineState.NORMAL),
            _event(AlertKind.RESOLVED, "28", LineState.NORMAL),
        ]
        notes = group_notifications(events)
        assert [n.title for n in notes] == [
            "🚨 2 líneas en paro",
            "🟢 Paro levantado: 15, 19",
            "✅ Línea 21: normalizado",
            "✅ Línea 28: normalizado",
        ]
        assert notes[0].body == "60: PARO TOTAL, 152: PARO PARCIAL"

    def test_singular(self):
        notes = group_notifications([_event(AlertKind.NEW_STRIKE, "60")])
        assert notes[0].title == "🚨 1 línea en paro"

    def test_empty(self):
        assert group_notifications([]) == []


class _RecordingSink:
    def __init__(self, fail_on: str | None = None):
        self.sent = []
        self.fail_on = fail_on

    async def notify(self, title: str, body: str) -> None:
        if self.fail_on and self.fail_on in title:
            raise RuntimeError("sink down")
        self.sent.append((title, body))


class TestDispatch:
    def test_sends_grouped(self):
        sink = _RecordingSink()
        delivered = asyncio.run(dispatch(sink, [_event(AlertKind.NEW_STRIKE, "60"), _event(AlertKind.RESOLVED, "15")]))
        assert delivered == 2
        assert [t for t, _ in sink.sent] == ["🚨 1 línea en paro", "✅ Línea 15: normalizado"]

    def test_failure_is_logged_and_skipped(self, caplog):
        sink = _RecordingSink(fail_on="🚨")
        delivered = asyncio.run(dispatch(sink, [_event(AlertKind.NEW_STRIKE, "60"), _event(AlertKind.RESOLVED, "15")]))
        assert delivered == 1
        assert sink.sent == [("✅ Línea 15: normalizado", "Paro levantado")]
        assert "not delivered" in caplog.text

    def test_null_sink(self):
        assert asyncio.run(dispatch(NullSink(), [_event(AlertKind.NEW_STRIKE, "60")])) == 1


class TestWebhookSink:
    def test_posts_json(self, monkeypatch):
        posted = []

        async def _fake_post(url: str, payload: dict, **kwargs):
            posted.append((url, payload))

        monkeypatch.setattr(sinks, "_post_json", _fake_post)
        asyncio.run(WebhookSink("http://example.com/hook").notify("Título", "Cuerpo"))

        assert posted[0][0] == "http://example.com/hook"
        payload = posted[0][1]
        assert payload["type"] == "bus_strike_alert"
        assert payload["title"] == "Título"
        assert payload["body"] == "Cuerpo"
        assert "sent_at" in payload

    def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        sink = WebhookSink("http://example.com/hook", transport=transport)
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(sink.notify("t", "b"))

    def test_wire_format(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(204)

        sink = WebhookSink("http://example.com/hook", transport=httpx.MockTransport(handler))
        asyncio.run(sink.notify("t", "b"))
        assert seen[0]["title"] == "t"
