"""Tests for core.checker and core.prompts."""

import asyncio
import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from config.schema import BondiSettings, MonitorConfig
from core.alerts import AlertFilter, AlertKind, NullSink, WebhookSink
from core.checker import EMPTY_RESPONSE_TEXT, CheckInProgressError, CheckResult, StatusChecker
from core.gateway import GatewayError, GatewayErrorKind
from core.prompts import WEB_SEARCH_TOOL, StrikePrompt, spanish_long_date
from core.providers import NormalizedReply, StopReason
from core.report import LineState

NOW = datetime(2025, 10, 14, 9, 30)


def _reply(text: str, fragments: tuple[str, ...] | None = None) -> NormalizedReply:
    return NormalizedReply(
        text=text,
        stop_reason=StopReason.END,
        provider_id="anthropic",
        model_id="m",
        fragments=fragments if fragments is not None else (text,),
    )


def _report_text(*lines: tuple[str, str], **extra) -> str:
    return json.dumps({
        "fecha": "martes, 14 de octubre de 2025",
        "hay_paros": bool(lines),
        "lineas_afectadas": [{"linea": line, "estado": status} for line, status in lines],
        "fuentes_consultadas": ["TN", "Infobae"],
        **extra,
    })


class FakeGateway:
    """Replays queued outcomes and records the conversations it receives."""

    def __init__(self, *outcomes, delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.conversations = []
        self.delay = delay

    async def handle(self, conversation):
        self.conversations.append(conversation)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.outcomes.pop(0)


class RecordingSink:
    def __init__(self):
        self.sent = []

    async def notify(self, title: str, body: str) -> None:
        self.sent.append((title, body))


def _checker(gateway, **kwargs) -> StatusChecker:
    return StatusChecker(gateway, StrikePrompt(), **kwargs)


class TestStrikePrompt:
    def test_spanish_long_date(self):
        assert spanish_long_date(NOW) == "martes, 14 de octubre de 2025"
        assert spanish_long_date(datetime(2026, 1, 4)) == "domingo, 4 de enero de 2026"

    def test_render_substitutes_placeholders(self):
        prompt = StrikePrompt(MonitorConfig(zones=["Tigre", "Pilar"], lines=["60", "152"]))
        text = prompt.render(NOW)
        assert "Hoy es martes, 14 de octubre de 2025." in text
        assert "Tigre, Pilar" in text
        assert "60, 152" in text
        assert "${" not in text

    def test_render_defaults_to_local_time(self):
        text = StrikePrompt().render()
        today = datetime.now(ZoneInfo("America/Argentina/Buenos_Aires"))
        assert spanish_long_date(today) in text

    def test_conversation_params(self):
        conversation = StrikePrompt(MonitorConfig(max_tokens=1234)).conversation(NOW)
        assert conversation.params["max_tokens"] == 1234
        assert conversation.params["model"] == "claude-sonnet-4-20250514"
        assert conversation.params["tools"] == [WEB_SEARCH_TOOL]
        assert conversation.messages[0].role == "user"

    def test_conversation_without_search_tool(self):
        conversation = StrikePrompt(MonitorConfig(web_search_tool=False)).conversation(NOW)
        assert "tools" not in conversation.params

    def test_missing_prompt(self):
        with pytest.raises(ValueError, match="Prompt not found"):
            StrikePrompt(MonitorConfig(prompt="does_not_exist")).render(NOW)


class TestStatusChecker:
    @pytest.mark.asyncio
    async def test_first_check_records_new_strikes(self):
        sink = RecordingSink()
        checker = _checker(FakeGateway(_reply(_report_text(("60", "paro_total")))), sink=sink)
        result = await checker.check()

        assert result.ok
        assert result.report.has_strikes is True
        assert [(e.kind, e.line) for e in result.events] == [(AlertKind.NEW_STRIKE, "60")]
        assert dict(checker.snapshot) == {"60": LineState.TOTAL}
        assert sink.sent == [("🚨 1 línea en paro", "60: PARO TOTAL")]
        assert [e.text for e in checker.history] == ["🔄 OK — 2 fuentes", "Línea 60: PARO TOTAL"]
        assert checker.last_result is result

    @pytest.mark.asyncio
    async def test_second_check_diffs_against_snapshot(self):
        gateway = FakeGateway(
            _reply(_report_text(("60", "paro_total"), ("152", "paro_parcial"))),
            _reply(_report_text(("60", "levantado"))),
        )
        sink = RecordingSink()
        checker = _checker(gateway, sink=sink)
        await checker.check()
        result = await checker.check(silent=True)

        assert [(e.kind, e.line) for e in result.events] == [(AlertKind.LIFTED, "60"), (AlertKind.RESOLVED, "152")]
        assert dict(checker.snapshot) == {"60": LineState.LIFTED}
        assert sink.sent[-2:] == [
            ("🟢 Paro levantado: 60", "Servicio restableciéndose"),
            ("✅ Línea 152: normalizado", "Paro levantado"),
        ]
        # silent checks add no status line
        assert checker.history.entries()[0].text == "Línea 152: normalizado"

    @pytest.mark.asyncio
    async def test_unchanged_report_emits_nothing(self):
        text = _report_text(("60", "paro_total"))
        sink = RecordingSink()
        checker = _checker(FakeGateway(_reply(text), _reply(text)), sink=sink)
        await checker.check()
        result = await checker.check()
        assert result.events == ()
        assert len(sink.sent) == 1

    @pytest.mark.asyncio
    async def test_fragments_are_scanned(self):
        fragments = ("Busqué en varias fuentes.", "```json\n" + _report_text(("60", "demoras")) + "\n```")
        checker = _checker(FakeGateway(_reply("\n".join(fragments), fragments)))
        result = await checker.check()
        assert result.report.affected_lines[0].status == LineState.DELAYED
        assert result.events == ()

    @pytest.mark.asyncio
    async def test_notifications_disabled_still_records_history(self):
        sink = RecordingSink()
        checker = _checker(FakeGateway(_reply(_report_text(("60", "paro_total")))), sink=sink, notifications=False)
        result = await checker.check(silent=True)
        assert sink.sent == []
        assert [e.text for e in checker.history] == ["Línea 60: PARO TOTAL"]
        assert result.notified == result.events

    @pytest.mark.asyncio
    async def test_favorites_filter(self):
        sink = RecordingSink()
        checker = _checker(
            FakeGateway(_reply(_report_text(("60", "paro_total"), ("152", "paro_total")))),
            sink=sink,
            alert_filter=AlertFilter(["152"], only_favorites=True),
        )
        result = await checker.check(silent=True)
        assert len(result.events) == 2
        assert [e.line for e in result.notified] == ["152"]
        assert sink.sent == [("🚨 1 línea en paro", "152: PARO TOTAL")]
        # snapshot still tracks every line
        assert set(checker.snapshot) == {"60", "152"}

    @pytest.mark.asyncio
    async def test_gateway_error(self):
        error = GatewayError(GatewayErrorKind.EXHAUSTED, "upstream down", 502)
        checker = _checker(FakeGateway(error))
        result = await checker.check()
        assert not result.ok
        assert result.display_text == "Error: upstream down"
        assert checker.history.entries()[0].text == "❌ upstream down"
        assert dict(checker.snapshot) == {}

    @pytest.mark.asyncio
    async def test_unstructured_reply_keeps_snapshot(self):
        checker = _checker(FakeGateway(_reply(_report_text(("60", "paro_total"))), _reply("No pude encontrar datos.")))
        await checker.check()
        result = await checker.check()
        assert result.ok
        assert result.report is None
        assert result.display_text == "No pude encontrar datos."
        assert dict(checker.snapshot) == {"60": LineState.TOTAL}

    @pytest.mark.asyncio
    async def test_sends_dated_prompt(self):
        gateway = FakeGateway(_reply(_report_text()))
        await _checker(gateway).check()
        conversation = gateway.conversations[0]
        assert "paros" in conversation.user_text()
        assert conversation.params["tools"] == [WEB_SEARCH_TOOL]

    @pytest.mark.asyncio
    async def test_single_check_in_flight(self):
        checker = _checker(FakeGateway(_reply(_report_text()), delay=0.05))
        first = asyncio.create_task(checker.check())
        await asyncio.sleep(0.01)
        assert checker.busy
        with pytest.raises(CheckInProgressError):
            await checker.check()
        await first
        assert not checker.busy

    @pytest.mark.asyncio
    async def test_watch_runs_iterations(self):
        texts = [_report_text(("60", "paro_total")), _report_text(("60", "levantado")), _report_text()]
        checker = _checker(FakeGateway(*[_reply(t) for t in texts]))
        results = [r async for r in checker.watch(0.001, iterations=3)]
        assert [len(r.events) for r in results] == [1, 1, 0]
        # only the first check reports its status line
        assert sum(1 for e in checker.history if e.text.startswith("🔄")) == 1

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")
        settings = BondiSettings.model_validate({
            "monitor": {"history_size": 5, "favorites": [60], "notify_only_favorites": True, "notifications": False}
        })
        checker = StatusChecker.from_settings(settings)
        assert checker.history.limit == 5
        assert checker.alert_filter.active
        assert checker.notifications is False
        assert isinstance(checker.sink, NullSink)
        assert [p.name for p in checker.gateway.providers] == ["anthropic", "gemini", "openai"]

    def test_from_settings_webhook(self):
        settings = BondiSettings.model_validate({"monitor": {"webhook_url": "http://example.com/hook"}})
        assert isinstance(StatusChecker.from_settings(settings).sink, WebhookSink)


class TestDisplayText:
    def test_summary_from_report(self):
        from core.report import StrikeReport

        report = StrikeReport.from_payload({"fecha": "hoy", "resumen_general": "Sin paros"})
        result = CheckResult(checked_at=NOW, reply=_reply("x"), payload={"fecha": "hoy"}, report=report)
        assert result.display_text == "Sin paros"

    def test_payload_without_summary_is_pretty_json(self):
        result = CheckResult(checked_at=NOW, reply=_reply("x"), payload={"estado": "ok"})
        assert result.display_text == '{\n  "estado": "ok"\n}'

    def test_payload_summary(self):
        result = CheckResult(checked_at=NOW, reply=_reply("x"), payload={"summary": "All good"})
        assert result.display_text == "All good"

    def test_empty_reply(self):
        assert CheckResult(checked_at=NOW, reply=_reply("  ")).display_text == EMPTY_RESPONSE_TEXT
        assert CheckResult(checked_at=NOW).display_text == EMPTY_RESPONSE_TEXT
