"""Tests for core.alerts.differ - snapshot diff rules."""

from datetime import datetime

from core.alerts import AlertKind, diff
from core.report import LineState, StrikeReport

NOW = datetime(2025, 10, 14, 9, 30)


def _report(*lines: tuple[str, str], **extra) -> StrikeReport:
    return StrikeReport.from_payload({
        "fecha": "hoy",
        "lineas_afectadas": [{"linea": line, "estado": status, **extra} for line, status in lines],
    })


def test_new_strike_from_empty():
    result = diff({}, _report(("60", "paro_total")), NOW)
    assert [(e.kind, e.line) for e in result.events] == [(AlertKind.NEW_STRIKE, "60")]
    assert dict(result.snapshot) == {"60": LineState.TOTAL}
    assert result.events[0].timestamp == NOW


def test_lifted():
    result = diff({"60": LineState.TOTAL}, _report(("60", "levantado")), NOW)
    assert [(e.kind, e.line) for e in result.events] == [(AlertKind.LIFTED, "60")]
    assert dict(result.snapshot) == {"60": LineState.LIFTED}


def test_resolved_when_line_disappears():
    result = diff({"60": LineState.TOTAL}, _report(), NOW)
    assert [(e.kind, e.line) for e in result.events] == [(AlertKind.RESOLVED, "60")]
    assert "60" not in result.snapshot
    assert result.events[0].message == "Línea 60: normalizado"


def test_idempotent():
    report = _report(("60", "paro_total"), ("152", "levantado"), ("15", "demoras"))
    first = diff({}, report, NOW)
    second = diff(first.snapshot, report, NOW)
    assert len(first.events) == 2
    assert second.events == ()


def test_total_to_normal_emits_nothing():
    result = diff({"60": LineState.TOTAL}, _report(("60", "normal")), NOW)
    assert result.events == ()
    assert dict(result.snapshot) == {"60": LineState.NORMAL}


def test_total_to_partial_is_a_new_strike():
    result = diff({"60": LineState.TOTAL}, _report(("60", "paro_parcial")), NOW)
    assert [(e.kind, e.status) for e in result.events] == [(AlertKind.NEW_STRIKE, LineState.PARTIAL)]


def test_delayed_line_disappearing_is_not_resolved():
    assert diff({"15": LineState.DELAYED}, _report(), NOW).events == ()


def test_lines_compared_case_insensitively():
    result = diff({"d-60": LineState.TOTAL}, _report(("D-60", "paro_total")), NOW)
    assert result.events == ()


def test_previous_map_accepts_raw_statuses():
    result = diff({60: "paro_total"}, _report(("60", "levantado")), NOW)
    assert [e.kind for e in result.events] == [AlertKind.LIFTED]


def test_duplicate_lines_emit_once():
    result = diff({}, _report(("60", "paro_total"), ("60", "paro_total")), NOW)
    assert len(result.events) == 1


def test_rule_order_and_messages():
    previous = {"15": LineState.PARTIAL, "152": LineState.TOTAL}
    report = _report(("60", "paro_total"), ("152", "levantado"), motivo="Reclamo salarial")
    result = diff(previous, report, NOW)
    assert [e.kind for e in result.events] == [AlertKind.NEW_STRIKE, AlertKind.LIFTED, AlertKind.RESOLVED]
    assert result.events[0].message == "Línea 60: PARO TOTAL — Reclamo salarial"
    assert result.events[1].message == "Línea 152: LEVANTADO — Reclamo salarial"
    assert result.of_kind(AlertKind.RESOLVED)[0].line == "15"


def test_message_without_reason():
    result = diff({}, _report(("60", "paro_parcial")), NOW)
    assert result.events[0].message == "Línea 60: PARO PARCIAL"


def test_previous_map_not_mutated():
    previous = {"60": LineState.TOTAL}
    diff(previous, _report(("60", "levantado")), NOW)
    assert previous == {"60": LineState.TOTAL}


def test_repeated_line_uses_most_severe_status():
    report = _report(("60", "paro_total"), ("60", "paro_parcial"))
    first = diff({}, report, NOW)
    assert [(e.kind, e.status) for e in first.events] == [(AlertKind.NEW_STRIKE, LineState.TOTAL)]
    assert dict(first.snapshot) == {"60": LineState.TOTAL}
    assert diff(first.snapshot, report, NOW).events == ()


def test_repeated_line_order_does_not_matter():
    report = _report(("60", "paro_parcial"), ("60", "paro_total"))
    first = diff({}, report, NOW)
    assert dict(first.snapshot) == {"60": LineState.TOTAL}
    assert diff(first.snapshot, report, NOW).events == ()


def test_resolved_keeps_line_casing():
    first = diff({}, _report(("D-60", "paro_total")), NOW)
    assert list(first.snapshot) == ["D-60"]
    result = diff(first.snapshot, _report(), NOW)
    assert [(e.kind, e.line) for e in result.events] == [(AlertKind.RESOLVED, "D-60")]
    assert result.events[0].message == "Línea D-60: normalizado"
