"""
Status checker - one "is there a strike today" cycle.

Builds the dated prompt, asks the gateway, recovers the report, diffs it
against the previous snapshot, notifies and records history. One checker per
session; it owns the previous snapshot and allows a single check in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

import httpx

from config.loader import ConfigLoader
from config.schema import BondiSettings
from core.alerts import (
    AlertEvent,
    AlertFilter,
    AlertHistory,
    NotificationSink,
    NullSink,
    WebhookSink,
    diff,
    dispatch,
)
from core.extract import StructuredExtractor
from core.gateway import FallbackGateway, GatewayError
from core.prompts import StrikePrompt
from core.providers import NormalizedReply, build_providers
from core.report import LineState, StrikeReport

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_TEXT = "Respuesta vacía de la API"


class CheckInProgressError(RuntimeError):
    """A check was requested while another one is still running."""


@dataclass(frozen=True)
class CheckResult:
    checked_at: datetime
    reply: NormalizedReply | None = None
    error: GatewayError | None = None
    payload: dict[str, Any] | None = None
    report: StrikeReport | None = None
    events: tuple[AlertEvent, ...] = field(default_factory=tuple)
    notified: tuple[AlertEvent, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def raw_text(self) -> str:
        return self.reply.text if self.reply else ""

    @property
    def display_text(self) -> str:
        """What to show the user; never empty."""
        if self.error is not None:
            return f"Error: {self.error.message}"
        if self.report is not None and self.report.summary:
            return self.report.summary
        if self.payload is not None:
            summary = self.payload.get("resumen_general") or self.payload.get("summary")
            if isinstance(summary, str) and summary:
                return summary
            return json.dumps(self.payload, indent=2, ensure_ascii=False)
        if self.raw_text.strip():
            return self.raw_text
        return EMPTY_RESPONSE_TEXT


class StatusChecker:
    def __init__(
        self,
        gateway: FallbackGateway,
        prompt: StrikePrompt,
        *,
        extractor: StructuredExtractor | None = None,
        history: AlertHistory | None = None,
        alert_filter: AlertFilter | None = None,
        sink: NotificationSink | None = None,
        notifications: bool = True,
    ):
        self.gateway = gateway
        self.prompt = prompt
        self.extractor = extractor or StructuredExtractor()
        self.history = history or AlertHistory()
        self.alert_filter = alert_filter or AlertFilter()
        self.sink = sink or NullSink()
        self.notifications = notifications
        self._snapshot: Mapping[str, LineState] = MappingProxyType({})
        self._lock = asyncio.Lock()
        self.last_result: CheckResult | None = None

    @classmethod
    def from_settings(
        cls,
        settings: BondiSettings,
        *,
        loader: ConfigLoader | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sink: NotificationSink | None = None,
    ) -> StatusChecker:
        loader = loader or ConfigLoader()
        monitor = settings.monitor
        providers = build_providers(settings, loader=loader, transport=transport)
        if sink is None:
            sink = WebhookSink(monitor.webhook_url) if monitor.webhook_url else NullSink()
        return cls(
            FallbackGateway.from_settings(settings, providers),
            StrikePrompt(monitor, loader),
            history=AlertHistory(monitor.history_size),
            alert_filter=AlertFilter(monitor.favorites, monitor.notify_only_favorites),
            sink=sink,
            notifications=monitor.notifications,
        )

    @property
    def snapshot(self) -> Mapping[str, LineState]:
        return self._snapshot

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def check(self, silent: bool = False) -> CheckResult:
        if self._lock.locked():
            raise CheckInProgressError("A status check is already running")
        async with self._lock:
            result = await self._run(silent)
            self.last_result = result
            return result

    async def _run(self, silent: bool) -> CheckResult:
        conversation = self.prompt.conversation()
        outcome = await self.gateway.handle(conversation)
        now = datetime.now()

        if isinstance(outcome, GatewayError):
            logger.error("Status check failed (%s): %s", outcome.kind.value, outcome.message)
            self.history.add(f"❌ {outcome.message}", now)
            return CheckResult(checked_at=now, error=outcome)

        payload = self.extractor.extract_fragments(outcome.fragments or (outcome.text,))
        report = self.extractor.to_report(payload)
        if report is None:
            if payload is None:
                logger.info("Response from %s had no structured report", outcome.provider_id)
            return CheckResult(checked_at=now, reply=outcome, payload=payload)

        result = diff(self._snapshot, report, now)
        self._snapshot = result.snapshot
        relevant = self.alert_filter.apply(result.events)

        if relevant:
            self.history.add_events(relevant)
            if self.notifications:
                await dispatch(self.sink, relevant)
        if not silent:
            self.history.add(f"🔄 OK — {len(report.sources_consulted)} fuentes", now)

        return CheckResult(
            checked_at=now,
            reply=outcome,
            payload=payload,
            report=report,
            events=result.events,
            notified=tuple(relevant),
        )

    async def watch(self, interval: float, iterations: int | None = None) -> AsyncIterator[CheckResult]:
        """Run checks back to back, sleeping ``interval`` seconds after each one completes."""
        count = 0
        while iterations is None or count < iterations:
            yield await self.check(silent=count > 0)
            count += 1
            if iterations is not None and count >= iterations:
                break
            await asyncio.sleep(interval)
