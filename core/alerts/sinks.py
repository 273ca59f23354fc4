"""
Notification sinks.

Alert events are grouped into user-facing notifications (one for all new
strikes, one for all lifted lines, one per resolved line) and pushed to a
sink. Delivery failures are logged and never abort a check.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from core.alerts.differ import AlertEvent, AlertKind
from core.report import STATUS_LABELS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    body: str


@runtime_checkable
class NotificationSink(Protocol):
    async def notify(self, title: str, body: str) -> None: ...


class NullSink:
    """Discards every notification."""

    async def notify(self, title: str, body: str) -> None:
        return None


async def _post_json(url: str, payload: dict[str, Any], *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    # Ignore env proxies: a system proxy breaks loopback webhook receivers.
    async with httpx.AsyncClient(timeout=10, trust_env=False, transport=transport) as client:
        r = await client.post(url, json=payload)
        r.raise_for_status()


class WebhookSink:
    """POSTs ``{type, title, body, sent_at}`` to a webhook URL."""

    def __init__(self, url: str, *, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self._transport = transport

    async def notify(self, title: str, body: str) -> None:
        payload = {
            "type": "bus_strike_alert",
            "title": title,
            "body": body,
            "sent_at": datetime.now().isoformat(timespec="seconds"),
        }
        await _post_json(self.url, payload, transport=self._transport)


def group_notifications(events: Sequence[AlertEvent]) -> list[Notification]:
    notifications: list[Notification] = []

    strikes = [e for e in events if e.kind == AlertKind.NEW_STRIKE]
    if strikes:
        plural = "s" if len(strikes) > 1 else ""
        notifications.append(Notification(
            title=f"🚨 {len(strikes)} línea{plural} en paro",
            body=", ".join(f"{e.line}: {STATUS_LABELS[e.status]}" for e in strikes),
        ))

    lifted = [e for e in events if e.kind == AlertKind.LIFTED]
    if lifted:
        notifications.append(Notification(
            title=f"🟢 Paro levantado: {', '.join(e.line for e in lifted)}",
            body="Servicio restableciéndose",
        ))

    for event in events:
        if event.kind == AlertKind.RESOLVED:
            notifications.append(Notification(title=f"✅ Línea {event.line}: normalizado", body="Paro levantado"))

    return notifications


async def dispatch(sink: NotificationSink, events: Iterable[AlertEvent]) -> int:
    """Send grouped notifications; returns how many were delivered."""
    delivered = 0
    for notification in group_notifications(list(events)):
        try:
            await sink.notify(notification.title, notification.body)
        except Exception as e:
            logger.warning("Notification %r not delivered: %s", notification.title, e)
            continue
        delivered += 1
    return delivered
