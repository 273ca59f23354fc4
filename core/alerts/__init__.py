"""Alert events: snapshot diffing, history, filtering and notification sinks."""

from core.alerts.differ import AlertEvent, AlertKind, DiffResult, diff
from core.alerts.history import AlertFilter, AlertHistory, HistoryEntry
from core.alerts.sinks import Notification, NotificationSink, NullSink, WebhookSink, dispatch, group_notifications

__all__ = [
    "AlertEvent",
    "AlertFilter",
    "AlertHistory",
    "AlertKind",
    "DiffResult",
    "HistoryEntry",
    "Notification",
    "NotificationSink",
    "NullSink",
    "WebhookSink",
    "diff",
    "dispatch",
    "group_notifications",
]
