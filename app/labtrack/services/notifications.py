"""Post-commit notifications about request lifecycle events.

Notifiers are fire-and-forget: delivery failures are logged and never
propagate into the operation that produced the event.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import httpx

from app.labtrack.core.config import settings
from app.labtrack.core.logging import log_json

logger = logging.getLogger(__name__)

REQUEST_RECEIVED = "request.received"
RECEPTION_REVERTED = "request.reception_reverted"
STATUS_CHANGED = "request.status_changed"


@dataclass
class NotificationEvent:
    event: str
    request_id: str
    request_number: str | None
    status: str
    previous_status: str | None
    actor_id: str | None
    occurred_at: datetime = field(default_factory=datetime.utcnow)
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


class Notifier(ABC):
    @abstractmethod
    def send(self, event: NotificationEvent) -> None:
        """Deliver one event; raising marks the delivery as failed."""

    def dispatch(self, events: list[NotificationEvent]) -> None:
        for event in events:
            try:
                self.send(event)
            except Exception:
                logger.exception(
                    "Notification delivery failed",
                    extra={"event": event.event, "request_id": event.request_id},
                )


class LoggingNotifier(Notifier):
    def send(self, event: NotificationEvent) -> None:
        log_json(logger, {"event": "notification", **event.to_payload()})


class WebhookNotifier(Notifier):
    def __init__(self, url: str, *, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, event: NotificationEvent) -> None:
        response = self._client.post(self.url, json=event.to_payload())
        response.raise_for_status()


def build_notifier() -> Notifier:
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(settings.NOTIFY_WEBHOOK_URL, timeout=settings.NOTIFY_WEBHOOK_TIMEOUT_SEC)
    return LoggingNotifier()


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier
