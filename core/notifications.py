"""
Notification System Module
==========================

Delivery of compliance alerts and schedule reminders.

Features:
- Notifier port with log, file (JSON lines) and webhook channels
- Severity routing per channel
- Fire-and-forget dispatch as tracked asyncio tasks
- Delivery failures logged, never raised into the caller
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import aiohttp

from core.models import AlertSeverity, Notification

logger = logging.getLogger(__name__)


_LOG_LEVELS = {
    AlertSeverity.LOW: logging.INFO,
    AlertSeverity.MEDIUM: logging.INFO,
    AlertSeverity.HIGH: logging.WARNING,
    AlertSeverity.CRITICAL: logging.ERROR,
}

_COLORS = {
    AlertSeverity.LOW: '#36a64f',
    AlertSeverity.MEDIUM: '#ffa500',
    AlertSeverity.HIGH: '#ff4500',
    AlertSeverity.CRITICAL: '#8b0000',
}


class Notifier(ABC):
    """Abstract notification channel."""

    min_severity: AlertSeverity = AlertSeverity.LOW

    @abstractmethod
    async def notify(self, notification: Notification) -> None:
        """Deliver a notification. Raises on delivery failure."""

    def accepts(self, notification: Notification) -> bool:
        """Check whether this channel wants the notification."""
        return notification.severity.rank >= self.min_severity.rank


class LoggingNotifier(Notifier):
    """Writes notifications to the application log."""

    def __init__(self, min_severity: AlertSeverity = AlertSeverity.LOW):
        self.min_severity = min_severity

    async def notify(self, notification: Notification) -> None:
        logger.log(
            _LOG_LEVELS.get(notification.severity, logging.INFO),
            f"[{notification.kind.value}/{notification.severity.value}] "
            f"{notification.title}: {notification.message}",
        )


class FileNotifier(Notifier):
    """
    File-based notification channel.

    Appends one JSON object per line for log aggregation systems.
    """

    def __init__(
        self,
        filepath: str = "logs/compliance_notifications.jsonl",
        min_severity: AlertSeverity = AlertSeverity.LOW,
    ):
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self.min_severity = min_severity
        self._lock = threading.Lock()

    async def notify(self, notification: Notification) -> None:
        line = json.dumps(notification.to_dict(), default=str)
        with self._lock:
            with open(self.filepath, 'a', encoding='utf-8') as f:
                f.write(line + '\n')


class WebhookNotifier(Notifier):
    """
    Webhook notification channel.

    Posts a Slack-compatible payload to the configured URL.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 10.0,
        headers: dict[str, str] | None = None,
        min_severity: AlertSeverity = AlertSeverity.HIGH,
    ):
        self.webhook_url = webhook_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.headers = headers or {'Content-Type': 'application/json'}
        self.min_severity = min_severity

    async def notify(self, notification: Notification) -> None:
        payload = self.format_payload(notification)
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.webhook_url, json=payload, headers=self.headers) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise RuntimeError(
                        f"Webhook returned HTTP {response.status}: {body[:200]}"
                    )

    def format_payload(self, notification: Notification) -> dict[str, Any]:
        """Format notification for a Slack-style webhook."""
        return {
            'text': f"*{notification.title}*",
            'attachments': [{
                'color': _COLORS.get(notification.severity, '#808080'),
                'fields': [
                    {'title': 'Severity', 'value': notification.severity.value, 'short': True},
                    {'title': 'Kind', 'value': notification.kind.value, 'short': True},
                    {'title': 'Time', 'value': notification.created_at.isoformat(), 'short': True},
                    {'title': 'Message', 'value': notification.message, 'short': False},
                ],
            }],
        }


class CompositeNotifier(Notifier):
    """Fans a notification out to every channel that accepts it."""

    def __init__(self, channels: list[Notifier] | None = None):
        # None means "log only"; an explicit empty list disables delivery
        self.channels = [LoggingNotifier()] if channels is None else list(channels)

    def accepts(self, notification: Notification) -> bool:
        return any(c.accepts(notification) for c in self.channels)

    async def notify(self, notification: Notification) -> None:
        targets = [c for c in self.channels if c.accepts(notification)]
        results = await asyncio.gather(
            *(c.notify(notification) for c in targets),
            return_exceptions=True,
        )

        failures = [
            (type(channel).__name__, result)
            for channel, result in zip(targets, results)
            if isinstance(result, Exception)
        ]
        for channel_name, error in failures:
            logger.error(f"Notification channel {channel_name} failed: {error}")

        if targets and len(failures) == len(targets):
            raise RuntimeError(f"All {len(targets)} notification channels failed")


class NotificationDispatcher:
    """
    Fire-and-forget delivery of notifications.

    Each delivery runs as its own asyncio task so the caller never waits on
    the channel. Tasks are tracked so shutdown (and tests) can ``drain()``.
    """

    def __init__(self, notifier: Notifier, timeout_seconds: float | None = None):
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._pending: set[asyncio.Task] = set()
        self._sent_count = 0
        self._failed_count = 0
        self._filtered_count = 0

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def dispatch(self, notification: Notification) -> asyncio.Task | None:
        """
        Schedule delivery without waiting for it.

        Returns:
            The delivery task, or None when no channel accepts the severity
        """
        if not self._notifier.accepts(notification):
            self._filtered_count += 1
            logger.debug(
                f"No channel accepts {notification.severity.value} notification '{notification.title}'"
            )
            return None

        task = asyncio.get_running_loop().create_task(self._deliver(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, notification: Notification) -> None:
        try:
            if self._timeout is not None:
                await asyncio.wait_for(self._notifier.notify(notification), self._timeout)
            else:
                await self._notifier.notify(notification)
            self._sent_count += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_count += 1
            logger.error(f"Failed to deliver notification '{notification.title}': {e}")

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all in-flight deliveries."""
        if not self._pending:
            return
        done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} undelivered notifications")

    def get_statistics(self) -> dict:
        return {
            'sent': self._sent_count,
            'failed': self._failed_count,
            'filtered': self._filtered_count,
            'pending': len(self._pending),
        }
