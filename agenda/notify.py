"""
agenda/notify.py
Best-effort "something is waiting for review" notifications.
Delivery is fire-and-forget: a notifier failure is logged and never
reaches the reconciler that triggered it.
"""

import json
import logging
import threading
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from agenda.models.record import (
    ACTION_DELETE, ACTION_UPDATE, CalendarEvent, Reminder,
)

logger = logging.getLogger(__name__)


class Notifier(ABC):

    name: str = ''

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def send(self, title: str, body: str, data: Dict[str, Any]) -> None:
        """Deliver one notification. May raise; NotifyService catches."""
        ...


class LogNotifier(Notifier):
    """Writes notifications to the log. Always configured."""

    name = 'log'

    def send(self, title: str, body: str, data: Dict[str, Any]) -> None:
        logger.info(f"[notify] {title}: {body}")


class WebhookNotifier(Notifier):
    """POSTs {title, body, data} as JSON to a user-supplied URL."""

    name = 'webhook'

    def __init__(self, url: str, timeout_sec: int = 10):
        self.url         = url
        self.timeout_sec = timeout_sec

    def is_configured(self) -> bool:
        return bool(self.url)

    def send(self, title: str, body: str, data: Dict[str, Any]) -> None:
        payload = json.dumps({'title': title, 'body': body, 'data': data}).encode('utf-8')
        req = urllib.request.Request(
            self.url,
            data    = payload,
            headers = {'Content-Type': 'application/json'},
            method  = 'POST',
        )
        with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
            resp.read()


def _event_title(action_type: str, kind: str) -> str:
    if action_type == ACTION_UPDATE:
        return f"{kind} Update Detected"
    if action_type == ACTION_DELETE:
        return f"{kind} Deletion Detected"
    return f"New {kind} Detected"


class NotifyService:
    """
    Fans one pending item out to every configured notifier.
    background=False delivers inline (tests, CLI one-shots).
    """

    def __init__(self, notifiers: Optional[List[Notifier]] = None, background: bool = True):
        self.notifiers  = [n for n in (notifiers or []) if n.is_configured()]
        self.background = background

    def notify_pending_event(self, event: CalendarEvent) -> None:
        body = event.title
        if event.start_time:
            body = f"{event.title} - {event.start_time.strftime('%a, %b %d at %I:%M %p')}"
        self._dispatch(
            _event_title(event.action_type, 'Event'),
            body,
            {'event_id': event.id, 'action_type': event.action_type, 'screen': 'Events'},
        )

    def notify_pending_reminder(self, reminder: Reminder) -> None:
        body = f"{reminder.title} - due {reminder.due_date.strftime('%a, %b %d')}"
        self._dispatch(
            _event_title(reminder.action_type, 'Reminder'),
            body,
            {'reminder_id': reminder.id, 'action_type': reminder.action_type, 'screen': 'Reminders'},
        )

    def _dispatch(self, title: str, body: str, data: Dict[str, Any]) -> None:
        if not self.notifiers:
            return
        if self.background:
            threading.Thread(
                target = self._deliver,
                args   = (title, body, data),
                name   = 'agenda-notify',
                daemon = True,
            ).start()
        else:
            self._deliver(title, body, data)

    def _deliver(self, title: str, body: str, data: Dict[str, Any]) -> None:
        for notifier in self.notifiers:
            try:
                notifier.send(title, body, data)
            except (urllib.error.URLError, OSError, ValueError) as e:
                logger.warning(f"Notifier {notifier.name} failed: {e}")
            except Exception as e:
                logger.error(f"Notifier {notifier.name} error: {e}", exc_info=True)
