"""
agenda/processor/reminder_creator.py
Turns one ReminderAnalysis into a pending Reminder.

Unlike events, reminders have no provider-side id, so update and
delete must name an existing pending reminder by internal id.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from agenda.analyzers.schemas import ReminderAnalysis
from agenda.errors import ReminderCreationError, StoreError, UnknownActionError
from agenda.models.record import (
    ACTION_CREATE, ACTION_DELETE, ACTION_NONE, ACTION_UPDATE,
    PRIORITY_HIGH, PRIORITY_LOW, PRIORITY_NORMAL,
    STATUS_PENDING, STATUS_REJECTED,
    Reminder,
)
from agenda.notify import NotifyService
from agenda.processor.event_creator import build_quality_flags
from agenda.store.base import Store
from agenda.timeutil import parse_date_with_default_time, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_HOUR   = 9
DEFAULT_REMINDER_MINUTE = 0


@dataclass
class ReminderCreationParams:
    user_id:           int
    channel_id:        int
    analysis:          ReminderAnalysis
    source:            str           = ''
    origin_message_id: Optional[int] = None
    email_source_id:   Optional[int] = None


def parse_reminder_time(value: str, tz_name: str) -> Tuple[datetime, bool]:
    """Full datetime first; a bare date lands on 09:00 local."""
    try:
        return parse_datetime(value, tz_name)
    except ValueError:
        return parse_date_with_default_time(
            value, tz_name, DEFAULT_REMINDER_HOUR, DEFAULT_REMINDER_MINUTE
        )


def map_reminder_priority(priority: str) -> str:
    p = (priority or '').strip().lower()
    if p == PRIORITY_LOW:
        return PRIORITY_LOW
    if p == PRIORITY_HIGH:
        return PRIORITY_HIGH
    return PRIORITY_NORMAL


class ReminderCreator:

    def __init__(self, store: Store, notify: Optional[NotifyService] = None):
        self.store  = store
        self.notify = notify

    def create_from_analysis(self, params: ReminderCreationParams) -> Optional[Reminder]:
        """Dispatch on action. Returns None for 'none'."""
        analysis = params.analysis
        if analysis is None:
            raise ReminderCreationError("analysis is missing")

        action = analysis.action
        if action == ACTION_NONE:
            return None
        if action not in (ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE):
            raise UnknownActionError(action)
        if analysis.reminder is None:
            raise ReminderCreationError(f"analysis has no reminder data for {action}")

        if action == ACTION_CREATE:
            return self._create(params)
        if action == ACTION_UPDATE:
            return self._update(params)
        return self._delete(params)

    def _tz(self, user_id: int) -> str:
        return self.store.get_user_timezone(user_id) or 'UTC'

    # ── CREATE ───────────────────────────────────────────────

    def _create(self, params: ReminderCreationParams) -> Reminder:
        data    = params.analysis.reminder
        tz_name = self._tz(params.user_id)

        if not data.due_date.strip():
            raise ReminderCreationError("create action requires due_date")
        try:
            due, tz_fallback = parse_reminder_time(data.due_date, tz_name)
        except ValueError as e:
            raise ReminderCreationError(f"failed to parse due date: {e}") from e

        reminder_time = None
        if data.reminder_time.strip():
            try:
                reminder_time, fell_back = parse_reminder_time(data.reminder_time, tz_name)
                tz_fallback = tz_fallback or fell_back
            except ValueError:
                logger.debug(f"Ignoring unparsable reminder_time: {data.reminder_time!r}")

        created = self.store.create_pending_reminder(Reminder(
            user_id           = params.user_id,
            channel_id        = params.channel_id,
            title             = data.title.strip(),
            description       = data.description.strip(),
            due_date          = due,
            reminder_time     = reminder_time,
            priority          = map_reminder_priority(data.priority),
            action_type       = ACTION_CREATE,
            origin_message_id = params.origin_message_id,
            email_source_id   = params.email_source_id,
            source            = params.source,
            llm_reasoning     = params.analysis.reasoning,
            llm_confidence    = params.analysis.confidence,
            quality_flags     = build_quality_flags(params.analysis.confidence, tz_fallback),
        ))
        logger.info(
            f"Created pending reminder: {created.title} (ID: {created.id}, "
            f"Due: {created.due_date:%Y-%m-%d %H:%M}, Priority: {created.priority}, "
            f"Source: {params.source})"
        )

        if self.notify is not None:
            self.notify.notify_pending_reminder(created)
        return created

    # ── UPDATE / DELETE ──────────────────────────────────────

    def _pending_target(self, reminder_id: Optional[int], action: str) -> Reminder:
        if not reminder_id:
            raise ReminderCreationError(f"{action} action requires reminder_id")
        existing = self.store.get_reminder_by_id(reminder_id)
        if existing is None:
            raise ReminderCreationError(f"reminder {reminder_id} not found")
        if existing.status != STATUS_PENDING:
            raise ReminderCreationError(
                f"cannot {action} reminder with status {existing.status}"
            )
        return existing

    def _update(self, params: ReminderCreationParams) -> Reminder:
        data     = params.analysis.reminder
        existing = self._pending_target(data.reminder_id, ACTION_UPDATE)
        tz_name  = self._tz(params.user_id)
        tz_fallback = False

        if data.due_date.strip():
            try:
                existing.due_date, fell_back = parse_reminder_time(data.due_date, tz_name)
                tz_fallback = tz_fallback or fell_back
            except ValueError:
                logger.debug(f"Keeping due date; unparsable update {data.due_date!r}")
        if data.reminder_time.strip():
            try:
                existing.reminder_time, fell_back = parse_reminder_time(data.reminder_time, tz_name)
                tz_fallback = tz_fallback or fell_back
            except ValueError:
                logger.debug(f"Keeping reminder_time; unparsable update {data.reminder_time!r}")

        existing.title          = data.title.strip() or existing.title
        existing.description    = data.description.strip() or existing.description
        if data.priority.strip():
            existing.priority   = map_reminder_priority(data.priority)
        existing.llm_reasoning  = params.analysis.reasoning
        existing.llm_confidence = params.analysis.confidence
        existing.quality_flags  = build_quality_flags(params.analysis.confidence, tz_fallback)

        try:
            self.store.update_pending_reminder(existing)
        except StoreError as e:
            raise ReminderCreationError(f"failed to update pending reminder: {e}") from e

        logger.info(f"Updated pending reminder: {existing.title} (ID: {existing.id})")
        return self.store.get_reminder_by_id(existing.id) or existing

    def _delete(self, params: ReminderCreationParams) -> Reminder:
        existing = self._pending_target(params.analysis.reminder.reminder_id, ACTION_DELETE)
        self.store.update_reminder_status(existing.id, STATUS_REJECTED)
        logger.info(f"Rejected pending reminder: {existing.title} (ID: {existing.id})")
        existing.status = STATUS_REJECTED
        return existing
