"""
agenda/store/base.py
The narrow storage interface the pipeline consumes. Orchestrators and
reconcilers only ever see this; SQLiteStore is the shipped backend.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from agenda.models.record import (
    AnalysisTrace, Attendee, CalendarEvent, Channel, InboundMessage,
    Reminder, SourceMessage,
)


class Store(ABC):

    # ── CHANNELS ─────────────────────────────────────────────
    @abstractmethod
    def get_channel(self, channel_id: int) -> Optional[Channel]:
        ...

    @abstractmethod
    def get_or_create_channel(
        self,
        user_id:     int,
        source_type: str,
        identifier:  str,
        name:        str,
        calendar_id: str = '',
    ) -> Channel:
        ...

    # ── MESSAGE HISTORY ──────────────────────────────────────
    @abstractmethod
    def store_message(self, msg: InboundMessage) -> SourceMessage:
        ...

    @abstractmethod
    def prune_messages(self, channel_id: int, keep: int) -> int:
        """Delete all but the newest `keep` messages. Returns rows deleted."""
        ...

    @abstractmethod
    def get_message_history(self, channel_id: int, limit: int) -> List[SourceMessage]:
        """Newest `limit` messages, returned oldest first."""
        ...

    # ── EVENTS ───────────────────────────────────────────────
    @abstractmethod
    def get_active_events(self, channel_id: int) -> List[CalendarEvent]:
        """Pending and synced events for the channel."""
        ...

    @abstractmethod
    def create_pending_event(self, event: CalendarEvent) -> CalendarEvent:
        ...

    @abstractmethod
    def update_pending_event(self, event: CalendarEvent) -> None:
        ...

    @abstractmethod
    def update_event_status(self, event_id: int, status: str) -> None:
        ...

    @abstractmethod
    def get_event_by_id(self, event_id: int) -> Optional[CalendarEvent]:
        ...

    @abstractmethod
    def get_event_by_external_id(self, user_id: int, external_id: str) -> Optional[CalendarEvent]:
        ...

    @abstractmethod
    def set_event_attendees(self, event_id: int, attendees: List[Attendee]) -> None:
        ...

    # ── REMINDERS ────────────────────────────────────────────
    @abstractmethod
    def get_active_reminders(self, channel_id: int) -> List[Reminder]:
        """Pending and confirmed reminders for the channel."""
        ...

    @abstractmethod
    def create_pending_reminder(self, reminder: Reminder) -> Reminder:
        ...

    @abstractmethod
    def update_pending_reminder(self, reminder: Reminder) -> None:
        ...

    @abstractmethod
    def update_reminder_status(self, reminder_id: int, status: str) -> None:
        ...

    @abstractmethod
    def get_reminder_by_id(self, reminder_id: int) -> Optional[Reminder]:
        ...

    # ── AUDIT ────────────────────────────────────────────────
    @abstractmethod
    def create_analysis_trace(self, trace: AnalysisTrace) -> AnalysisTrace:
        ...

    # ── USER SETTINGS ────────────────────────────────────────
    @abstractmethod
    def get_user_timezone(self, user_id: int) -> str:
        ...

    @abstractmethod
    def get_selected_calendar_id(self, user_id: int) -> str:
        ...
