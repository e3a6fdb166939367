"""
tests/test_sqlite_store.py
SQLiteStore against a temporary database file.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from agenda.errors import StoreError
from agenda.models.record import (
    AnalysisTrace, Attendee, CalendarEvent, InboundMessage, Reminder,
)
from agenda.store.sqlite_store import SQLiteStore

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def _make_store(tmp_path: Path):
    store   = SQLiteStore(tmp_path / 'agenda.db')
    user_id = store.create_user('me@example.com', timezone='Europe/London', selected_calendar_id='work')
    channel = store.create_channel(user_id, 'telegram', 'chat-42', 'Family')
    return store, user_id, channel


def _make_inbound(user_id: int, channel_id: int, text: str, minutes: int) -> InboundMessage:
    return InboundMessage(
        user_id     = user_id,
        source_type = 'telegram',
        channel_id  = channel_id,
        sender_id   = 'u1',
        sender_name = 'Alice',
        text        = text,
        timestamp   = T0 + timedelta(minutes=minutes),
    )


def _make_event(user_id: int, channel_id: int, **overrides) -> CalendarEvent:
    data = dict(
        user_id     = user_id,
        channel_id  = channel_id,
        title       = 'Dinner',
        description = 'Birthday',
        location    = "Luigi's",
        start_time  = datetime(2024, 1, 19, 19, 0, tzinfo=timezone(timedelta(hours=1))),
        end_time    = datetime(2024, 1, 19, 21, 0, tzinfo=timezone(timedelta(hours=1))),
        quality_flags = ['low_confidence'],
    )
    data.update(overrides)
    return CalendarEvent(**data)


class TestUsersAndChannels:

    def test_user_settings(self, tmp_path):
        store, user_id, _ = _make_store(tmp_path)
        assert store.get_user_timezone(user_id) == 'Europe/London'
        assert store.get_selected_calendar_id(user_id) == 'work'
        store.set_user_timezone(user_id, 'Asia/Tokyo')
        store.set_selected_calendar(user_id, 'home')
        assert store.get_user_timezone(user_id) == 'Asia/Tokyo'
        assert store.get_selected_calendar_id(user_id) == 'home'

    def test_unknown_user_has_empty_settings(self, tmp_path):
        store, _, _ = _make_store(tmp_path)
        assert store.get_user_timezone(999) == ''

    def test_get_or_create_channel_is_idempotent(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        again = store.get_or_create_channel(user_id, 'telegram', 'chat-42', 'Other name')
        assert again.id == channel.id
        assert again.name == 'Family'

    def test_disable_channel(self, tmp_path):
        store, _, channel = _make_store(tmp_path)
        store.set_channel_enabled(channel.id, False)
        assert store.get_channel(channel.id).enabled is False
        assert store.get_channel(999) is None


class TestMessages:

    def test_history_is_oldest_first(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        for i, text in enumerate(['one', 'two', 'three']):
            store.store_message(_make_inbound(user_id, channel.id, text, i))
        history = store.get_message_history(channel.id, 2)
        assert [m.text for m in history] == ['two', 'three']

    def test_timestamps_are_normalized_to_utc(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        msg = _make_inbound(user_id, channel.id, 'hi', 0)
        msg.timestamp = datetime(2024, 1, 15, 11, 0, tzinfo=timezone(timedelta(hours=2)))
        stored = store.store_message(msg)
        assert stored.timestamp == T0
        assert stored.timestamp.utcoffset() == timedelta(0)

    def test_prune_keeps_newest(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        for i in range(5):
            store.store_message(_make_inbound(user_id, channel.id, f"m{i}", i))
        assert store.prune_messages(channel.id, 3) == 2
        assert [m.text for m in store.get_message_history(channel.id, 10)] == ['m2', 'm3', 'm4']


class TestEvents:

    def test_round_trip(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        created = store.create_pending_event(_make_event(user_id, channel.id))
        fetched = store.get_event_by_id(created.id)
        assert fetched.status == 'pending'
        assert (fetched.title, fetched.description, fetched.location) == ('Dinner', 'Birthday', "Luigi's")
        assert fetched.start_time == datetime(2024, 1, 19, 18, 0, tzinfo=timezone.utc)
        assert fetched.start_time.utcoffset() == timedelta(hours=1)
        assert fetched.quality_flags == ['low_confidence']

    def test_active_events_exclude_rejected(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        keep = store.create_pending_event(_make_event(user_id, channel.id, title='Keep'))
        drop = store.create_pending_event(_make_event(user_id, channel.id, title='Drop'))
        store.update_event_status(drop.id, 'rejected')
        assert [e.id for e in store.get_active_events(channel.id)] == [keep.id]

    def test_update_pending_event(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        event = store.create_pending_event(_make_event(user_id, channel.id))
        event.location = 'Room 2'
        store.update_pending_event(event)
        assert store.get_event_by_id(event.id).location == 'Room 2'

    def test_update_non_pending_event_fails(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        event = store.create_pending_event(_make_event(user_id, channel.id))
        store.update_event_status(event.id, 'synced')
        with pytest.raises(StoreError, match='not pending'):
            store.update_pending_event(event)

    def test_external_id_lookup(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        event = store.create_pending_event(_make_event(user_id, channel.id, google_event_id='g-1'))
        assert store.get_event_by_external_id(user_id, 'g-1').id == event.id
        assert store.get_event_by_external_id(user_id, 'g-2') is None

    def test_attendees_replace(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        event = store.create_pending_event(_make_event(user_id, channel.id))
        store.set_event_attendees(event.id, [Attendee('Sam', 'sam@example.com', True)])
        store.set_event_attendees(event.id, [Attendee('Kim', 'kim@example.com')])
        assert store.get_event_by_id(event.id).attendees == [Attendee('Kim', 'kim@example.com', False)]

    def test_list_events_filters(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        a = store.create_pending_event(_make_event(user_id, channel.id, title='A'))
        b = store.create_pending_event(_make_event(user_id, channel.id, title='B'))
        store.update_event_status(a.id, 'rejected')
        assert [e.id for e in store.list_events()] == [b.id, a.id]
        assert [e.id for e in store.list_events(status='REJECTED')] == [a.id]


class TestReminders:

    def _reminder(self, user_id, channel_id, **overrides) -> Reminder:
        data = dict(
            user_id    = user_id,
            channel_id = channel_id,
            title      = 'Pay rent',
            due_date   = datetime(2024, 2, 1, 9, 0, tzinfo=timezone.utc),
            priority   = 'high',
        )
        data.update(overrides)
        return Reminder(**data)

    def test_round_trip_and_active(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        created = store.create_pending_reminder(self._reminder(user_id, channel.id))
        fetched = store.get_reminder_by_id(created.id)
        assert (fetched.title, fetched.priority, fetched.reminder_time) == ('Pay rent', 'high', None)
        assert [r.id for r in store.get_active_reminders(channel.id)] == [created.id]

        store.update_reminder_status(created.id, 'confirmed')
        assert [r.id for r in store.get_active_reminders(channel.id)] == [created.id]
        store.update_reminder_status(created.id, 'deleted')
        assert store.get_active_reminders(channel.id) == []

    def test_update_non_pending_reminder_fails(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        reminder = store.create_pending_reminder(self._reminder(user_id, channel.id))
        store.update_reminder_status(reminder.id, 'rejected')
        with pytest.raises(StoreError):
            store.update_pending_reminder(reminder)


class TestTracesAndEmailSources:

    def test_traces_in_insertion_order(self, tmp_path):
        store, user_id, channel = _make_store(tmp_path)
        for status in ('routed', 'persisted'):
            store.create_analysis_trace(AnalysisTrace(
                user_id     = user_id,
                channel_id  = channel.id,
                source_type = 'telegram',
                intent      = 'event',
                status      = status,
                details     = {'error': 'x'} if status == 'routed' else {},
            ))
        traces = store.list_traces(channel_id=channel.id)
        assert [t.status for t in traces] == ['routed', 'persisted']
        assert traces[0].details == {'error': 'x'}
        assert [t.status for t in store.list_traces(status='persisted')] == ['persisted']

    def test_email_source(self, tmp_path):
        store, user_id, _ = _make_store(tmp_path)
        source = store.create_email_source(user_id, 'sender', 'boss@example.com', 'Boss', 'work')
        assert store.get_email_source(source.id) == source
        assert store.get_email_source(999) is None


class TestConnectionErrors:

    def test_unopenable_path_raises_store_error(self, tmp_path):
        with pytest.raises(StoreError):
            SQLiteStore(tmp_path / 'missing-dir' / 'agenda.db')

    def test_locked_pragma_raises_store_error(self, tmp_path):
        store, user_id, _ = _make_store(tmp_path)
        conn = MagicMock()
        conn.execute.side_effect = sqlite3.OperationalError('database is locked')
        with patch('agenda.store.sqlite_store.sqlite3.connect', return_value=conn):
            with pytest.raises(StoreError, match='database is locked'):
                store.get_user_timezone(user_id)
        conn.close.assert_called_once()
