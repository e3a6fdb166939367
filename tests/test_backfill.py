"""
tests/test_backfill.py
BackfillProcessor: sequential reprocessing with a growing context window.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from agenda.analyzers.schemas import EventAnalysis, ReminderAnalysis, ReminderData
from agenda.errors import StoreError
from agenda.intents.module import EventModule, ReminderModule
from agenda.intents.registry import Registry
from agenda.intents.router import KeywordRouter
from agenda.models.record import InboundMessage
from agenda.processor.backfill import BackfillProcessor
from agenda.processor.event_creator import EventCreator
from agenda.processor.pipeline import IntentPipeline
from agenda.processor.reminder_creator import ReminderCreator
from agenda.store.sqlite_store import SQLiteStore

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def _make_backfill(tmp_path: Path, history_size: int = 2):
    store   = SQLiteStore(tmp_path / 'agenda.db')
    user_id = store.create_user('me@example.com', timezone='UTC')
    channel = store.create_channel(user_id, 'telegram', 'chat-1', 'Chat')

    event_analyzer = MagicMock()
    event_analyzer.analyze_messages.return_value = EventAnalysis(action='none', confidence=0.9)

    reminder_analyzer = MagicMock()
    reminder_analyzer.analyze_messages.return_value = ReminderAnalysis(
        has_reminder = True,
        action       = 'create',
        reminder     = ReminderData(title='Pack bags', due_date='2024-01-20'),
        confidence   = 0.9,
    )

    registry = Registry()
    registry.register(EventModule(event_analyzer))
    registry.register(ReminderModule(reminder_analyzer))
    pipeline = IntentPipeline(registry, store, EventCreator(store), ReminderCreator(store))

    backfill = BackfillProcessor(store, pipeline, KeywordRouter(), history_size)
    return backfill, store, user_id, channel, reminder_analyzer


def _store_messages(store, user_id, channel_id, texts):
    return [
        store.store_message(InboundMessage(
            user_id     = user_id,
            source_type = 'telegram',
            channel_id  = channel_id,
            sender_id   = 'u1',
            sender_name = 'Alice',
            text        = text,
            timestamp   = T0 + timedelta(minutes=i),
        ))
        for i, text in enumerate(texts)
    ]


class TestBackfill:

    def test_window_grows_in_order(self, tmp_path):
        backfill, store, user_id, channel, reminder_analyzer = _make_backfill(tmp_path, history_size=2)
        messages = _store_messages(store, user_id, channel.id, ['a', 'b', 'c'])

        backfill.process_messages(user_id, channel.id, 'telegram', messages)

        windows = [[m.text for m in c[0][0]] for c in reminder_analyzer.analyze_messages.call_args_list]
        triggers = [c[0][1].text for c in reminder_analyzer.analyze_messages.call_args_list]
        assert windows == [['a'], ['a', 'b'], ['b', 'c']]
        assert triggers == ['a', 'b', 'c']

    def test_active_items_are_reread_each_step(self, tmp_path):
        backfill, store, user_id, channel, reminder_analyzer = _make_backfill(tmp_path)
        messages = _store_messages(store, user_id, channel.id, ['a', 'b'])

        backfill.process_messages(user_id, channel.id, 'telegram', messages)

        seen = [len(c[0][2]) for c in reminder_analyzer.analyze_messages.call_args_list]
        assert seen == [0, 1]

    def test_summary_counts_module_outcomes(self, tmp_path):
        backfill, store, user_id, channel, _ = _make_backfill(tmp_path)
        messages = _store_messages(store, user_id, channel.id, ['a', 'b'])

        summary = backfill.process_messages(user_id, channel.id, 'telegram', messages)

        assert summary == {'persisted': 4}
        assert [t.status for t in store.list_traces()].count('routed') == 2

    def test_backfill_channel_reads_stored_history(self, tmp_path):
        backfill, store, user_id, channel, reminder_analyzer = _make_backfill(tmp_path, history_size=5)
        _store_messages(store, user_id, channel.id, ['a', 'b', 'c'])

        backfill.backfill_channel(channel.id)

        assert [c[0][1].text for c in reminder_analyzer.analyze_messages.call_args_list] == ['a', 'b', 'c']

    def test_missing_channel(self, tmp_path):
        backfill, *_ = _make_backfill(tmp_path)
        with pytest.raises(StoreError):
            backfill.backfill_channel(999)

    def test_disabled_channel(self, tmp_path):
        backfill, store, user_id, channel, reminder_analyzer = _make_backfill(tmp_path)
        messages = _store_messages(store, user_id, channel.id, ['a'])
        store.set_channel_enabled(channel.id, False)

        assert backfill.process_messages(user_id, channel.id, 'telegram', messages) == {}
        reminder_analyzer.analyze_messages.assert_not_called()

    def test_empty_input(self, tmp_path):
        backfill, _, user_id, channel, _ = _make_backfill(tmp_path)
        assert backfill.process_messages(user_id, channel.id, 'telegram', []) == {}
