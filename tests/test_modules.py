"""
tests/test_modules.py
IntentModule contract: output adaptation, per-action validation, persist hand-off.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from agenda.analyzers.schemas import (
    EventAnalysis, EventData, ReminderAnalysis, ReminderData,
)
from agenda.errors import ModuleValidationError
from agenda.intents.module import (
    EmailInput, EventModule, MessageInput, ModuleOutput, ReminderModule,
)
from agenda.models.record import EmailContent, SourceMessage


def _make_event_output(action: str = 'create', has_event: bool = True, **event) -> ModuleOutput:
    analysis = EventAnalysis(
        has_event  = has_event,
        action     = action,
        event      = EventData(**event) if event else None,
        reasoning  = 'because',
        confidence = 0.9,
    )
    return ModuleOutput('event', analysis.action, analysis.confidence, analysis.reasoning, analysis)


def _make_reminder_output(action: str = 'create', **reminder) -> ModuleOutput:
    analysis = ReminderAnalysis(
        has_reminder = True,
        action       = action,
        reminder     = ReminderData(**reminder) if reminder else None,
        confidence   = 0.8,
    )
    return ModuleOutput('reminder', analysis.action, analysis.confidence, analysis.reasoning, analysis)


def _make_input() -> MessageInput:
    msg = SourceMessage(1, 1, 'telegram', 1, 'u1', 'Alice', 'hi',
                        datetime(2024, 1, 15, tzinfo=timezone.utc))
    return MessageInput(
        history            = [msg],
        new_message        = msg,
        existing_events    = ['event-sentinel'],
        existing_reminders = ['reminder-sentinel'],
    )


class TestEventModuleValidate:

    def setup_method(self):
        self.module = EventModule(MagicMock())

    def test_valid_create(self):
        self.module.validate(_make_event_output(title='Dinner', start_time='2024-01-19T19:00:00'))

    def test_create_without_title(self):
        with pytest.raises(ModuleValidationError, match='title'):
            self.module.validate(_make_event_output(start_time='2024-01-19T19:00:00'))

    def test_create_without_start(self):
        with pytest.raises(ModuleValidationError, match='start_time'):
            self.module.validate(_make_event_output(title='Dinner'))

    def test_create_without_payload(self):
        with pytest.raises(ModuleValidationError, match='payload'):
            self.module.validate(_make_event_output())

    @pytest.mark.parametrize('action', ['update', 'delete'])
    def test_update_delete_need_reference(self, action):
        with pytest.raises(ModuleValidationError, match='event_id or external_event_id'):
            self.module.validate(_make_event_output(action, location='Room 2'))

    def test_external_reference_is_enough(self):
        self.module.validate(_make_event_output('delete', external_event_id='g-1'))

    def test_none_action_is_valid(self):
        self.module.validate(_make_event_output('none', has_event=False))

    def test_has_event_false_is_not_checked(self):
        self.module.validate(_make_event_output('create', has_event=False))

    def test_unknown_action(self):
        with pytest.raises(ModuleValidationError, match='unknown event action: archive'):
            self.module.validate(_make_event_output('archive', title='x'))

    def test_missing_output(self):
        with pytest.raises(ModuleValidationError):
            self.module.validate(None)


class TestReminderModuleValidate:

    def setup_method(self):
        self.module = ReminderModule(MagicMock())

    def test_valid_create(self):
        self.module.validate(_make_reminder_output(title='Pay rent', due_date='2024-02-01'))

    def test_create_without_due_date(self):
        with pytest.raises(ModuleValidationError, match='due_date'):
            self.module.validate(_make_reminder_output(title='Pay rent'))

    def test_update_needs_reminder_id(self):
        with pytest.raises(ModuleValidationError, match='reminder_id'):
            self.module.validate(_make_reminder_output('update', title='Pay rent'))

    def test_delete_with_id(self):
        self.module.validate(_make_reminder_output('delete', reminder_id=4))


class TestAnalyzeAndPersist:

    def test_event_module_passes_existing_events(self):
        analyzer = MagicMock()
        analyzer.analyze_messages.return_value = _make_event_output(
            title='Dinner', start_time='2024-01-19T19:00:00'
        ).analysis
        inp = _make_input()

        output = EventModule(analyzer).analyze_messages(inp)

        analyzer.analyze_messages.assert_called_once_with(inp.history, inp.new_message, ['event-sentinel'])
        assert (output.intent, output.action, output.confidence) == ('event', 'create', 0.9)

    def test_reminder_module_passes_existing_reminders(self):
        analyzer = MagicMock()
        analyzer.analyze_email.return_value = _make_reminder_output(title='x', due_date='2024-02-01').analysis
        email = EmailContent(subject='s', sender='a@b.c', body='b')

        output = ReminderModule(analyzer).analyze_email(
            EmailInput(email=email, existing_reminders=['reminder-sentinel'])
        )

        analyzer.analyze_email.assert_called_once_with(email, ['reminder-sentinel'])
        assert output.intent == 'reminder'

    def test_persist_calls_back_for_actionable_output(self):
        persister = MagicMock()
        output    = _make_event_output(title='Dinner', start_time='2024-01-19T19:00:00')
        EventModule(MagicMock()).persist(output, persister)
        persister.persist_event.assert_called_once_with(output.analysis)
        persister.persist_reminder.assert_not_called()

    def test_persist_skips_none_action(self):
        persister = MagicMock()
        EventModule(MagicMock()).persist(_make_event_output('none', has_event=False), persister)
        persister.persist_event.assert_not_called()

    def test_reminder_persist(self):
        persister = MagicMock()
        output    = _make_reminder_output(title='x', due_date='2024-02-01')
        ReminderModule(MagicMock()).persist(output, persister)
        persister.persist_reminder.assert_called_once_with(output.analysis)
