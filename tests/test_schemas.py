"""
tests/test_schemas.py
Strict decoding of analyzer JSON into pydantic models.
"""

import json

import pytest

from agenda.analyzers.schemas import (
    EventAnalysis, EventData, ReminderAnalysis, decode_analysis,
)
from agenda.errors import AnalysisDecodeError, LLMError


def _event_json(**overrides) -> str:
    data = {
        'has_event':  True,
        'action':     'create',
        'event': {
            'title':      'Dinner with Sam',
            'start_time': '2024-01-19T19:00:00',
            'location':   "Luigi's",
            'attendees':  [{'name': 'Sam', 'email': 'sam@example.com', 'role': 'optional'}],
        },
        'reasoning':  'Concrete plan for Friday.',
        'confidence': 0.9,
    }
    data.update(overrides)
    return json.dumps(data)


class TestEventAnalysisDecode:

    def test_valid_payload(self):
        analysis = decode_analysis(EventAnalysis, _event_json())
        assert analysis.has_event is True
        assert analysis.action == 'create'
        assert analysis.event.title == 'Dinner with Sam'
        assert analysis.event.attendees[0].role == 'optional'
        assert analysis.confidence == pytest.approx(0.9)

    def test_integer_confidence_is_accepted(self):
        analysis = decode_analysis(EventAnalysis, _event_json(confidence=1))
        assert analysis.confidence == 1.0

    def test_action_is_normalized(self):
        analysis = decode_analysis(EventAnalysis, _event_json(action='  UPDATE '))
        assert analysis.action == 'update'

    def test_null_action_becomes_none(self):
        analysis = decode_analysis(EventAnalysis, _event_json(action=None))
        assert analysis.action == 'none'

    def test_nulls_become_defaults(self):
        payload = json.dumps({
            'has_event':  True,
            'action':     'update',
            'event':      {'title': None, 'event_id': None, 'attendees': None, 'location': 'Room 2'},
            'reasoning':  None,
            'confidence': 0.7,
        })
        analysis = decode_analysis(EventAnalysis, payload)
        assert analysis.event.title == ''
        assert analysis.event.event_id is None
        assert analysis.event.attendees == []
        assert analysis.reasoning == ''

    def test_missing_fields_take_defaults(self):
        analysis = decode_analysis(EventAnalysis, '{}')
        assert analysis.has_event is False
        assert analysis.action == 'none'
        assert analysis.event is None
        assert analysis.confidence == 0.0

    def test_unknown_fields_are_ignored(self):
        analysis = decode_analysis(EventAnalysis, _event_json(mood='cheerful'))
        assert analysis.action == 'create'

    @pytest.mark.parametrize('field,value', [
        ('has_event', 'yes'),
        ('confidence', 'high'),
        ('action', 5),
        ('event', 'tomorrow at 7'),
    ])
    def test_wrong_types_are_rejected(self, field, value):
        with pytest.raises(AnalysisDecodeError):
            decode_analysis(EventAnalysis, _event_json(**{field: value}))

    def test_string_event_id_is_rejected(self):
        payload = _event_json(action='update', event={'event_id': '12', 'location': 'x'})
        with pytest.raises(AnalysisDecodeError, match='event_id'):
            decode_analysis(EventAnalysis, payload)

    def test_decode_error_is_an_llm_error(self):
        assert issubclass(AnalysisDecodeError, LLMError)


class TestEventData:

    def test_has_reference(self):
        assert EventData(event_id=3).has_reference()
        assert EventData(external_event_id='g-1').has_reference()
        assert not EventData(external_event_id='  ').has_reference()

    def test_has_patch_fields(self):
        assert EventData(location='Room 1').has_patch_fields()
        assert not EventData(event_id=3).has_patch_fields()


class TestReminderAnalysisDecode:

    def test_valid_payload(self):
        payload = json.dumps({
            'has_reminder': True,
            'action':       'Create',
            'reminder':     {'title': 'Pay rent', 'due_date': '2024-02-01', 'priority': 'high'},
            'reasoning':    'Explicit request.',
            'confidence':   0.85,
        })
        analysis = decode_analysis(ReminderAnalysis, payload)
        assert analysis.has_item is True
        assert analysis.action == 'create'
        assert analysis.payload.title == 'Pay rent'
        assert analysis.reminder.reminder_id is None

    def test_wrong_type_reminder_id(self):
        payload = json.dumps({'has_reminder': True, 'action': 'delete',
                              'reminder': {'reminder_id': 'four'}})
        with pytest.raises(AnalysisDecodeError):
            decode_analysis(ReminderAnalysis, payload)
