"""
tests/test_router_registry.py
Keyword router and intent registry.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from agenda.intents.module import EmailInput, MessageInput
from agenda.intents.registry import Registry, build_registry
from agenda.intents.router import INTENT_MULTI, INTENT_NONE, KeywordRouter
from agenda.models.record import EmailContent, SourceMessage


def _make_message(text: str, msg_id: int = 1) -> SourceMessage:
    return SourceMessage(
        id          = msg_id,
        user_id     = 1,
        source_type = 'telegram',
        channel_id  = 1,
        sender_id   = 'u1',
        sender_name = 'Alice',
        text        = text,
        timestamp   = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc),
    )


def _make_module(name: str):
    module = MagicMock()
    module.intent_name = name
    return module


class TestKeywordRouter:

    def test_event_cue(self):
        routed = KeywordRouter().route_text('Can we move the meeting to 3pm?')
        assert routed.intent == 'event'
        assert routed.confidence == 0.75

    def test_reminder_cue(self):
        routed = KeywordRouter().route_text("Don't forget the passport")
        assert routed.intent == 'reminder'

    def test_both_cues(self):
        routed = KeywordRouter().route_text('Remind me about the dinner on Friday')
        assert routed.intent == INTENT_MULTI
        assert routed.confidence == 0.6

    def test_no_cues(self):
        routed = KeywordRouter().route_text('haha nice')
        assert (routed.intent, routed.confidence) == (INTENT_NONE, 0.8)

    def test_empty_text(self):
        routed = KeywordRouter().route_text('   ')
        assert (routed.intent, routed.confidence, routed.reasoning) == (INTENT_NONE, 1.0, 'empty input')

    def test_messages_route_on_trigger_only(self):
        history = [_make_message('lunch tomorrow?', 1)]
        inp = MessageInput(history=history, new_message=_make_message('ok cool', 2))
        assert KeywordRouter().route_messages(inp).intent == INTENT_NONE

    def test_email_routes_on_subject_and_body(self):
        email = EmailContent(subject='Interview invitation', sender='hr@example.com', body='Details inside')
        assert KeywordRouter().route_email(EmailInput(email=email)).intent == 'event'

    def test_custom_cue_map(self):
        router = KeywordRouter({'task': ['ticket']})
        assert router.route_text('new ticket filed').intent == 'task'


class TestRegistry:

    def test_register_and_get(self):
        registry = Registry()
        module   = _make_module('event')
        registry.register(module)
        assert registry.get('event') is module
        assert registry.get('reminder') is None
        assert 'event' in registry
        assert len(registry) == 1

    def test_list_preserves_registration_order(self):
        registry = Registry()
        for name in ('reminder', 'event', 'task'):
            registry.register(_make_module(name))
        assert registry.list() == ['reminder', 'event', 'task']

    def test_duplicate_is_rejected(self):
        registry = Registry()
        registry.register(_make_module('event'))
        with pytest.raises(ValueError, match='already registered'):
            registry.register(_make_module('event'))

    def test_none_and_empty_names_are_rejected(self):
        registry = Registry()
        with pytest.raises(ValueError):
            registry.register(None)
        with pytest.raises(ValueError):
            registry.register(_make_module('  '))


class TestBuildRegistry:

    def _analyzer(self, configured: bool):
        analyzer = MagicMock()
        analyzer.is_configured.return_value = configured
        return analyzer

    def test_registers_configured_analyzers_in_order(self):
        registry = build_registry(self._analyzer(True), self._analyzer(True))
        assert registry.list() == ['event', 'reminder']

    def test_skips_unconfigured(self):
        registry = build_registry(self._analyzer(True), self._analyzer(False))
        assert registry.list() == ['event']

    def test_no_analyzers(self):
        assert build_registry().list() == []
