"""
tests/test_execution_order.py
Run-order resolution from a routed intent and the registered module names.
"""

from unittest.mock import MagicMock

import pytest

from agenda.intents.registry import Registry
from agenda.intents.router import INTENT_MULTI, INTENT_NONE, RoutedIntent
from agenda.processor.execution_order import resolve_execution_order


def _make_registry(*names) -> Registry:
    registry = Registry()
    for name in names:
        module = MagicMock()
        module.intent_name = name
        registry.register(module)
    return registry


def _routed(intent: str) -> RoutedIntent:
    return RoutedIntent(intent=intent, confidence=0.7, reasoning='test')


class TestResolveExecutionOrder:

    @pytest.mark.parametrize('intent', ['', INTENT_NONE, INTENT_MULTI])
    def test_unspecific_intent_runs_everything_in_registration_order(self, intent):
        registry = _make_registry('event', 'reminder')
        assert resolve_execution_order(registry, _routed(intent)) == (['event', 'reminder'], False)

    def test_registered_intent_runs_first_then_the_rest(self):
        registry = _make_registry('event', 'reminder')
        assert resolve_execution_order(registry, _routed('reminder')) == (['reminder', 'event'], False)

    def test_first_registered_intent_keeps_order(self):
        registry = _make_registry('event', 'reminder')
        assert resolve_execution_order(registry, _routed('event')) == (['event', 'reminder'], False)

    def test_unregistered_intent_is_a_hard_stop(self):
        registry = _make_registry('event', 'reminder')
        assert resolve_execution_order(registry, _routed('task')) == (['task'], True)

    def test_registration_order_is_not_alphabetical(self):
        registry = _make_registry('reminder', 'event')
        assert resolve_execution_order(registry, _routed('')) == (['reminder', 'event'], False)

    def test_empty_registry_runs_nothing(self):
        assert resolve_execution_order(Registry(), _routed('event')) == ([], False)

    def test_whitespace_intent_counts_as_empty(self):
        registry = _make_registry('event', 'reminder')
        assert resolve_execution_order(registry, _routed('  ')) == (['event', 'reminder'], False)
