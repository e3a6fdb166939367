"""
agenda/intents: the IntentModule contract, registry, and router.
"""

from agenda.intents.module import (
    EmailInput,
    EventModule,
    IntentModule,
    MessageInput,
    ModuleOutput,
    Persister,
    ReminderModule,
)
from agenda.intents.registry import Registry, build_registry
from agenda.intents.router import KeywordRouter, RoutedIntent, Router

__all__ = [
    "EmailInput",
    "EventModule",
    "IntentModule",
    "MessageInput",
    "ModuleOutput",
    "Persister",
    "ReminderModule",
    "Registry",
    "build_registry",
    "KeywordRouter",
    "RoutedIntent",
    "Router",
]
