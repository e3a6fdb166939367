"""
agenda/intents/registry.py
Name -> IntentModule lookup, populated once at startup with the
modules whose analyzer is configured.
"""

import logging
import threading
from typing import Dict, List, Optional

from agenda.analyzers.event_analyzer import EventAnalyzer
from agenda.analyzers.reminder_analyzer import ReminderAnalyzer
from agenda.intents.module import EventModule, IntentModule, ReminderModule

logger = logging.getLogger(__name__)


class Registry:
    """Registration-ordered module collection. list() preserves that order."""

    def __init__(self):
        self._lock    = threading.RLock()
        self._modules: Dict[str, IntentModule] = {}

    def register(self, module: IntentModule) -> None:
        if module is None:
            raise ValueError("intent module is None")
        name = (module.intent_name or '').strip()
        if not name:
            raise ValueError("intent module name is empty")
        with self._lock:
            if name in self._modules:
                raise ValueError(f"intent module already registered: {name}")
            self._modules[name] = module

    def get(self, name: str) -> Optional[IntentModule]:
        with self._lock:
            return self._modules.get(name)

    def list(self) -> List[str]:
        with self._lock:
            return list(self._modules)

    def __len__(self) -> int:
        with self._lock:
            return len(self._modules)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._modules


def build_registry(
    event_analyzer:    Optional[EventAnalyzer]    = None,
    reminder_analyzer: Optional[ReminderAnalyzer] = None,
) -> Registry:
    """Register event then reminder, skipping analyzers that are not configured."""
    registry = Registry()
    if event_analyzer is not None and event_analyzer.is_configured():
        registry.register(EventModule(event_analyzer))
    elif event_analyzer is not None:
        logger.warning("Event analyzer not configured. Event detection disabled.")

    if reminder_analyzer is not None and reminder_analyzer.is_configured():
        registry.register(ReminderModule(reminder_analyzer))
    elif reminder_analyzer is not None:
        logger.warning("Reminder analyzer not configured. Reminder detection disabled.")

    logger.info(f"Intent registry: {registry.list() or 'empty'}")
    return registry
