"""
agenda/intents/router.py
Cheap advisory routing. The router only reorders which modules run
first; it never stops a registered module from running.
Pure Python, no LLM call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List

from agenda.intents.module import (
    INTENT_EVENT, INTENT_REMINDER, EmailInput, MessageInput,
)

INTENT_NONE  = 'none'
INTENT_MULTI = 'both'      # more than one kind matched

# ── CUE DICTIONARIES ─────────────────────────────────────────
# Extend these freely. Keys must be registered intent names.

CUE_MAP: Dict[str, List[str]] = {

    INTENT_EVENT: [
        'meeting', 'call', 'appointment', 'schedule', 'reschedule',
        'cancel', 'lunch', 'dinner', 'interview', 'calendar',
    ],

    INTENT_REMINDER: [
        'remind me', "don't forget", 'dont forget', 'todo', 'to do',
        'need to', 'must', 'remember to', 'task',
    ],
}


@dataclass
class RoutedIntent:
    intent:     str
    confidence: float
    reasoning:  str


class Router(ABC):

    @abstractmethod
    def route_messages(self, inp: MessageInput) -> RoutedIntent:
        ...

    @abstractmethod
    def route_email(self, inp: EmailInput) -> RoutedIntent:
        ...


class KeywordRouter(Router):
    """Substring cue matching on the trigger text only (history is ignored)."""

    def __init__(self, cue_map: Dict[str, List[str]] = None):
        self.cue_map = cue_map or CUE_MAP

    def route_messages(self, inp: MessageInput) -> RoutedIntent:
        text = inp.new_message.text if inp.new_message else ''
        return self.route_text(text)

    def route_email(self, inp: EmailInput) -> RoutedIntent:
        email = inp.email
        return self.route_text(f"{email.subject}\n{email.body}")

    def route_text(self, text: str) -> RoutedIntent:
        lowered = (text or '').strip().lower()
        if not lowered:
            return RoutedIntent(INTENT_NONE, 1.0, 'empty input')

        matched = [
            intent for intent, cues in self.cue_map.items()
            if any(cue in lowered for cue in cues)
        ]

        if len(matched) > 1:
            return RoutedIntent(INTENT_MULTI, 0.6, 'contains event and reminder cues')
        if len(matched) == 1:
            return RoutedIntent(matched[0], 0.75, f"contains {matched[0]} cues")
        return RoutedIntent(INTENT_NONE, 0.8, 'no strong event/reminder cues')
