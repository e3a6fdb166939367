"""
agenda/intents/module.py
The IntentModule contract every orchestrator runs, and the two
modules that implement it (event, reminder).

A module wraps one analyzer: it adapts the analyzer's decoded output
into ModuleOutput, checks the per-action field contract, and hands
persistence back to the orchestrator through a Persister callback so
it never touches storage itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Union

from agenda.analyzers.event_analyzer import EventAnalyzer
from agenda.analyzers.reminder_analyzer import ReminderAnalyzer
from agenda.analyzers.schemas import (
    EventAnalysis, EventData, ReminderAnalysis, ReminderData,
)
from agenda.errors import ModuleValidationError
from agenda.models.record import (
    ACTION_CREATE, ACTION_DELETE, ACTION_NONE, ACTION_UPDATE,
    CalendarEvent, EmailContent, Reminder, SourceMessage,
)

INTENT_EVENT    = 'event'
INTENT_REMINDER = 'reminder'


@dataclass
class MessageInput:
    """Context window for one chat message. Shared read-only by all modules."""
    history:            List[SourceMessage]
    new_message:        SourceMessage
    existing_events:    List[CalendarEvent] = field(default_factory=list)
    existing_reminders: List[Reminder]      = field(default_factory=list)


@dataclass
class EmailInput:
    email:              EmailContent
    existing_events:    List[CalendarEvent] = field(default_factory=list)
    existing_reminders: List[Reminder]      = field(default_factory=list)


@dataclass
class ModuleOutput:
    """Normalized result of one module run, whatever the analyzer returned."""
    intent:     str
    action:     str                 # create / update / delete / none
    confidence: float
    reasoning:  str
    analysis:   Union[EventAnalysis, ReminderAnalysis]

    @property
    def has_item(self) -> bool:
        return self.analysis.has_item

    @property
    def payload(self) -> Optional[Union[EventData, ReminderData]]:
        return self.analysis.payload


class Persister(ABC):
    """Orchestrator-side persistence callback handed to IntentModule.persist()."""

    @abstractmethod
    def persist_event(self, analysis: EventAnalysis) -> None:
        ...

    @abstractmethod
    def persist_reminder(self, analysis: ReminderAnalysis) -> None:
        ...


class IntentModule(ABC):

    @property
    @abstractmethod
    def intent_name(self) -> str:
        """Stable registry key."""
        ...

    @abstractmethod
    def analyze_messages(self, inp: MessageInput) -> Optional[ModuleOutput]:
        ...

    @abstractmethod
    def analyze_email(self, inp: EmailInput) -> Optional[ModuleOutput]:
        ...

    @abstractmethod
    def validate(self, output: ModuleOutput) -> None:
        """Raise ModuleValidationError if output breaks its action's contract."""
        ...

    @abstractmethod
    def persist(self, output: ModuleOutput, persister: Persister) -> None:
        ...


def _to_output(intent: str, analysis) -> ModuleOutput:
    return ModuleOutput(
        intent     = intent,
        action     = analysis.action,
        confidence = analysis.confidence,
        reasoning  = analysis.reasoning,
        analysis   = analysis,
    )


def _is_actionable(output: ModuleOutput) -> bool:
    return output.action != ACTION_NONE and output.has_item


# ── EVENT ────────────────────────────────────────────────────

class EventModule(IntentModule):

    def __init__(self, analyzer: EventAnalyzer):
        self.analyzer = analyzer

    @property
    def intent_name(self) -> str:
        return INTENT_EVENT

    def analyze_messages(self, inp: MessageInput) -> Optional[ModuleOutput]:
        analysis = self.analyzer.analyze_messages(
            inp.history, inp.new_message, inp.existing_events
        )
        return _to_output(INTENT_EVENT, analysis) if analysis is not None else None

    def analyze_email(self, inp: EmailInput) -> Optional[ModuleOutput]:
        analysis = self.analyzer.analyze_email(inp.email, inp.existing_events)
        return _to_output(INTENT_EVENT, analysis) if analysis is not None else None

    def validate(self, output: ModuleOutput) -> None:
        if output is None:
            raise ModuleValidationError("event output is missing")
        if not _is_actionable(output):
            return

        event = output.payload
        if event is None:
            raise ModuleValidationError(f"event payload is required for {output.action}")

        if output.action == ACTION_CREATE:
            if not event.title.strip():
                raise ModuleValidationError("create event requires title")
            if not event.start_time.strip():
                raise ModuleValidationError("create event requires start_time")
        elif output.action in (ACTION_UPDATE, ACTION_DELETE):
            if not event.has_reference():
                raise ModuleValidationError(
                    f"{output.action} event requires event_id or external_event_id"
                )
        else:
            raise ModuleValidationError(f"unknown event action: {output.action}")

    def persist(self, output: ModuleOutput, persister: Persister) -> None:
        if not _is_actionable(output):
            return
        persister.persist_event(output.analysis)


# ── REMINDER ─────────────────────────────────────────────────

class ReminderModule(IntentModule):

    def __init__(self, analyzer: ReminderAnalyzer):
        self.analyzer = analyzer

    @property
    def intent_name(self) -> str:
        return INTENT_REMINDER

    def analyze_messages(self, inp: MessageInput) -> Optional[ModuleOutput]:
        analysis = self.analyzer.analyze_messages(
            inp.history, inp.new_message, inp.existing_reminders
        )
        return _to_output(INTENT_REMINDER, analysis) if analysis is not None else None

    def analyze_email(self, inp: EmailInput) -> Optional[ModuleOutput]:
        analysis = self.analyzer.analyze_email(inp.email, inp.existing_reminders)
        return _to_output(INTENT_REMINDER, analysis) if analysis is not None else None

    def validate(self, output: ModuleOutput) -> None:
        if output is None:
            raise ModuleValidationError("reminder output is missing")
        if not _is_actionable(output):
            return

        reminder = output.payload
        if reminder is None:
            raise ModuleValidationError(f"reminder payload is required for {output.action}")

        if output.action == ACTION_CREATE:
            if not reminder.title.strip():
                raise ModuleValidationError("create reminder requires title")
            if not reminder.due_date.strip():
                raise ModuleValidationError("create reminder requires due_date")
        elif output.action in (ACTION_UPDATE, ACTION_DELETE):
            if not reminder.reminder_id:
                raise ModuleValidationError(f"{output.action} reminder requires reminder_id")
        else:
            raise ModuleValidationError(f"unknown reminder action: {output.action}")

    def persist(self, output: ModuleOutput, persister: Persister) -> None:
        if not _is_actionable(output):
            return
        persister.persist_reminder(output.analysis)
