"""
agenda/processor: execution-order resolver, reconcilers, and the three
orchestrators (live, backfill, email).
"""

from agenda.processor.backfill import BackfillProcessor
from agenda.processor.email_processor import EmailProcessor
from agenda.processor.event_creator import EventCreationParams, EventCreator
from agenda.processor.execution_order import resolve_execution_order
from agenda.processor.pipeline import IntentPipeline, Trigger
from agenda.processor.processor import Processor
from agenda.processor.reminder_creator import ReminderCreationParams, ReminderCreator

__all__ = [
    "BackfillProcessor",
    "EmailProcessor",
    "EventCreationParams",
    "EventCreator",
    "resolve_execution_order",
    "IntentPipeline",
    "Trigger",
    "Processor",
    "ReminderCreationParams",
    "ReminderCreator",
]
