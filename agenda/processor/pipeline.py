"""
agenda/processor/pipeline.py
The per-module decision sequence shared by the live, backfill, and
email orchestrators:

  routed -> per module: analyze -> validate -> confidence gate -> persist

Every terminal state writes exactly one AnalysisTrace row:
  persisted / persist_error / validation_failed /
  skipped_low_confidence / unknown_intent
Analyzer failures are logged and the intent is abandoned for that trigger.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from agenda.analyzers.schemas import EventAnalysis, ReminderAnalysis
from agenda.errors import AgendaError, ModuleValidationError
from agenda.intents.module import IntentModule, ModuleOutput, Persister
from agenda.intents.registry import Registry
from agenda.intents.router import RoutedIntent
from agenda.models.record import (
    TRACE_PERSIST_ERROR, TRACE_PERSISTED, TRACE_ROUTED,
    TRACE_SKIPPED_LOW_CONFIDENCE, TRACE_UNKNOWN_INTENT, TRACE_VALIDATION_FAILED,
    AnalysisTrace, Channel,
)
from agenda.processor.event_creator import EventCreationParams, EventCreator
from agenda.processor.reminder_creator import ReminderCreationParams, ReminderCreator
from agenda.store.base import Store

logger = logging.getLogger(__name__)

DEFAULT_MIN_PERSIST_CONFIDENCE = 0.30
TRACE_REASONING_LIMIT          = 500


def truncate(s: str, n: int) -> str:
    if len(s) <= n:
        return s
    return s[:n] + '...'


@dataclass
class Trigger:
    """What one pipeline pass is about: who, where, and which message."""
    user_id:            int
    channel:            Channel
    source_type:        str
    routed:             RoutedIntent
    trigger_message_id: Optional[int] = None
    email_source_id:    Optional[int] = None
    item_source:        str           = ''       # stamped on persisted items


class ChannelPersister(Persister):
    """Routes a module's persist() call to the right reconciler for one trigger."""

    def __init__(
        self,
        trigger:          Trigger,
        event_creator:    EventCreator,
        reminder_creator: ReminderCreator,
    ):
        self.trigger          = trigger
        self.event_creator    = event_creator
        self.reminder_creator = reminder_creator

    def persist_event(self, analysis: EventAnalysis) -> None:
        t = self.trigger
        self.event_creator.create_from_analysis(EventCreationParams(
            user_id           = t.user_id,
            channel_id        = t.channel.id,
            analysis          = analysis,
            source            = t.item_source or t.source_type,
            origin_message_id = t.trigger_message_id,
            email_source_id   = t.email_source_id,
            calendar_id       = t.channel.calendar_id,
        ))

    def persist_reminder(self, analysis: ReminderAnalysis) -> None:
        t = self.trigger
        self.reminder_creator.create_from_analysis(ReminderCreationParams(
            user_id           = t.user_id,
            channel_id        = t.channel.id,
            analysis          = analysis,
            source            = t.item_source or t.source_type,
            origin_message_id = t.trigger_message_id,
            email_source_id   = t.email_source_id,
        ))


class IntentPipeline:

    def __init__(
        self,
        registry:         Registry,
        store:            Store,
        event_creator:    EventCreator,
        reminder_creator: ReminderCreator,
        min_confidence:   float = DEFAULT_MIN_PERSIST_CONFIDENCE,
    ):
        self.registry         = registry
        self.store            = store
        self.event_creator    = event_creator
        self.reminder_creator = reminder_creator
        self.min_confidence   = min_confidence

        self._unknown_lock  = threading.Lock()
        self._unknown_count = 0

    @property
    def unknown_intent_count(self) -> int:
        with self._unknown_lock:
            return self._unknown_count

    # ── TRACES ───────────────────────────────────────────────

    def write_trace(
        self,
        trigger:    Trigger,
        intent:     str,
        status:     str,
        action:     str   = '',
        confidence: float = 0.0,
        reasoning:  str   = '',
        details:    Optional[Dict[str, Any]] = None,
    ) -> None:
        """Best-effort. A failed write is logged and dropped."""
        trace = AnalysisTrace(
            user_id            = trigger.user_id,
            channel_id         = trigger.channel.id,
            source_type        = trigger.source_type,
            trigger_message_id = trigger.trigger_message_id,
            intent             = intent,
            router_confidence  = trigger.routed.confidence,
            action             = action,
            confidence         = confidence,
            reasoning          = truncate(reasoning or '', TRACE_REASONING_LIMIT),
            status             = status,
            details            = details or {},
        )
        try:
            self.store.create_analysis_trace(trace)
        except Exception as e:
            logger.warning(f"Trace write failed ({intent}/{status}): {e}")

    def record_routed(self, trigger: Trigger) -> None:
        routed = trigger.routed
        logger.info(
            f"Routed channel {trigger.channel.id} -> {routed.intent} "
            f"({routed.confidence:.2f}: {routed.reasoning})"
        )
        self.write_trace(
            trigger, routed.intent, TRACE_ROUTED,
            confidence = routed.confidence,
            reasoning  = routed.reasoning,
        )

    def record_unknown(self, trigger: Trigger, intent: str) -> None:
        with self._unknown_lock:
            self._unknown_count += 1
        logger.warning(f"Intent '{intent}' has no registered module; dropped")
        self.write_trace(
            trigger, intent, TRACE_UNKNOWN_INTENT,
            reasoning = 'intent module not registered',
        )

    # ── MODULE RUN ───────────────────────────────────────────

    def run_module(
        self,
        trigger:     Trigger,
        intent_name: str,
        analyze:     Callable[[IntentModule], Optional[ModuleOutput]],
    ) -> Optional[str]:
        """
        Run one module end to end. Returns the trace status written,
        or None when nothing was recorded (analyzer failure / no output).
        """
        module = self.registry.get(intent_name)
        if module is None:
            self.record_unknown(trigger, intent_name)
            return TRACE_UNKNOWN_INTENT

        try:
            output = analyze(module)
        except AgendaError as e:
            logger.error(
                f"{intent_name} analysis failed for channel {trigger.channel.id} "
                f"(message {trigger.trigger_message_id}): {e}"
            )
            return None
        if output is None:
            return None

        try:
            module.validate(output)
        except ModuleValidationError as e:
            logger.warning(f"{intent_name} output failed validation: {e}")
            self._trace_output(trigger, output, TRACE_VALIDATION_FAILED, {'error': str(e)})
            return TRACE_VALIDATION_FAILED

        if output.confidence < self.min_confidence:
            logger.info(
                f"{intent_name} {output.action} skipped: confidence "
                f"{output.confidence:.2f} < {self.min_confidence:.2f}"
            )
            self._trace_output(trigger, output, TRACE_SKIPPED_LOW_CONFIDENCE)
            return TRACE_SKIPPED_LOW_CONFIDENCE

        persister = ChannelPersister(trigger, self.event_creator, self.reminder_creator)
        try:
            module.persist(output, persister)
        except AgendaError as e:
            logger.error(f"{intent_name} {output.action} persist failed: {e}")
            self._trace_output(trigger, output, TRACE_PERSIST_ERROR, {'error': str(e)})
            return TRACE_PERSIST_ERROR
        except Exception as e:
            logger.error(
                f"{intent_name} {output.action} persist crashed: {e}", exc_info=True
            )
            self._trace_output(
                trigger, output, TRACE_PERSIST_ERROR,
                {'error': str(e), 'type': type(e).__name__},
            )
            raise

        self._trace_output(trigger, output, TRACE_PERSISTED)
        return TRACE_PERSISTED

    def _trace_output(
        self,
        trigger: Trigger,
        output:  ModuleOutput,
        status:  str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.write_trace(
            trigger, output.intent, status,
            action     = output.action,
            confidence = output.confidence,
            reasoning  = output.reasoning,
            details    = details,
        )
