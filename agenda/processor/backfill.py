"""
agenda/processor/backfill.py
Historical reprocessing through the live pipeline, one message at a
time on the calling thread. Each step sees a window of up to N
messages ending at the current one, so context grows strictly in
order. Active items are re-read every step so a reminder created at
message 3 is visible when message 4 is analyzed.
"""

import logging
from typing import Dict, List, Optional, Sequence

from agenda.errors import AgendaError, StoreError
from agenda.intents.module import MessageInput
from agenda.intents.router import Router
from agenda.models.record import SourceMessage
from agenda.processor.execution_order import resolve_execution_order
from agenda.processor.pipeline import IntentPipeline, Trigger
from agenda.processor.processor import DEFAULT_HISTORY_SIZE
from agenda.store.base import Store

logger = logging.getLogger(__name__)


class BackfillProcessor:

    def __init__(
        self,
        store:        Store,
        pipeline:     IntentPipeline,
        router:       Router,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self.store        = store
        self.pipeline     = pipeline
        self.router       = router
        self.history_size = history_size if history_size > 0 else DEFAULT_HISTORY_SIZE

    def backfill_channel(self, channel_id: int, limit: Optional[int] = None) -> Dict[str, int]:
        """Reprocess the channel's stored history, oldest first."""
        messages = self.store.get_message_history(channel_id, limit or self.history_size)
        channel  = self.store.get_channel(channel_id)
        if channel is None:
            raise StoreError(f"channel not found: {channel_id}")
        return self.process_messages(channel.user_id, channel_id, channel.source_type, messages)

    def process_messages(
        self,
        user_id:     int,
        channel_id:  int,
        source_type: str,
        messages:    Sequence[SourceMessage],
    ) -> Dict[str, int]:
        """
        Returns a status -> count summary of the traces written by
        module runs (the routed trace per message is not counted).
        """
        summary: Dict[str, int] = {}
        if not messages:
            return summary

        channel = self.store.get_channel(channel_id)
        if channel is None:
            raise StoreError(f"channel not found: {channel_id}")
        if not channel.enabled:
            logger.info(f"Backfill skipped: channel {channel_id} disabled")
            return summary

        logger.info(f"Backfill channel {channel_id}: {len(messages)} messages")

        for i, msg in enumerate(messages):
            window = list(messages[max(0, i + 1 - self.history_size): i + 1])
            inp    = MessageInput(
                history            = window,
                new_message        = msg,
                existing_events    = self._active_events(channel_id),
                existing_reminders = self._active_reminders(channel_id),
            )

            trigger = Trigger(
                user_id            = user_id,
                channel            = channel,
                source_type        = source_type,
                routed             = self.router.route_messages(inp),
                trigger_message_id = msg.id,
                item_source        = source_type,
            )
            self.pipeline.record_routed(trigger)

            for status in self._run(trigger, inp):
                summary[status] = summary.get(status, 0) + 1

        logger.info(f"Backfill channel {channel_id} complete: {summary}")
        return summary

    def _run(self, trigger: Trigger, inp: MessageInput) -> List[str]:
        order, hard_stop = resolve_execution_order(self.pipeline.registry, trigger.routed)
        statuses: List[str] = []
        for name in order:
            try:
                status = self.pipeline.run_module(
                    trigger, name, lambda module: module.analyze_messages(inp)
                )
            except AgendaError as e:
                logger.error(f"Backfill {name} failed on message {trigger.trigger_message_id}: {e}")
                continue
            if status is not None:
                statuses.append(status)
            if hard_stop:
                break
        return statuses

    def _active_events(self, channel_id: int):
        try:
            return self.store.get_active_events(channel_id)
        except StoreError as e:
            logger.warning(f"Backfill: active events unavailable: {e}")
            return []

    def _active_reminders(self, channel_id: int):
        try:
            return self.store.get_active_reminders(channel_id)
        except StoreError as e:
            logger.warning(f"Backfill: active reminders unavailable: {e}")
            return []
