"""
agenda/processor/processor.py
Live message processor.

One consumer thread drains the inbound queue. Per message, the
store/prune/fetch steps run in order on that thread; the module runs
(event, reminder) are then handed to a bounded worker pool and share
one read-only snapshot of history and active items. There is no lock
between messages: two close messages on one channel may both decide
"create" for the same real event. Dedup relies on the model seeing
existing active items.

Shutdown always drains the consumer loop. drain_on_shutdown decides
whether stop() also waits for module runs already handed to the pool;
when False, runs that have not started are cancelled and running ones
still finish and persist.
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional, Set

from agenda.errors import StoreError
from agenda.intents.module import MessageInput
from agenda.intents.router import Router
from agenda.models.record import InboundMessage
from agenda.processor.execution_order import resolve_execution_order
from agenda.processor.pipeline import IntentPipeline, Trigger
from agenda.store.base import Store

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 25
DEFAULT_WORKER_COUNT = 2

_STOP = object()


class Processor:

    def __init__(
        self,
        store:             Store,
        pipeline:          IntentPipeline,
        router:            Router,
        history_size:      int  = DEFAULT_HISTORY_SIZE,
        workers:           int  = DEFAULT_WORKER_COUNT,
        drain_on_shutdown: bool = True,
    ):
        self.store             = store
        self.pipeline          = pipeline
        self.router            = router
        self.history_size      = history_size if history_size > 0 else DEFAULT_HISTORY_SIZE
        self.workers           = workers if workers > 0 else DEFAULT_WORKER_COUNT
        self.drain_on_shutdown = drain_on_shutdown

        self._queue:   "queue.Queue" = queue.Queue()
        self._thread:  Optional[threading.Thread] = None
        self._pool     = ThreadPoolExecutor(
            max_workers        = self.workers,
            thread_name_prefix = 'agenda-intent',
        )
        self._inflight_lock = threading.Lock()
        self._inflight: Set[Future] = set()

    # ── LIFECYCLE ────────────────────────────────────────────

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target = self._consume,
            name   = 'agenda-processor',
            daemon = True,
        )
        self._thread.start()
        logger.info(
            f"Processor started (history={self.history_size}, workers={self.workers})"
        )

    def submit(self, msg: InboundMessage) -> None:
        """Enqueue one inbound message for the consumer thread."""
        self._queue.put(msg)

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._queue.put(_STOP)
            self._thread.join(timeout)
            self._thread = None
        self._pool.shutdown(
            wait           = self.drain_on_shutdown,
            cancel_futures = not self.drain_on_shutdown,
        )
        logger.info(f"Processor stopped (drained={self.drain_on_shutdown})")

    def pending_tasks(self) -> int:
        """Dispatched module runs that have not finished yet."""
        with self._inflight_lock:
            return sum(1 for f in self._inflight if not f.done())

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Block until the queue is empty and every dispatched module run is done."""
        self._queue.join()
        with self._inflight_lock:
            futures = list(self._inflight)
        wait(futures, timeout=timeout)

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.process_message(item)
            except Exception as e:
                logger.error(f"Message processing failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    # ── PER MESSAGE ──────────────────────────────────────────

    def process_message(self, msg: InboundMessage) -> List[Future]:
        """
        Store, prune, snapshot context, route, and dispatch module runs.
        Returns the futures for the dispatched runs.
        """
        channel = self.store.get_channel(msg.channel_id)
        if channel is None:
            logger.error(f"Channel {msg.channel_id} not found; message dropped")
            return []
        if not channel.enabled:
            logger.debug(f"Channel {channel.id} disabled; skipping")
            return []

        stored = self.store.store_message(msg)

        try:
            self.store.prune_messages(channel.id, self.history_size)
        except StoreError as e:
            logger.warning(f"Prune failed for channel {channel.id}: {e}")

        history = self.store.get_message_history(channel.id, self.history_size)

        try:
            existing_events = self.store.get_active_events(channel.id)
        except StoreError as e:
            logger.warning(f"Active events unavailable for channel {channel.id}: {e}")
            existing_events = []
        try:
            existing_reminders = self.store.get_active_reminders(channel.id)
        except StoreError as e:
            logger.warning(f"Active reminders unavailable for channel {channel.id}: {e}")
            existing_reminders = []

        inp = MessageInput(
            history            = history,
            new_message        = stored,
            existing_events    = existing_events,
            existing_reminders = existing_reminders,
        )

        trigger = Trigger(
            user_id            = msg.user_id,
            channel            = channel,
            source_type        = msg.source_type,
            routed             = self.router.route_messages(inp),
            trigger_message_id = stored.id,
            item_source        = msg.source_type,
        )
        self.pipeline.record_routed(trigger)

        order, hard_stop = resolve_execution_order(self.pipeline.registry, trigger.routed)
        if hard_stop:
            self.pipeline.record_unknown(trigger, order[0])
            return []

        return [self._dispatch(trigger, name, inp) for name in order]

    def _dispatch(self, trigger: Trigger, intent_name: str, inp: MessageInput) -> Future:
        future = self._pool.submit(
            self.pipeline.run_module,
            trigger,
            intent_name,
            lambda module: module.analyze_messages(inp),
        )
        with self._inflight_lock:
            self._inflight.add(future)
        future.add_done_callback(self._task_done)
        return future

    def _task_done(self, future: Future) -> None:
        with self._inflight_lock:
            self._inflight.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Intent task failed: {exc}", exc_info=exc)
