"""
agenda/bootstrap.py
Builds the full object graph from a config dict:

  store -> llm -> analyzers -> registry -> router
        -> notify -> creators -> pipeline -> processor / backfill / email

The API server and the CLI both start here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from agenda.analyzers.event_analyzer import EventAnalyzer
from agenda.analyzers.reminder_analyzer import ReminderAnalyzer
from agenda.intents.registry import build_registry
from agenda.intents.router import KeywordRouter
from agenda.llm.anthropic_adapter import AnthropicAdapter
from agenda.llm.base import LLMAdapter
from agenda.llm.ollama_adapter import OllamaAdapter
from agenda.notify import LogNotifier, NotifyService, WebhookNotifier
from agenda.processor.backfill import BackfillProcessor
from agenda.processor.email_processor import EmailProcessor
from agenda.processor.event_creator import EventCreator
from agenda.processor.pipeline import IntentPipeline
from agenda.processor.processor import Processor
from agenda.processor.reminder_creator import ReminderCreator
from agenda.store.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

BACKEND_ANTHROPIC = 'anthropic'
BACKEND_OLLAMA    = 'ollama'


@dataclass
class Agenda:
    config:    Dict[str, Any]
    store:     SQLiteStore
    pipeline:  IntentPipeline
    processor: Processor
    backfill:  BackfillProcessor
    email:     EmailProcessor


def build_llm(config: Dict[str, Any]) -> LLMAdapter:
    backend = (config.get('llm_backend') or BACKEND_ANTHROPIC).strip().lower()
    if backend == BACKEND_OLLAMA:
        return OllamaAdapter(
            model       = config['model'],
            host        = config['ollama_host'],
            timeout_sec = int(config['request_timeout_sec']),
            temperature = float(config['temperature']),
            num_predict = int(config['max_tokens']),
        )
    if backend != BACKEND_ANTHROPIC:
        logger.warning(f"Unknown llm_backend {backend!r}; using {BACKEND_ANTHROPIC}")
    return AnthropicAdapter(
        api_key     = config.get('anthropic_api_key') or '',
        model       = config['model'],
        temperature = float(config['temperature']),
        max_tokens  = int(config['max_tokens']),
        timeout_sec = int(config['request_timeout_sec']),
    )


def build_notify(config: Dict[str, Any], background: bool = True) -> NotifyService:
    notifiers = [LogNotifier()]
    if config.get('notify_webhook_url'):
        notifiers.append(WebhookNotifier(config['notify_webhook_url']))
    return NotifyService(notifiers, background=background)


def build_agenda(
    config:            Dict[str, Any],
    llm:               Optional[LLMAdapter]  = None,
    store:             Optional[SQLiteStore] = None,
    notify_background: bool                  = True,
) -> Agenda:
    """
    llm / store may be injected (tests, embedding apps).
    One-shot callers pass notify_background=False so deliveries finish
    before the process exits.
    """
    store = store or SQLiteStore(Path(config['db_path']))
    llm   = llm or build_llm(config)

    registry = build_registry(
        event_analyzer    = EventAnalyzer(llm),
        reminder_analyzer = ReminderAnalyzer(llm),
    )
    router = KeywordRouter()
    notify = build_notify(config, background=notify_background)

    pipeline = IntentPipeline(
        registry         = registry,
        store            = store,
        event_creator    = EventCreator(store, notify),
        reminder_creator = ReminderCreator(store, notify),
        min_confidence   = float(config['min_persist_confidence']),
    )

    history_size = int(config['message_history_size'])
    return Agenda(
        config    = config,
        store     = store,
        pipeline  = pipeline,
        processor = Processor(
            store             = store,
            pipeline          = pipeline,
            router            = router,
            history_size      = history_size,
            workers           = int(config['analysis_workers']),
            drain_on_shutdown = bool(config.get('drain_on_shutdown', True)),
        ),
        backfill  = BackfillProcessor(store, pipeline, router, history_size),
        email     = EmailProcessor(store, pipeline, router),
    )
