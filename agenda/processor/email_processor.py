"""
agenda/processor/email_processor.py
Runs the intent pipeline over one email (plus its thread) instead of a
chat message. Each email source gets a synthetic channel,
identifier "email:<source_type>:<identifier>", so tracked items and
traces keep their per-channel keys. Emails run sequentially on the
calling thread; the connector that fetched them owns any concurrency.
"""

import html
import logging
import re
from dataclasses import replace
from typing import Dict, List

from agenda.errors import AgendaError, StoreError
from agenda.intents.module import EmailInput
from agenda.intents.router import Router
from agenda.models.record import Channel, EmailContent, EmailSource
from agenda.processor.execution_order import resolve_execution_order
from agenda.processor.pipeline import IntentPipeline, Trigger, truncate
from agenda.store.base import Store

logger = logging.getLogger(__name__)

EMAIL_SOURCE_TYPE = 'gmail'

SIGNATURE_MARKERS = ('-- \n', '---\n', 'Sent from my', 'Get Outlook for')

_TAG_RE       = re.compile(r'<[^>]+>')
_BLOCK_RE     = re.compile(r'<\s*(br|/p|/div|/tr|/li|/h[1-6])\s*/?>', re.IGNORECASE)
_HIDDEN_RE    = re.compile(r'<(script|style)[^>]*>.*?</\1>', re.IGNORECASE | re.DOTALL)
_QUOTED_RE    = re.compile(r'(?m)^>.*$')
_MULTI_NL_RE  = re.compile(r'\n{3,}')


def clean_email_body(body: str) -> str:
    """HTML to text, cut the signature, drop '>' quoted lines."""
    if '<' in body and '>' in body:
        body = _HIDDEN_RE.sub('', body)
        body = _BLOCK_RE.sub('\n', body)
        body = html.unescape(_TAG_RE.sub('', body))

    for marker in SIGNATURE_MARKERS:
        idx = body.find(marker)
        if idx > 0:
            body = body[:idx]

    body = _QUOTED_RE.sub('', body)
    body = _MULTI_NL_RE.sub('\n\n', body)
    return body.strip()


def email_channel_identifier(source: EmailSource) -> str:
    return f"email:{source.source_type}:{source.identifier}"


class EmailProcessor:

    def __init__(self, store: Store, pipeline: IntentPipeline, router: Router):
        self.store    = store
        self.pipeline = pipeline
        self.router   = router

    def get_or_create_email_channel(self, source: EmailSource) -> Channel:
        return self.store.get_or_create_channel(
            user_id     = source.user_id,
            source_type = EMAIL_SOURCE_TYPE,
            identifier  = email_channel_identifier(source),
            name        = f"Email: {source.name}",
            calendar_id = source.calendar_id,
        )

    def process_email(self, email: EmailContent, source: EmailSource) -> Dict[str, int]:
        """Returns a status -> count summary of module traces written."""
        logger.info(f"Processing email: {truncate(email.subject, 50)} (from: {email.sender})")

        channel = self.get_or_create_email_channel(source)
        email   = replace(email, body=clean_email_body(email.body))

        try:
            existing_events = self.store.get_active_events(channel.id)
        except StoreError as e:
            logger.warning(f"Active events unavailable for email channel {channel.id}: {e}")
            existing_events = []
        try:
            existing_reminders = self.store.get_active_reminders(channel.id)
        except StoreError as e:
            logger.warning(f"Active reminders unavailable for email channel {channel.id}: {e}")
            existing_reminders = []

        inp = EmailInput(
            email              = email,
            existing_events    = existing_events,
            existing_reminders = existing_reminders,
        )

        trigger = Trigger(
            user_id         = source.user_id,
            channel         = channel,
            source_type     = EMAIL_SOURCE_TYPE,
            routed          = self.router.route_email(inp),
            email_source_id = source.id,
            item_source     = EMAIL_SOURCE_TYPE,
        )
        self.pipeline.record_routed(trigger)

        order, hard_stop = resolve_execution_order(self.pipeline.registry, trigger.routed)
        statuses: List[str] = []
        for name in order:
            try:
                status = self.pipeline.run_module(
                    trigger, name, lambda module: module.analyze_email(inp)
                )
            except AgendaError as e:
                logger.error(f"Email {name} run failed: {e}")
                continue
            if status is not None:
                statuses.append(status)
            if hard_stop:
                break

        summary: Dict[str, int] = {}
        for s in statuses:
            summary[s] = summary.get(s, 0) + 1
        return summary
