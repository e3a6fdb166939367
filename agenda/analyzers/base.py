"""
agenda/analyzers/base.py
Abstract base class for LLM-backed analyzers.
To add a new intent kind: subclass Analyzer, set system_prompt and
schema, and implement format_existing().

Prompt layout shared by all analyzers:
  ## Message History        prior channel messages, oldest first
  ## New Message            the trigger
  ## Existing ...           active tracked items, with ids to reference
  ## Current Date/Time      for resolving "tomorrow", "next Friday"
  ## Output Language ...    when the trigger language is reliably known
  ## Correction Required    only on the language retry

A create/update reply whose user-facing fields come back in another
language than the trigger is asked for once more with a correction.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel

from agenda.analyzers.extract import recover_json_object
from agenda.analyzers.langpolicy import (
    UNKNOWN, TargetLanguage,
    build_corrective_retry_instruction, build_language_instruction,
    detect_target_language, validate_fields_language,
)
from agenda.analyzers.schemas import decode_analysis
from agenda.errors import AgendaError
from agenda.llm.base import LLMAdapter
from agenda.models.record import EmailContent, SourceMessage

logger = logging.getLogger(__name__)

THREAD_BODY_LIMIT = 2000
EMAIL_BODY_LIMIT  = 8000
TRUNCATED_MARKER  = '\n\n[... content truncated ...]'

LANGUAGE_CHECKED_ACTIONS = ('create', 'update')


def truncate_body(body: str, limit: int) -> str:
    if len(body) <= limit:
        return body
    return body[:limit] + TRUNCATED_MARKER


def format_message_line(msg: SourceMessage) -> str:
    return f"[{msg.timestamp.strftime('%Y-%m-%d %H:%M')}] {msg.sender_name}: {msg.text}"


def format_now(now: datetime) -> str:
    offset = now.strftime('%z')
    if offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    return f"Current time: {now.strftime('%Y-%m-%d %H:%M:%S %A')} {offset} ({now.tzinfo})"


def _language_section(target: TargetLanguage, correction: str = '') -> List[str]:
    lines       = []
    instruction = build_language_instruction(target)
    if instruction:
        lines.append(f"\n## Output Language Requirement\n\n{instruction}")
    if correction:
        lines.append(f"\n## Correction Required\n\n{correction}")
    return lines


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Analyzer(ABC):
    """
    Turns a conversation (or an email) into one decoded analysis.
    Every failure is raised: LLMError from the backend, AnalyzerError
    when no JSON object can be recovered, AnalysisDecodeError when
    the object does not match schema.
    """

    name:            str = ''
    system_prompt:   str = ''
    schema:          Type[BaseModel]
    existing_header: str = '## Existing Items'
    existing_empty:  str = 'No existing items.'
    message_footer:  str = ''
    email_footer:    str = ''

    # payload fields held to the trigger's language
    language_fields:        Tuple[str, ...] = ('title', 'description')
    email_subject_language: bool            = True

    def __init__(
        self,
        llm:   LLMAdapter,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.llm   = llm
        self.clock = clock or _local_now

    def is_configured(self) -> bool:
        return self.llm.is_configured()

    # ── ENTRY POINTS ─────────────────────────────────────────
    def analyze_messages(
        self,
        history:     Sequence[SourceMessage],
        new_message: SourceMessage,
        existing:    Sequence,
    ):
        target = detect_target_language(new_message.text)
        return self._run(
            lambda correction: self.build_message_prompt(
                history, new_message, existing, target, correction
            ),
            target,
        )

    def analyze_email(self, email: EmailContent, existing: Sequence = ()):
        target = detect_target_language(self.email_language_text(email))
        return self._run(
            lambda correction: self.build_email_prompt(email, existing, target, correction),
            target,
        )

    def email_language_text(self, email: EmailContent) -> str:
        if self.email_subject_language:
            return f"{email.subject}\n{email.body}".strip()
        return email.body

    def _complete(self, prompt: str):
        reply    = self.llm.complete(self.system_prompt, prompt)
        payload  = recover_json_object(reply)
        analysis = decode_analysis(self.schema, payload)
        logger.debug(
            f"{self.name} analysis: action={analysis.action} "
            f"confidence={analysis.confidence:.2f}"
        )
        return analysis

    def _run(self, build: Callable[[str], str], target: TargetLanguage):
        """
        One completion, plus at most one corrective retry when a
        create/update payload is in the wrong language. A failed retry
        falls back to the first analysis; a retry that still mismatches
        is returned as is.
        """
        analysis = self._complete(build(''))
        if not self._checks_language(analysis, target):
            return analysis

        validation = validate_fields_language(target, self._language_values(analysis))
        if validation.is_match:
            return analysis

        logger.warning(
            f"{self.name} output language mismatch (target={target.code}): "
            f"{validation.describe()}; retrying"
        )
        try:
            retried = self._complete(build(build_corrective_retry_instruction(target, validation)))
        except AgendaError as e:
            logger.warning(f"{self.name} language retry failed, keeping first reply: {e}")
            return analysis

        if self._checks_language(retried, target):
            after = validate_fields_language(target, self._language_values(retried))
            if after.is_match:
                logger.info(f"{self.name} language retry matched {target.code}")
            else:
                logger.warning(
                    f"{self.name} language retry still mismatched: {after.describe()}"
                )
        return retried

    def _checks_language(self, analysis, target: TargetLanguage) -> bool:
        return (
            target.reliable and bool(target.code)
            and analysis.action in LANGUAGE_CHECKED_ACTIONS
            and analysis.payload is not None
        )

    def _language_values(self, analysis) -> Dict[str, str]:
        payload = analysis.payload
        return {f: getattr(payload, f, '') for f in self.language_fields}

    # ── PROMPTS ──────────────────────────────────────────────
    @abstractmethod
    def format_existing(self, item) -> str:
        """One '- [ID: ...] ...' line for an active tracked item."""
        ...

    def _existing_section(self, existing: Sequence) -> List[str]:
        lines = [f"\n{self.existing_header}\n"]
        if existing:
            lines.extend(self.format_existing(item) for item in existing)
        else:
            lines.append(self.existing_empty)
        return lines

    def build_message_prompt(
        self,
        history:     Sequence[SourceMessage],
        new_message: SourceMessage,
        existing:    Sequence,
        target:      TargetLanguage = UNKNOWN,
        correction:  str            = '',
    ) -> str:
        lines = ['## Message History (last messages from this channel)\n']
        prior = [m for m in history if m.id != new_message.id]
        if prior:
            lines.extend(format_message_line(m) for m in prior)
        else:
            lines.append('(no earlier messages)')

        lines.append('\n## New Message (just received)\n')
        lines.append(format_message_line(new_message))

        lines.extend(self._existing_section(existing))

        lines.append('\n## Current Date/Time Reference\n')
        lines.append(format_now(self.clock()))
        lines.extend(_language_section(target, correction))

        if self.message_footer:
            lines.append(f"\n{self.message_footer}")
        return '\n'.join(lines) + '\n'

    def build_email_prompt(
        self,
        email:      EmailContent,
        existing:   Sequence       = (),
        target:     TargetLanguage = UNKNOWN,
        correction: str            = '',
    ) -> str:
        lines: List[str] = []
        if email.thread_history:
            lines.append('## Email Thread History (chronological order)\n')
            for msg in email.thread_history:
                lines.append(f"[{msg.date}] From: {msg.sender}")
                lines.append(f"Subject: {msg.subject}")
                lines.append(f"Body:\n{truncate_body(msg.body, THREAD_BODY_LIMIT)}\n\n---\n")

        lines.append('## Email to Analyze (latest in thread)\n')
        lines.append(f"**From:** {email.sender}")
        lines.append(f"**To:** {email.to}")
        lines.append(f"**Date:** {email.date}")
        lines.append(f"**Subject:** {email.subject}\n")
        lines.append('**Body:**')
        lines.append(truncate_body(email.body, EMAIL_BODY_LIMIT))

        lines.extend(self._existing_section(existing))

        lines.append('\n## Current Date/Time Reference\n')
        lines.append(format_now(self.clock()))
        lines.extend(_language_section(target, correction))

        if self.email_footer:
            lines.append(f"\n{self.email_footer}")
        return '\n'.join(lines) + '\n'
