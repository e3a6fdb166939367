"""
agenda/processor/event_creator.py
Turns one EventAnalysis into a pending CalendarEvent.

  create   new pending row; start required, end defaults to start + 1h
  update   pending target: merged in place
           anything else:  new pending row with action_type=update
  delete   pending target: marked rejected, times untouched
           anything else:  new pending row with action_type=delete

Update is a merge: empty title/description/location inherit the
referenced item's values. The low_confidence flag is informational;
the persistence gate lives in the orchestrator.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from agenda.analyzers.schemas import EventAnalysis, EventData
from agenda.errors import EventCreationError, StoreError, UnknownActionError
from agenda.models.record import (
    ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE,
    FLAG_LOW_CONFIDENCE, FLAG_TIMEZONE_FALLBACK,
    STATUS_PENDING, STATUS_REJECTED,
    Attendee, CalendarEvent,
)
from agenda.notify import NotifyService
from agenda.store.base import Store
from agenda.timeutil import default_end, now_utc, parse_datetime

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.6
DEFAULT_CALENDAR_ID      = 'primary'
UNTITLED_EVENT           = 'Untitled event'


@dataclass
class EventCreationParams:
    user_id:           int
    channel_id:        int
    analysis:          EventAnalysis
    source:            str           = ''
    origin_message_id: Optional[int] = None
    email_source_id:   Optional[int] = None
    calendar_id:       str           = ''     # empty: look up the user's selection


def map_action_type(action: str) -> str:
    if action in (ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE):
        return action
    raise UnknownActionError(action)


def build_quality_flags(confidence: float, timezone_fallback: bool) -> List[str]:
    flags: List[str] = []
    if confidence < LOW_CONFIDENCE_THRESHOLD:
        flags.append(FLAG_LOW_CONFIDENCE)
    if timezone_fallback:
        flags.append(FLAG_TIMEZONE_FALLBACK)
    return flags


def normalize_attendees(event: EventData) -> List[Attendee]:
    """Drop attendees without an email; role 'optional' becomes a flag."""
    attendees: List[Attendee] = []
    for a in event.attendees:
        email = a.email.strip()
        if not email:
            continue
        attendees.append(Attendee(
            name     = a.name.strip(),
            email    = email,
            optional = a.role.strip().lower() == 'optional',
        ))
    return attendees


class _TimeParser:
    """parse_datetime bound to one zone, remembering whether any call fell back."""

    def __init__(self, tz_name: str):
        self.tz_name  = tz_name
        self.fallback = False

    def __call__(self, raw: str) -> datetime:
        parsed, fell_back = parse_datetime(raw, self.tz_name)
        if fell_back:
            self.fallback = True
        return parsed


def resolve_event_times(
    action:  str,
    event:   EventData,
    base:    Optional[CalendarEvent],
    tz_name: str,
) -> Tuple[datetime, datetime, bool]:
    """Returns (start, end, timezone_fallback). Raises EventCreationError."""
    parse = _TimeParser(tz_name)

    if action == ACTION_CREATE:
        if not event.start_time.strip():
            raise EventCreationError("create action requires start_time")
        try:
            start = parse(event.start_time)
        except ValueError as e:
            raise EventCreationError(f"failed to parse start time: {e}") from e
        end = _parse_optional(parse, event.end_time) or default_end(start)
        return start, end, parse.fallback

    if action == ACTION_UPDATE:
        start_provided = bool(event.start_time.strip())
        if start_provided:
            try:
                start = parse(event.start_time)
            except ValueError as e:
                raise EventCreationError(f"failed to parse start time: {e}") from e
        elif base is not None:
            start = base.start_time
        else:
            raise EventCreationError(
                "update action requires start_time or existing event reference"
            )

        end = _parse_optional(parse, event.end_time)
        if end is None and base is not None:
            if start_provided:
                duration = base.end_time - base.start_time if base.end_time else None
                if duration is not None and duration.total_seconds() > 0:
                    end = start + duration
            else:
                end = base.end_time
        if end is None:
            end = default_end(start)
        return start, end, parse.fallback

    # delete
    if base is not None:
        return base.start_time, base.end_time or default_end(base.start_time), False
    start = now_utc()
    return start, default_end(start), False


def _parse_optional(parse: _TimeParser, raw: str) -> Optional[datetime]:
    if not raw.strip():
        return None
    try:
        return parse(raw)
    except ValueError:
        logger.debug(f"Ignoring unparsable end time: {raw!r}")
        return None


class EventCreator:

    def __init__(self, store: Store, notify: Optional[NotifyService] = None):
        self.store  = store
        self.notify = notify

    def create_from_analysis(self, params: EventCreationParams) -> CalendarEvent:
        analysis = params.analysis
        if analysis is None or analysis.event is None:
            raise EventCreationError("analysis has no event data")
        event  = analysis.event
        action = map_action_type(analysis.action)

        tz_name = self.store.get_user_timezone(params.user_id) or 'UTC'

        pending = self._pending_target(event)
        if pending is not None and action != ACTION_CREATE:
            return self._handle_existing_pending(pending, action, analysis, tz_name)

        referenced = self._resolve_reference(params.user_id, event)
        start, end, tz_fallback = resolve_event_times(action, event, referenced, tz_name)
        if action == ACTION_DELETE and referenced is None:
            logger.warning(
                f"Delete references an unknown event "
                f"(event_id={event.event_id}, external_event_id={event.external_event_id!r}). "
                f"Queuing placeholder delete for review."
            )

        external_ref = event.external_event_id.strip() or None
        if external_ref is None and referenced is not None:
            external_ref = referenced.google_event_id

        title       = event.title.strip()
        description = event.description.strip()
        location    = event.location.strip()
        if referenced is not None:
            title       = title or referenced.title
            description = description or referenced.description
            location    = location or referenced.location

        created = self.store.create_pending_event(CalendarEvent(
            user_id           = params.user_id,
            channel_id        = params.channel_id,
            google_event_id   = external_ref,
            calendar_id       = self._resolve_calendar_id(params, event, referenced),
            title             = title or UNTITLED_EVENT,
            description       = description,
            start_time        = start,
            end_time          = end,
            location          = location,
            action_type       = action,
            origin_message_id = params.origin_message_id,
            email_source_id   = params.email_source_id,
            source            = params.source,
            llm_reasoning     = analysis.reasoning,
            llm_confidence    = analysis.confidence,
            quality_flags     = build_quality_flags(analysis.confidence, tz_fallback),
        ))

        self._persist_attendees(created.id, event)
        logger.info(
            f"Created pending event: {created.title} "
            f"(ID: {created.id}, Action: {created.action_type}, Source: {params.source})"
        )

        if self.notify is not None:
            self.notify.notify_pending_event(created)
        return created

    # ── REFERENCES ───────────────────────────────────────────

    def _pending_target(self, event: EventData) -> Optional[CalendarEvent]:
        """The internally-referenced event, if it is still pending."""
        if not event.event_id:
            return None
        existing = self.store.get_event_by_id(event.event_id)
        if existing is not None and existing.status == STATUS_PENDING:
            return existing
        return None

    def _resolve_reference(self, user_id: int, event: EventData) -> Optional[CalendarEvent]:
        if event.event_id:
            return self.store.get_event_by_id(event.event_id)
        external_id = event.external_event_id.strip()
        if external_id:
            return self.store.get_event_by_external_id(user_id, external_id)
        return None

    def _resolve_calendar_id(
        self,
        params:     EventCreationParams,
        event:      EventData,
        referenced: Optional[CalendarEvent],
    ) -> str:
        calendar_id = params.calendar_id or event.calendar_id.strip()
        if not calendar_id:
            calendar_id = self.store.get_selected_calendar_id(params.user_id)
        if not calendar_id and referenced is not None:
            calendar_id = referenced.calendar_id
        return calendar_id or DEFAULT_CALENDAR_ID

    # ── EXISTING PENDING ─────────────────────────────────────

    def _handle_existing_pending(
        self,
        existing: CalendarEvent,
        action:   str,
        analysis: EventAnalysis,
        tz_name:  str,
    ) -> CalendarEvent:
        if action == ACTION_DELETE:
            self.store.update_event_status(existing.id, STATUS_REJECTED)
            logger.info(f"Rejected pending event: {existing.title} (ID: {existing.id})")
            existing.status = STATUS_REJECTED
            return existing

        event = analysis.event
        start, end, tz_fallback = resolve_event_times(ACTION_UPDATE, event, existing, tz_name)

        existing.title          = event.title.strip() or existing.title
        existing.description    = event.description.strip() or existing.description
        existing.location       = event.location.strip() or existing.location
        existing.start_time     = start
        existing.end_time       = end
        existing.llm_reasoning  = analysis.reasoning
        existing.llm_confidence = analysis.confidence
        existing.quality_flags  = build_quality_flags(analysis.confidence, tz_fallback)

        try:
            self.store.update_pending_event(existing)
        except StoreError as e:
            raise EventCreationError(f"failed to update pending event: {e}") from e

        self._persist_attendees(existing.id, event)
        logger.info(f"Updated pending event: {existing.title} (ID: {existing.id})")

        return self.store.get_event_by_id(existing.id) or existing

    def _persist_attendees(self, event_id: int, event: EventData) -> None:
        attendees = normalize_attendees(event)
        if not attendees:
            return
        self.store.set_event_attendees(event_id, attendees)
