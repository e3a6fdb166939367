"""
agenda/analyzers/event_analyzer.py
Detects calendar events (things to attend) in chat messages and emails.
"""

from agenda.analyzers.base import Analyzer
from agenda.analyzers.schemas import EventAnalysis
from agenda.models.record import CalendarEvent

EVENT_SYSTEM_PROMPT = (
    "You are an assistant that reads messages and decides whether a "
    "calendar action is needed.\n\n"
    "Decide whether the new message (read together with the history) means:\n"
    "1. a new event should be CREATED\n"
    "2. an existing event should be UPDATED (time, date, place or details changed)\n"
    "3. an existing event should be DELETED (explicitly cancelled)\n"
    "4. no calendar action is needed\n\n"
    "RULES:\n"
    "- Create only for a concrete future meeting, appointment or activity "
    "with a determinable date and time.\n"
    "- Never create an event that already appears under Existing Calendar Events.\n"
    "- For update or delete you MUST reference an existing event: set "
    "event_id to its ID, or external_event_id to its ExternalID.\n"
    "- For an update, only fill the fields that changed. Leave the rest empty.\n"
    "- Resolve relative dates (\"tomorrow\", \"next week\") against the "
    "Current Date/Time Reference.\n"
    "- If no end time is mentioned leave end_time empty.\n"
    "- Past events, vague mentions and general chat mean action \"none\".\n"
    "- When confidence is below 0.6 prefer action \"none\".\n\n"
    "Respond ONLY with a valid JSON object. No markdown, no explanation.\n\n"
    "{\n"
    '  "has_event": true or false,\n'
    '  "action": "create" or "update" or "delete" or "none",\n'
    '  "event": {\n'
    '    "title": "short descriptive title",\n'
    '    "description": "extra context, optional",\n'
    '    "start_time": "YYYY-MM-DDTHH:MM:SS",\n'
    '    "end_time": "YYYY-MM-DDTHH:MM:SS or empty",\n'
    '    "location": "venue or empty",\n'
    '    "event_id": existing event ID (integer) or null,\n'
    '    "external_event_id": "existing ExternalID or empty",\n'
    '    "attendees": [{"name": "", "email": "", "role": "required or optional"}]\n'
    "  },\n"
    '  "reasoning": "one or two sentences",\n'
    '  "confidence": 0.0 to 1.0\n'
    "}\n\n"
    "When no action is needed, respond with has_event=false, "
    'action="none" and event=null.'
)


class EventAnalyzer(Analyzer):

    name            = 'event'
    system_prompt   = EVENT_SYSTEM_PROMPT
    schema          = EventAnalysis
    existing_header = '## Existing Calendar Events for this channel'
    existing_empty  = 'No existing events.'
    message_footer  = 'Analyze these messages and respond with the JSON object.'
    email_footer    = 'Analyze this email and respond with the JSON object.'

    language_fields        = ('title', 'description', 'location')
    email_subject_language = False

    def format_existing(self, item: CalendarEvent) -> str:
        end = ''
        if item.end_time:
            end = f" - {item.end_time.strftime('%Y-%m-%d %H:%M')}"
        line = (
            f"- [ID: {item.id}, ExternalID: {item.google_event_id or 'none'}, "
            f"Status: {item.status}] {item.title} @ "
            f"{item.start_time.strftime('%Y-%m-%d %H:%M')}{end}"
        )
        if item.location:
            line += f" (Location: {item.location})"
        return line
