"""
agenda/analyzers/reminder_analyzer.py
Detects reminders (things to do or remember) as opposed to events
(things to attend). Events are left to EventAnalyzer.
"""

from agenda.analyzers.base import Analyzer
from agenda.analyzers.schemas import ReminderAnalysis
from agenda.models.record import Reminder

REMINDER_SYSTEM_PROMPT = (
    "You are an assistant that reads messages and detects REMINDERS: "
    "actionable tasks the user needs to do or remember by a due date.\n\n"
    "REMINDERS vs EVENTS:\n"
    "- Reminder: \"remind me to call mom\", \"don't forget to submit the report\".\n"
    "- Event: \"meeting at 3pm\", \"dinner on Friday\". Events are handled "
    "elsewhere. Return action \"none\" for them.\n\n"
    "Decide whether a reminder should be CREATED, an existing one UPDATED "
    "or DELETED, or no action is needed.\n\n"
    "RULES:\n"
    "- Create only for a clear actionable task with a determinable due date.\n"
    "- Never create a reminder that already appears under Existing Reminders.\n"
    "- For update or delete you MUST set reminder_id to the existing reminder's ID.\n"
    "- Resolve relative dates against the Current Date/Time Reference.\n"
    "- due_date is YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS; a date alone means 09:00.\n"
    "- priority is \"low\", \"normal\" or \"high\"; default \"normal\".\n"
    "- When confidence is below 0.6 prefer action \"none\".\n\n"
    "Respond ONLY with a valid JSON object. No markdown, no explanation.\n\n"
    "{\n"
    '  "has_reminder": true or false,\n'
    '  "action": "create" or "update" or "delete" or "none",\n'
    '  "reminder": {\n'
    '    "title": "short actionable title",\n'
    '    "description": "extra context, optional",\n'
    '    "due_date": "YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS",\n'
    '    "reminder_time": "YYYY-MM-DDTHH:MM:SS or empty",\n'
    '    "priority": "low" or "normal" or "high",\n'
    '    "reminder_id": existing reminder ID (integer) or null\n'
    "  },\n"
    '  "reasoning": "one or two sentences",\n'
    '  "confidence": 0.0 to 1.0\n'
    "}"
)


class ReminderAnalyzer(Analyzer):

    name            = 'reminder'
    system_prompt   = REMINDER_SYSTEM_PROMPT
    schema          = ReminderAnalysis
    existing_header = '## Existing Reminders for this channel'
    existing_empty  = 'No existing reminders.'
    message_footer  = 'Analyze these messages for reminders and respond with the JSON object.'
    email_footer    = 'Analyze this email for reminders and respond with the JSON object.'

    def format_existing(self, item: Reminder) -> str:
        return (
            f"- [ID: {item.id}, Status: {item.status}, Priority: {item.priority}] "
            f"{item.title} - Due: {item.due_date.strftime('%Y-%m-%d %H:%M')}"
        )
