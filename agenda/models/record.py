"""
agenda/models/record.py
Shared dataclass schema. The store, processors, and reconcilers
use these types. Do not add logic here: data only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# ── STATUS / ACTION CONSTANTS ────────────────────────────────

STATUS_PENDING   = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_SYNCED    = 'synced'
STATUS_REJECTED  = 'rejected'
STATUS_DELETED   = 'deleted'

ACTION_CREATE = 'create'
ACTION_UPDATE = 'update'
ACTION_DELETE = 'delete'
ACTION_NONE   = 'none'

FLAG_LOW_CONFIDENCE    = 'low_confidence'
FLAG_TIMEZONE_FALLBACK = 'timezone_fallback'

TRACE_ROUTED                 = 'routed'
TRACE_PERSISTED              = 'persisted'
TRACE_PERSIST_ERROR          = 'persist_error'
TRACE_VALIDATION_FAILED      = 'validation_failed'
TRACE_SKIPPED_LOW_CONFIDENCE = 'skipped_low_confidence'
TRACE_UNKNOWN_INTENT         = 'unknown_intent'

PRIORITY_LOW    = 'low'
PRIORITY_NORMAL = 'normal'
PRIORITY_HIGH   = 'high'


@dataclass
class Channel:
    """A chat (or synthetic email) channel whose messages are tracked."""
    id:          int
    user_id:     int
    source_type: str            # whatsapp / telegram / gmail / ...
    identifier:  str            # provider-side chat id, or email:<type>:<identifier>
    name:        str
    calendar_id: str  = ''
    enabled:     bool = True


@dataclass
class InboundMessage:
    """One message as delivered by an ingestion connector."""
    user_id:     int
    source_type: str
    channel_id:  int
    sender_id:   str
    sender_name: str
    text:        str
    timestamp:   datetime
    subject:     str = ''


@dataclass
class SourceMessage:
    """A message stored in channel history."""
    id:          int
    user_id:     int
    source_type: str
    channel_id:  int
    sender_id:   str
    sender_name: str
    text:        str
    timestamp:   datetime
    subject:     str = ''


@dataclass
class Attendee:
    name:     str
    email:    str
    optional: bool = False


@dataclass
class CalendarEvent:
    """Tracked calendar event. status pending until the sync collaborator picks it up."""
    user_id:           int
    channel_id:        int
    title:             str
    start_time:        datetime
    end_time:          datetime
    id:                int            = 0
    action_type:       str            = ACTION_CREATE
    status:            str            = STATUS_PENDING
    description:       str            = ''
    location:          str            = ''
    calendar_id:       str            = 'primary'
    google_event_id:   Optional[str]  = None       # provider-side id
    origin_message_id: Optional[int]  = None
    email_source_id:   Optional[int]  = None
    source:            str            = ''         # whatsapp / telegram / gmail
    llm_reasoning:     str            = ''
    llm_confidence:    float          = 0.0
    quality_flags:     List[str]      = field(default_factory=list)
    attendees:         List[Attendee] = field(default_factory=list)
    created_at:        Optional[datetime] = None


@dataclass
class Reminder:
    """Tracked reminder."""
    user_id:           int
    channel_id:        int
    title:             str
    due_date:          datetime
    id:                int                = 0
    action_type:       str                = ACTION_CREATE
    status:            str                = STATUS_PENDING
    description:       str                = ''
    reminder_time:     Optional[datetime] = None
    priority:          str                = PRIORITY_NORMAL
    origin_message_id: Optional[int]      = None
    email_source_id:   Optional[int]      = None
    source:            str                = ''
    llm_reasoning:     str                = ''
    llm_confidence:    float              = 0.0
    quality_flags:     List[str]          = field(default_factory=list)
    created_at:        Optional[datetime] = None


@dataclass
class EmailThreadMessage:
    sender:  str
    date:    str
    subject: str
    body:    str


@dataclass
class EmailContent:
    """An email handed to the EmailProcessor. Fetching it is the connector's job."""
    subject:        str
    sender:         str
    body:           str
    to:             str = ''
    date:           str = ''
    thread_history: List[EmailThreadMessage] = field(default_factory=list)


@dataclass
class EmailSource:
    """A configured email filter. Each source maps to one synthetic channel."""
    id:          int
    user_id:     int
    source_type: str            # sender / domain / category
    identifier:  str
    name:        str
    calendar_id: str = ''


@dataclass
class AnalysisTrace:
    """Audit row: one module decision (or one routing decision) per trigger."""
    user_id:            int
    channel_id:         int
    source_type:        str
    intent:             str
    status:             str
    trigger_message_id: Optional[int] = None
    router_confidence:  float         = 0.0
    action:             str           = ''
    confidence:         float         = 0.0
    reasoning:          str           = ''
    details:            dict          = field(default_factory=dict)
    id:                 int           = 0
    created_at:         Optional[datetime] = None
