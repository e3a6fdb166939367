"""
agenda/analyzers/schemas.py
Strict pydantic schemas for analyzer output.

A wrong-typed field ("has_event": "yes", "confidence": "high") is a
decode error, never a silent zero value. Missing or null fields take
the defaults declared here.
"""

from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agenda.errors import AnalysisDecodeError

T = TypeVar('T', bound=BaseModel)


class _StrictModel(BaseModel):
    model_config = ConfigDict(strict=True, extra='ignore')


def _null_to_empty(value: Any) -> Any:
    return '' if value is None else value


# ── EVENT ────────────────────────────────────────────────────

class AttendeeData(_StrictModel):
    name:  str = ''
    email: str = ''
    phone: str = ''
    role:  str = ''          # required / optional

    @field_validator('name', 'email', 'phone', 'role', mode='before')
    @classmethod
    def null_to_empty(cls, v):
        return _null_to_empty(v)


class EventData(_StrictModel):
    title:             str                = ''
    description:       str                = ''
    start_time:        str                = ''
    end_time:          str                = ''
    location:          str                = ''
    event_id:          Optional[int]      = None     # internal id of a tracked event
    external_event_id: str                = ''       # calendar-provider id
    calendar_id:       str                = ''
    attendees:         List[AttendeeData] = Field(default_factory=list)

    @field_validator(
        'title', 'description', 'start_time', 'end_time',
        'location', 'external_event_id', 'calendar_id', mode='before',
    )
    @classmethod
    def null_to_empty(cls, v):
        return _null_to_empty(v)

    @field_validator('attendees', mode='before')
    @classmethod
    def null_attendees(cls, v):
        return [] if v is None else v

    def has_reference(self) -> bool:
        return bool(self.event_id) or bool(self.external_event_id.strip())

    def has_patch_fields(self) -> bool:
        return any(s.strip() for s in (
            self.title, self.description, self.start_time,
            self.end_time, self.location,
        ))


class EventAnalysis(_StrictModel):
    has_event:  bool                = False
    action:     str                 = 'none'
    event:      Optional[EventData] = None
    reasoning:  str                 = ''
    confidence: float               = 0.0

    @field_validator('action', mode='before')
    @classmethod
    def normalize_action(cls, v):
        if v is None:
            return 'none'
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('reasoning', mode='before')
    @classmethod
    def null_reasoning(cls, v):
        return _null_to_empty(v)

    @property
    def has_item(self) -> bool:
        return self.has_event

    @property
    def payload(self) -> Optional[EventData]:
        return self.event


# ── REMINDER ─────────────────────────────────────────────────

class ReminderData(_StrictModel):
    title:         str           = ''
    description:   str           = ''
    due_date:      str           = ''
    reminder_time: str           = ''
    priority:      str           = ''     # low / normal / high
    reminder_id:   Optional[int] = None   # internal id of a tracked reminder

    @field_validator(
        'title', 'description', 'due_date', 'reminder_time', 'priority',
        mode='before',
    )
    @classmethod
    def null_to_empty(cls, v):
        return _null_to_empty(v)


class ReminderAnalysis(_StrictModel):
    has_reminder: bool                   = False
    action:       str                    = 'none'
    reminder:     Optional[ReminderData] = None
    reasoning:    str                    = ''
    confidence:   float                  = 0.0

    @field_validator('action', mode='before')
    @classmethod
    def normalize_action(cls, v):
        if v is None:
            return 'none'
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('reasoning', mode='before')
    @classmethod
    def null_reasoning(cls, v):
        return _null_to_empty(v)

    @property
    def has_item(self) -> bool:
        return self.has_reminder

    @property
    def payload(self) -> Optional[ReminderData]:
        return self.reminder


# ── DECODE ───────────────────────────────────────────────────

def decode_analysis(model: Type[T], payload: str) -> T:
    """
    Validate a JSON object string against model. JSON-mode strict
    validation accepts nested objects and ints for floats, nothing looser.
    Raises AnalysisDecodeError.
    """
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        fields = ', '.join('.'.join(str(p) for p in err['loc']) for err in e.errors())
        raise AnalysisDecodeError(
            f"{model.__name__} decode failed on [{fields}]: {e}"
        ) from e
