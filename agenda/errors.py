"""
agenda/errors.py
Exception hierarchy. Every error the pipeline raises on purpose
derives from AgendaError so orchestrators can catch one base class.
"""


class AgendaError(Exception):
    """Base class for all agenda errors."""


# ── LLM / ANALYZER ───────────────────────────────────────────

class LLMError(AgendaError):
    """Backend unreachable, non-2xx status, or an unusable reply."""


class AnalyzerError(LLMError):
    """The reply could not be turned into a JSON analysis."""


class AnalysisDecodeError(LLMError):
    """The JSON analysis does not match the expected schema."""


# ── MODULES ──────────────────────────────────────────────────

class ModuleValidationError(AgendaError):
    """A module output is missing fields required by its action."""


# ── RECONCILER ───────────────────────────────────────────────

class ReconcileError(AgendaError):
    pass


class UnknownActionError(ReconcileError):

    def __init__(self, action: str):
        super().__init__(f"unknown action type: {action}")
        self.action = action


class EventCreationError(ReconcileError):
    pass


class ReminderCreationError(ReconcileError):
    pass


# ── STORAGE ──────────────────────────────────────────────────

class StoreError(AgendaError):
    pass
