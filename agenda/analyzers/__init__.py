"""
agenda/analyzers: LLM-backed detectors, one per intent kind.
"""

from agenda.analyzers.base import Analyzer
from agenda.analyzers.event_analyzer import EventAnalyzer
from agenda.analyzers.reminder_analyzer import ReminderAnalyzer
from agenda.analyzers.extract import extract_json
from agenda.analyzers.langpolicy import detect_target_language

__all__ = [
    "Analyzer",
    "EventAnalyzer",
    "ReminderAnalyzer",
    "extract_json",
    "detect_target_language",
]
