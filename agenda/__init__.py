"""
agenda
Message-intent orchestration: routes inbound chat messages and emails
through LLM-backed detectors and reconciles the results into pending
calendar events and reminders.
"""

__version__ = '1.0.0'
