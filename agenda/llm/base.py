"""
agenda/llm/base.py
Abstract base class for all LLM adapters.
To add a new backend: subclass LLMAdapter and implement complete().
"""

from abc import ABC, abstractmethod

DEFAULT_TIMEOUT_SEC = 60


class LLMAdapter(ABC):
    """
    All LLM backends implement this interface.
    Analyzers call complete() with a system prompt and a user prompt
    and get back the model's raw text reply. The caller never knows
    which backend is running.
    """

    model: str = ''

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Returns True if the backend has what it needs to run
        (credentials, a reachable host). The registry only wires up
        analyzers whose adapter is configured.
        """
        ...

    @abstractmethod
    def complete(self, system: str, prompt: str) -> str:
        """
        Send one system + user prompt pair and return the reply text.
        Raises LLMError on transport failure, non-2xx status,
        an error payload, or an empty reply. Never returns None.
        """
        ...
