"""
agenda/llm: LLM backends behind the LLMAdapter interface.
"""

from agenda.llm.base import LLMAdapter
from agenda.llm.anthropic_adapter import AnthropicAdapter
from agenda.llm.ollama_adapter import OllamaAdapter

__all__ = [
    "LLMAdapter",
    "AnthropicAdapter",
    "OllamaAdapter",
]
