"""
agenda/llm/ollama_adapter.py
Ollama backend adapter for running detection against a local model.
Supports any model pulled via `ollama pull <model>`.

RECOMMENDED MODELS:
  llama3.1:8b       (good JSON discipline at temperature 0.1)
  qwen2.5:7b-instruct
"""

import json
import logging
import urllib.error
import urllib.request
from typing import List

from agenda.errors import LLMError
from agenda.llm.base import LLMAdapter, DEFAULT_TIMEOUT_SEC

logger = logging.getLogger(__name__)


class OllamaAdapter(LLMAdapter):

    def __init__(
        self,
        model:       str   = 'llama3.1:8b',
        host:        str   = 'http://localhost:11434',
        timeout_sec: int   = DEFAULT_TIMEOUT_SEC,
        temperature: float = 0.1,
        num_predict: int   = 1024,
    ):
        self.model       = model
        self.host        = host.rstrip('/')
        self.timeout_sec = timeout_sec
        self.temperature = temperature
        self.num_predict = num_predict

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_configured(self) -> bool:
        """Ping Ollama and confirm the configured model is pulled."""
        models = self.list_available_models()
        available = any(
            m == self.model or m.startswith(self.model.split(':')[0])
            for m in models
        )
        if not available:
            logger.warning(
                f"Model '{self.model}' not available at {self.host}. "
                f"Available: {models}. Run: ollama pull {self.model}"
            )
        return available

    def list_available_models(self) -> List[str]:
        """Return locally available Ollama model names, or [] if unreachable."""
        try:
            req = urllib.request.Request(f"{self.host}/api/tags", method='GET')
            with urllib.request.urlopen(req, timeout=5) as resp:
                data = json.loads(resp.read().decode())
            return [m['name'] for m in data.get('models', [])]
        except (urllib.error.URLError, OSError, json.JSONDecodeError, KeyError) as e:
            logger.warning(f"Ollama not reachable at {self.host}: {e}")
            return []

    # ── COMPLETION ───────────────────────────────────────────
    def complete(self, system: str, prompt: str) -> str:
        payload = json.dumps({
            'model':   self.model,
            'system':  system,
            'prompt':  prompt,
            'stream':  False,
            'options': {
                'temperature': self.temperature,
                'num_predict': self.num_predict,
            },
            'format':  'json',   # Ollama JSON mode
        }).encode('utf-8')

        req = urllib.request.Request(
            f"{self.host}/api/generate",
            data    = payload,
            headers = {'Content-Type': 'application/json'},
            method  = 'POST',
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                data = json.loads(resp.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            body = e.read().decode('utf-8', errors='replace')
            raise LLMError(f"Ollama error (status {e.code}): {body}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise LLMError(f"Ollama request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise LLMError(f"JSON decode failed in Ollama response: {e}") from e

        text = (data.get('response') or '').strip()
        if not text:
            raise LLMError("empty response from Ollama")
        return text
