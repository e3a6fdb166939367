"""
agenda/llm/anthropic_adapter.py
Anthropic Messages API backend. Single-shot, no streaming, no retry.

Requires ANTHROPIC_API_KEY (or anthropic_api_key in agenda_config.json).
"""

import json
import logging
import urllib.error
import urllib.request

from agenda.errors import LLMError
from agenda.llm.base import LLMAdapter, DEFAULT_TIMEOUT_SEC

logger = logging.getLogger(__name__)

API_URL            = 'https://api.anthropic.com/v1/messages'
DEFAULT_MODEL      = 'claude-sonnet-4-20250514'
DEFAULT_MAX_TOKENS = 1024
ANTHROPIC_VERSION  = '2023-06-01'


class AnthropicAdapter(LLMAdapter):

    def __init__(
        self,
        api_key:     str,
        model:       str   = DEFAULT_MODEL,
        temperature: float = 0.1,
        max_tokens:  int   = DEFAULT_MAX_TOKENS,
        timeout_sec: int   = DEFAULT_TIMEOUT_SEC,
        api_url:     str   = API_URL,
    ):
        self.api_key     = api_key or ''
        self.model       = model or DEFAULT_MODEL
        self.temperature = temperature if temperature > 0 else 0.1
        self.max_tokens  = max_tokens
        self.timeout_sec = timeout_sec
        self.api_url     = api_url

    def is_configured(self) -> bool:
        return bool(self.api_key)

    # ── COMPLETION ───────────────────────────────────────────
    def complete(self, system: str, prompt: str) -> str:
        payload = json.dumps({
            'model':       self.model,
            'max_tokens':  self.max_tokens,
            'temperature': self.temperature,
            'system':      system,
            'messages':    [{'role': 'user', 'content': prompt}],
        }).encode('utf-8')

        req = urllib.request.Request(
            self.api_url,
            data    = payload,
            headers = {
                'Content-Type':      'application/json',
                'x-api-key':         self.api_key,
                'anthropic-version': ANTHROPIC_VERSION,
            },
            method  = 'POST',
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                raw = resp.read().decode('utf-8')
        except urllib.error.HTTPError as e:
            body = e.read().decode('utf-8', errors='replace')
            raise LLMError(f"API error (status {e.code}): {body}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise LLMError(f"failed to send request: {e}") from e

        return self._parse_response(raw)

    # ── RESPONSE PARSER ──────────────────────────────────────
    def _parse_response(self, raw: str) -> str:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LLMError(f"failed to unmarshal response: {e}") from e
        if not isinstance(data, dict):
            raise LLMError(f"unexpected response type: {type(data).__name__}")

        err = data.get('error')
        if err:
            raise LLMError(f"API error: {err.get('type', '')} - {err.get('message', '')}")

        content = data.get('content') or []
        if not content:
            raise LLMError("empty response from API")

        text = content[0].get('text', '')
        logger.debug(
            f"Anthropic reply: stop_reason={data.get('stop_reason')} "
            f"usage={data.get('usage')}"
        )
        return text
