"""
agenda/config.py
Runtime config. Persists to agenda_config.json; environment variables
(and a .env file, if present) override what the file says.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "db_path":                "agenda.db",
    "llm_backend":            "anthropic",
    "anthropic_api_key":      "",
    "model":                  "claude-sonnet-4-20250514",
    "temperature":            0.1,
    "max_tokens":             1024,
    "ollama_host":            "http://localhost:11434",
    "request_timeout_sec":    60,
    "message_history_size":   25,
    "min_persist_confidence": 0.3,
    "analysis_workers":       2,
    "drain_on_shutdown":      True,
    "notify_webhook_url":     "",
    "api_host":               "127.0.0.1",
    "api_port":               8765,
}

# env var -> (config key, converter)
ENV_OVERRIDES: Dict[str, tuple] = {
    "AGENDA_DB_PATH":              ("db_path",                str),
    "AGENDA_LLM_BACKEND":          ("llm_backend",            str),
    "ANTHROPIC_API_KEY":           ("anthropic_api_key",      str),
    "AGENDA_MODEL":                ("model",                  str),
    "AGENDA_TEMPERATURE":          ("temperature",            float),
    "AGENDA_OLLAMA_HOST":          ("ollama_host",            str),
    "AGENDA_MESSAGE_HISTORY_SIZE": ("message_history_size",   int),
    "AGENDA_MIN_CONFIDENCE":       ("min_persist_confidence", float),
    "AGENDA_ANALYSIS_WORKERS":     ("analysis_workers",       int),
    "AGENDA_NOTIFY_WEBHOOK":       ("notify_webhook_url",     str),
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / "agenda_config.json"


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from agenda_config.json. Returns defaults if missing."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to agenda_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def apply_env_overrides(
    config:  Dict[str, Any],
    environ: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Returns a copy of config with environment overrides applied."""
    env    = os.environ if environ is None else environ
    merged = dict(config)
    for var, (key, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            merged[key] = _convert(convert, raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {var}={raw!r}")
    return merged


def _convert(convert: Callable[[str], Any], raw: str) -> Any:
    return convert(raw.strip())


def ensure_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load .env, then agenda_config.json, then apply environment overrides.
    Non-positive history size / worker count fall back to their defaults.
    """
    root = project_root or Path.cwd()
    load_dotenv(root / ".env")
    config = apply_env_overrides(load_config(root))

    if int(config.get("message_history_size") or 0) <= 0:
        config["message_history_size"] = DEFAULT_CONFIG["message_history_size"]
    if int(config.get("analysis_workers") or 0) <= 0:
        config["analysis_workers"] = DEFAULT_CONFIG["analysis_workers"]
    return config
