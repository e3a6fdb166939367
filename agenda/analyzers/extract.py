"""
agenda/analyzers/extract.py
Recovers the JSON object from a model reply. Models wrap JSON in
markdown fences or prose despite being told not to.
"""

import json

from agenda.errors import AnalyzerError

_decoder = json.JSONDecoder()


def extract_json(text: str) -> str:
    """
    Return the JSON object substring of text.

    1. The whole (stripped) reply decodes: return it.
    2. Otherwise try a structured decode at each '{' in turn and return
       the first object that decodes. Braces inside string values do
       not confuse this, unlike depth counting.
    3. Nothing decodes: return the brace-depth slice so the caller's
       parse fails with the model's actual text in hand.
    """
    stripped = text.strip()
    try:
        json.loads(stripped)
        return stripped
    except json.JSONDecodeError:
        pass

    idx = text.find('{')
    while idx != -1:
        try:
            obj, end = _decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find('{', idx + 1)
            continue
        if isinstance(obj, dict):
            return text[idx:end]
        idx = text.find('{', end)

    return brace_depth_slice(text)


def brace_depth_slice(text: str) -> str:
    """
    First '{' to its depth-matched '}'. Not string-aware.
    No '{' starts at 0; no match runs to the end.
    """
    start = text.find('{')
    if start == -1:
        start = 0
    depth = 0
    end   = len(text)
    for i in range(start, len(text)):
        ch = text[i]
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                end = i + 1
                break
    return text[start:end]


def recover_json_object(text: str) -> str:
    """extract_json, checked to hold a JSON object. Raises AnalyzerError otherwise."""
    payload = extract_json(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise AnalyzerError(
            f"failed to parse analysis JSON: {e} (response: {text[:500]})"
        ) from e
    if not isinstance(data, dict):
        raise AnalyzerError(f"analysis JSON is not an object (response: {text[:500]})")
    return payload
