"""
agenda/analyzers/langpolicy.py
Output-language policy for analyzer replies.

The language of the triggering text decides the language the model
must write user-facing fields in (title, description, location).
Detection is deliberately coarse:

  Hebrew / Arabic / Cyrillic   dominant script (>= 35% of letters)
  Latin                        special characters, then keyword hints,
                               then "long Latin text is English"

Only reliable detections produce an instruction or a mismatch; short
single-token values (brand names, places) and URLs/emails are neutral.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

SCRIPTS = ('hebrew', 'arabic', 'cyrillic', 'latin')

LANGUAGE_LABELS = {
    'he': 'Hebrew',
    'ar': 'Arabic',
    'ru': 'Russian',
    'es': 'Spanish',
    'fr': 'French',
    'pt': 'Portuguese',
    'de': 'German',
    'it': 'Italian',
    'en': 'English',
}

# ── LATIN HINTS ──────────────────────────────────────────────

LATIN_KEYWORD_HINTS: Dict[str, frozenset] = {
    'en': frozenset({'tomorrow', 'today', 'meeting', 'please', 'remind', 'with', 'about', 'schedule'}),
    'es': frozenset({'mañana', 'hoy', 'reunión', 'reunion', 'recordar', 'equipo', 'gracias', 'por'}),
    'fr': frozenset({'demain', 'aujourd', 'réunion', 'rappel', 'bonjour', 'avec', 'merci', 'pour'}),
    'pt': frozenset({'amanhã', 'hoje', 'reunião', 'lembrete', 'obrigado', 'com', 'para', 'equipe'}),
    'de': frozenset({'morgen', 'heute', 'besprechung', 'erinnerung', 'danke', 'mit', 'bitte', 'termin'}),
    'it': frozenset({'domani', 'oggi', 'riunione', 'promemoria', 'grazie', 'con', 'per', 'incontro'}),
}

# 'ü' counts for German only
SPECIAL_CHARS: Dict[str, str] = {
    'pt': 'ãõ',
    'de': 'äöüß',
    'fr': 'àâçèêëîïôûùÿœæ',
    'it': 'ìò',
    'es': 'ñ¿¡áíóú',
}

_TOKEN_RE = re.compile(r'[^\W\d_]+')
_URL_RE   = re.compile(r'(?i)(https?://|www\.)')
_EMAIL_RE = re.compile(r'(?i)\b[\w.%+\-]+@[\w.\-]+\.[a-z]{2,}\b')


@dataclass
class TargetLanguage:
    code:       str   = ''
    label:      str   = 'Unknown'
    script:     str   = ''
    confidence: float = 0.0
    reliable:   bool  = False


@dataclass
class FieldMismatch:
    field:         str
    detected_code: str
    detected_name: str
    reason:        str


@dataclass
class ValidationResult:
    checked_fields: int = 0
    matched_fields: int = 0
    skipped_fields: int = 0
    mismatches:     List[FieldMismatch] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return not self.mismatches

    def describe(self) -> str:
        if not self.mismatches:
            return 'none'
        return ', '.join(f"{m.field}({m.reason})" for m in self.mismatches)


UNKNOWN = TargetLanguage()


def _target(code: str, script: str, confidence: float) -> TargetLanguage:
    return TargetLanguage(
        code       = code,
        label      = LANGUAGE_LABELS.get(code, 'Unknown'),
        script     = script,
        confidence = confidence,
        reliable   = True,
    )


# ── DETECTION ────────────────────────────────────────────────

def count_scripts(text: str) -> Tuple[Dict[str, int], int]:
    """Per-script letter counts and the total number of letters."""
    counts = {s: 0 for s in SCRIPTS}
    total  = 0
    for ch in text:
        if not ch.isalpha():
            continue
        total += 1
        name = unicodedata.name(ch, '')
        for script in SCRIPTS:
            if name.startswith(script.upper()):
                counts[script] += 1
                break
    return counts, total


def _best_two(scores: Mapping[str, int], order) -> Tuple[str, int, int]:
    best_code, best, second = '', 0, 0
    for code in order:
        score = scores.get(code, 0)
        if score > best:
            best_code, best, second = code, score, best
        elif score > second:
            second = score
    return best_code, best, second


def _latin_by_special_chars(text: str) -> str:
    counts = {code: sum(text.count(c) for c in chars) for code, chars in SPECIAL_CHARS.items()}
    code, best, second = _best_two(counts, SPECIAL_CHARS)
    # a single accented word must not flip the whole text
    if best >= 2 and best >= second + 1:
        return code
    return ''


def _latin_by_keywords(text: str) -> Tuple[str, int, int]:
    scores: Dict[str, int] = {}
    for token in _TOKEN_RE.findall(text):
        for code, hints in LATIN_KEYWORD_HINTS.items():
            if token in hints:
                scores[code] = scores.get(code, 0) + 1
    return _best_two(scores, LATIN_KEYWORD_HINTS)


def detect_target_language(text: str) -> TargetLanguage:
    trimmed = (text or '').strip()
    if not trimmed:
        return UNKNOWN

    counts, total = count_scripts(trimmed)
    if total == 0:
        return UNKNOWN

    dominant, dominant_count, _ = _best_two(counts, SCRIPTS)
    ratio = dominant_count / total
    if dominant in ('hebrew', 'arabic', 'cyrillic') and dominant_count >= 2 and ratio >= 0.35:
        code = {'hebrew': 'he', 'arabic': 'ar', 'cyrillic': 'ru'}[dominant]
        return _target(code, dominant, min(0.7 + ratio * 0.28, 0.98))

    latin = counts['latin']
    if latin == 0:
        return UNKNOWN

    lower = trimmed.lower()
    code  = _latin_by_special_chars(lower)
    if code:
        return _target(code, 'latin', 0.9)

    code, best, second = _latin_by_keywords(lower)
    if best >= 2 and best >= second + 1:
        return _target(code, 'latin', min(0.72 + (best - second) * 0.08, 0.95))

    if latin >= 8 and len(_TOKEN_RE.findall(lower)) >= 2:
        return _target('en', 'latin', 0.62)

    return TargetLanguage(script='latin', confidence=0.45)


# ── VALIDATION ───────────────────────────────────────────────

def is_neutral_field(value: str) -> bool:
    """URLs, emails, and short single tokens (names, brands) are never checked."""
    trimmed = value.strip()
    if not trimmed:
        return True
    if _EMAIL_RE.search(trimmed) or _URL_RE.search(trimmed):
        return True
    letters = sum(1 for ch in trimmed if ch.isalpha())
    if letters == 0:
        return True
    return len(_TOKEN_RE.findall(trimmed)) <= 1 and letters <= 8


def is_language_compatible(target: TargetLanguage, detected: TargetLanguage) -> bool:
    if target.script != 'latin':
        return target.script == detected.script
    if detected.script != 'latin':
        return False
    if not target.code or not detected.code or target.code == detected.code:
        return True
    # weak Latin detections are not trusted to disagree
    return detected.confidence < 0.8


def validate_fields_language(target: TargetLanguage, fields: Mapping[str, str]) -> ValidationResult:
    result = ValidationResult()
    if not target.reliable or not target.code:
        return result

    for key in sorted(fields):
        value = (fields[key] or '').strip()
        if is_neutral_field(value):
            result.skipped_fields += 1
            continue

        result.checked_fields += 1
        detected = detect_target_language(value)
        if not detected.reliable or not detected.code:
            result.skipped_fields += 1
            continue

        if is_language_compatible(target, detected):
            result.matched_fields += 1
            continue

        reason = f"expected {target.label}, got {detected.label}"
        if target.script != detected.script:
            reason = f"expected {target.script} script, got {detected.script} script"
        result.mismatches.append(FieldMismatch(
            field         = key,
            detected_code = detected.code,
            detected_name = detected.label,
            reason        = reason,
        ))
    return result


# ── PROMPT TEXT ──────────────────────────────────────────────

def build_language_instruction(target: TargetLanguage) -> str:
    if not target.reliable or not target.code:
        return ''
    return (
        f"Generate all user-facing text fields (title, description, and location "
        f"when applicable) in {target.label} ({target.code}), matching the latest "
        f"triggering discussion language. Do not translate proper nouns, URLs, "
        f"email addresses, or quoted literals."
    )


def build_corrective_retry_instruction(target: TargetLanguage, validation: ValidationResult) -> str:
    if not target.reliable or not target.code:
        return ''
    fields = ', '.join(m.field for m in validation.mismatches) or 'the user-facing text fields'
    return (
        f"Your previous output language did not match. Re-run and return {fields} "
        f"in {target.label} ({target.code}). Keep proper nouns, URLs, email "
        f"addresses, and quoted literals unchanged."
    )
