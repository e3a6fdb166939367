"""
tests/test_langpolicy.py
Trigger language detection, per-field validation, and the prompt text
that asks for (or corrects) the output language.
"""

import pytest

from agenda.analyzers.langpolicy import (
    TargetLanguage, ValidationResult,
    build_corrective_retry_instruction, build_language_instruction,
    detect_target_language, is_neutral_field, validate_fields_language,
)


class TestScriptDetection:

    def test_hebrew(self):
        target = detect_target_language('נפגשים מחר בשש בערב')
        assert (target.code, target.label, target.script) == ('he', 'Hebrew', 'hebrew')
        assert target.reliable
        assert target.confidence == pytest.approx(0.98)

    def test_cyrillic_is_russian(self):
        target = detect_target_language('Встреча завтра в три')
        assert (target.code, target.label, target.script) == ('ru', 'Russian', 'cyrillic')
        assert target.reliable

    def test_arabic(self):
        assert detect_target_language('اجتماع غدا').code == 'ar'

    def test_minority_script_does_not_win(self):
        # 2 Hebrew letters against 9 Latin ones
        target = detect_target_language('Meeting at שש')
        assert (target.code, target.script) == ('en', 'latin')

    @pytest.mark.parametrize('text', ['', '   ', '12:30', '!!'])
    def test_no_letters_is_unknown(self, text):
        target = detect_target_language(text)
        assert not target.reliable
        assert target.code == ''


class TestLatinDetection:

    def test_spanish_special_characters(self):
        target = detect_target_language('mañana reunión con equipo')
        assert (target.code, target.label) == ('es', 'Spanish')
        assert target.confidence == 0.9

    def test_german_special_characters(self):
        assert detect_target_language('Schöne Grüße aus München').code == 'de'

    def test_single_accent_is_not_enough(self):
        target = detect_target_language('café')
        assert not target.reliable
        assert target.script == 'latin'
        assert target.confidence == 0.45

    def test_french_keywords(self):
        target = detect_target_language('demain avec Paul')
        assert (target.code, target.label) == ('fr', 'French')
        assert target.confidence == pytest.approx(0.88)

    def test_german_keywords(self):
        target = detect_target_language('heute Besprechung mit Team')
        assert target.code == 'de'
        assert target.confidence == pytest.approx(0.95)

    def test_italian_keywords(self):
        assert detect_target_language('domani riunione con Marco').code == 'it'

    def test_long_latin_text_falls_back_to_english(self):
        target = detect_target_language('Dinner Friday at 7?')
        assert (target.code, target.confidence) == ('en', 0.62)
        assert target.reliable

    def test_short_latin_text_is_unreliable(self):
        target = detect_target_language('ok')
        assert not target.reliable
        assert target.code == ''


class TestNeutralFields:

    @pytest.mark.parametrize('value', [
        '', '   ', 'https://example.com/invite', 'www.example.com',
        'bob@example.com', '12:30', 'Luigi',
    ])
    def test_neutral(self, value):
        assert is_neutral_field(value)

    def test_multi_word_text_is_checked(self):
        assert not is_neutral_field('Pizza night')


class TestValidateFields:

    def test_script_mismatch(self):
        target = detect_target_language('נפגשים מחר בשש בערב')
        result = validate_fields_language(target, {
            'title':       'Встреча с командой',
            'description': '',
            'location':    'Tel Aviv',
        })
        assert not result.is_match
        assert (result.checked_fields, result.matched_fields, result.skipped_fields) == (2, 0, 2)
        mismatch = result.mismatches[0]
        assert (mismatch.field, mismatch.detected_code) == ('title', 'ru')
        assert mismatch.reason == 'expected hebrew script, got cyrillic script'

    def test_same_script_matches(self):
        target = detect_target_language('נפגשים מחר בשש בערב')
        result = validate_fields_language(target, {'title': 'ארוחת ערב עם המשפחה'})
        assert result.is_match
        assert result.matched_fields == 1

    def test_confident_latin_mismatch(self):
        target = detect_target_language('mañana reunión con equipo')
        result = validate_fields_language(target, {'title': 'Team meeting tomorrow'})
        assert result.mismatches[0].reason == 'expected Spanish, got English'

    def test_weak_latin_detection_is_tolerated(self):
        target = detect_target_language('mañana reunión con equipo')
        result = validate_fields_language(target, {'title': 'Dinner with friends'})
        assert result.is_match
        assert result.matched_fields == 1

    def test_unreliable_target_checks_nothing(self):
        result = validate_fields_language(TargetLanguage(), {'title': 'Встреча с командой'})
        assert result.is_match
        assert result.checked_fields == 0


class TestInstructions:

    def test_language_instruction(self):
        target = detect_target_language('Встреча завтра в три')
        assert build_language_instruction(target) == (
            'Generate all user-facing text fields (title, description, and location '
            'when applicable) in Russian (ru), matching the latest triggering '
            'discussion language. Do not translate proper nouns, URLs, email '
            'addresses, or quoted literals.'
        )

    def test_no_instruction_for_unknown(self):
        assert build_language_instruction(detect_target_language('ok')) == ''

    def test_retry_names_mismatched_fields(self):
        target = detect_target_language('נפגשים מחר בשש בערב')
        result = validate_fields_language(target, {
            'title':       'Встреча с командой',
            'description': 'Обсудим новый проект',
        })
        assert build_corrective_retry_instruction(target, result) == (
            'Your previous output language did not match. Re-run and return '
            'description, title in Hebrew (he). Keep proper nouns, URLs, email '
            'addresses, and quoted literals unchanged.'
        )

    def test_retry_without_mismatches(self):
        target = detect_target_language('נפגשים מחר בשש בערב')
        text   = build_corrective_retry_instruction(target, ValidationResult())
        assert 'return the user-facing text fields in Hebrew (he)' in text
