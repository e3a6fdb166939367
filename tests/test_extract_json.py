"""
tests/test_extract_json.py
Recovering the JSON object from free-form model replies.
"""

import pytest

from agenda.analyzers.extract import brace_depth_slice, extract_json, recover_json_object
from agenda.errors import AnalyzerError


class TestExtractJson:

    def test_fenced_block_inside_prose(self):
        text = 'prose\n```json\n{"a":1}\n```\nmore prose'
        assert extract_json(text) == '{"a":1}'

    def test_bare_object_is_returned_stripped(self):
        assert extract_json('  \n{"a": 1}\n ') == '{"a": 1}'

    def test_nested_object(self):
        text = 'Result: {"event": {"title": "Dinner"}, "confidence": 0.9} Thanks!'
        assert extract_json(text) == '{"event": {"title": "Dinner"}, "confidence": 0.9}'

    def test_brace_inside_string_value(self):
        text = 'Here: {"title": "a } b", "x": 1} end'
        assert extract_json(text) == '{"title": "a } b", "x": 1}'

    def test_skips_non_json_braces_before_the_object(self):
        text = 'use {braces} sparingly, then {"a": 2}'
        assert extract_json(text) == '{"a": 2}'

    def test_no_object_falls_back_to_depth_slice(self):
        assert extract_json('no json here') == 'no json here'


class TestBraceDepthSlice:

    def test_matched_braces(self):
        assert brace_depth_slice('x {"a": {"b": 1}} y') == '{"a": {"b": 1}}'

    def test_unterminated_runs_to_end(self):
        assert brace_depth_slice('x {"a": {') == '{"a": {'

    def test_no_brace_starts_at_zero(self):
        assert brace_depth_slice('plain') == 'plain'


class TestRecoverJsonObject:

    def test_returns_object_text(self):
        assert recover_json_object('Sure! {"has_event": false}') == '{"has_event": false}'

    def test_unparsable_raises(self):
        with pytest.raises(AnalyzerError, match='failed to parse analysis JSON'):
            recover_json_object('I could not find anything')

    def test_array_is_not_an_object(self):
        with pytest.raises(AnalyzerError, match='not an object'):
            recover_json_object('[1, 2, 3]')

    def test_truncated_reply_raises(self):
        with pytest.raises(AnalyzerError):
            recover_json_object('{"has_event": true, "event": {"title": "Din')
