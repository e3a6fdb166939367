"""
tests/test_config.py
agenda_config.json round trip, environment overrides, and the
fallbacks ensure_config applies.
"""

import json
from unittest.mock import patch

import pytest

from agenda.config import (
    DEFAULT_CONFIG, ENV_OVERRIDES,
    apply_env_overrides, ensure_config, load_config, save_config,
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestLoadSave:

    def test_missing_file_returns_defaults(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_defaults_are_a_copy(self, tmp_path):
        cfg = load_config(tmp_path)
        cfg['model'] = 'changed'
        assert DEFAULT_CONFIG['model'] != 'changed'

    def test_file_overrides_defaults(self, tmp_path):
        (tmp_path / 'agenda_config.json').write_text(json.dumps({'model': 'llama3.1:8b'}))
        cfg = load_config(tmp_path)
        assert cfg['model'] == 'llama3.1:8b'
        assert cfg['db_path'] == DEFAULT_CONFIG['db_path']

    def test_corrupt_file_falls_back(self, tmp_path):
        (tmp_path / 'agenda_config.json').write_text('{not json')
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_save_then_load(self, tmp_path):
        cfg = dict(DEFAULT_CONFIG, analysis_workers=4)
        path = save_config(cfg, tmp_path)
        assert path.name == 'agenda_config.json'
        assert load_config(tmp_path)['analysis_workers'] == 4


class TestEnvOverrides:

    def test_values_are_converted(self):
        cfg = apply_env_overrides(DEFAULT_CONFIG, {
            'AGENDA_MODEL':            'qwen2.5:7b-instruct',
            'AGENDA_TEMPERATURE':      '0.4',
            'AGENDA_ANALYSIS_WORKERS': ' 3 ',
        })
        assert cfg['model'] == 'qwen2.5:7b-instruct'
        assert cfg['temperature'] == 0.4
        assert cfg['analysis_workers'] == 3

    def test_input_is_not_mutated(self):
        base = dict(DEFAULT_CONFIG)
        apply_env_overrides(base, {'AGENDA_MODEL': 'other'})
        assert base == DEFAULT_CONFIG

    def test_empty_value_is_skipped(self):
        cfg = apply_env_overrides(DEFAULT_CONFIG, {'ANTHROPIC_API_KEY': ''})
        assert cfg['anthropic_api_key'] == DEFAULT_CONFIG['anthropic_api_key']

    def test_invalid_number_is_ignored(self, caplog):
        cfg = apply_env_overrides(DEFAULT_CONFIG, {'AGENDA_MESSAGE_HISTORY_SIZE': 'lots'})
        assert cfg['message_history_size'] == DEFAULT_CONFIG['message_history_size']
        assert 'AGENDA_MESSAGE_HISTORY_SIZE' in caplog.text


class TestEnsureConfig:

    def test_loads_dotenv_from_root(self, tmp_path, clean_env):
        with patch('agenda.config.load_dotenv') as load:
            ensure_config(tmp_path)
        load.assert_called_once_with(tmp_path / '.env')

    def test_environment_beats_file(self, tmp_path, clean_env):
        (tmp_path / 'agenda_config.json').write_text(json.dumps({'db_path': 'file.db'}))
        clean_env.setenv('AGENDA_DB_PATH', 'env.db')
        assert ensure_config(tmp_path)['db_path'] == 'env.db'

    def test_non_positive_sizes_fall_back(self, tmp_path, clean_env):
        (tmp_path / 'agenda_config.json').write_text(json.dumps({
            'message_history_size': 0,
            'analysis_workers':     -1,
        }))
        cfg = ensure_config(tmp_path)
        assert cfg['message_history_size'] == 25
        assert cfg['analysis_workers'] == 2
