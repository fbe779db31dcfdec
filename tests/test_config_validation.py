"""
Test suite for config loading and validation.

Verifies that config errors are clear, show examples, and fall back to defaults.
"""

import json

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from dbfaults.catalog import FailureCatalog, FailureCategory
from dbfaults.config import Config
from dbfaults.exceptions import DuplicateCodeError
from dbfaults.retry import no_backoff
from dbfaults.scripted import ExhaustionMode
from dbfaults.structured_events import EventEmitter, EventType


@pytest.fixture
def config_file(tmp_path):
    """Write a dict to config.json and return its path."""
    path = tmp_path / "config.json"

    def write(data):
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return write


class TestDefaults:
    """Test behavior without a config file."""

    def test_defaults(self):
        config = Config()
        assert config.max_attempts == 3
        assert config.exhaustion_mode is ExhaustionMode.STICKY_TAIL
        assert config.retryable_categories == frozenset({
            FailureCategory.COMMAND_TIMEOUT,
            FailureCategory.LOCK_TIMEOUT,
            FailureCategory.DEADLOCK,
            FailureCategory.SNAPSHOT_CONFLICT,
        })
        assert config.allow_overwrite is False

    def test_missing_file_uses_defaults(self, tmp_path):
        config = Config(tmp_path / "absent.json")
        assert config.max_attempts == 3

    def test_default_policy(self):
        policy = Config().build_retry_policy()
        assert policy.max_attempts == 3
        assert policy.backoff is no_backoff

    def test_get_and_set(self):
        config = Config()
        config.set('max_attempts', 7)
        assert config.get('max_attempts') == 7
        assert config.get('nonexistent', 'fallback') == 'fallback'

    def test_defaults_are_not_shared(self):
        first = Config()
        first.set('max_attempts', 9)
        assert Config().max_attempts == 3

    def test_default_lists_are_not_shared(self):
        first = Config()
        first.get('retryable_categories').append('TransactionAbort')
        first.get('extra_codes').append({'code': 1, 'category': 'Deadlock'})

        second = Config()
        assert 'TransactionAbort' not in second.get('retryable_categories')
        assert FailureCategory.TRANSACTION_ABORT not in second.build_retry_policy().retryable_categories
        assert 1 not in second.build_catalog()


class TestLoading:
    """Test valid config files."""

    def test_valid_config_loads(self, config_file):
        config = Config(config_file({
            'max_attempts': 5,
            'exhaustion_mode': 'strict',
            'retryable_categories': ['Deadlock'],
        }))

        assert config.max_attempts == 5
        assert config.exhaustion_mode is ExhaustionMode.STRICT
        assert config.retryable_categories == frozenset({FailureCategory.DEADLOCK})

    def test_exponential_backoff_policy(self, config_file):
        config = Config(config_file({
            'backoff_strategy': 'exponential',
            'backoff_base_seconds': 0.5,
            'backoff_multiplier': 3,
            'backoff_max_seconds': 2,
        }))

        backoff = config.build_retry_policy().backoff
        assert [backoff(n) for n in (1, 2, 3)] == [0.5, 1.5, 2]

    def test_constant_backoff_policy(self, config_file):
        config = Config(config_file({'backoff_strategy': 'constant', 'backoff_base_seconds': 1}))
        backoff = config.build_retry_policy().backoff
        assert backoff(1) == backoff(5) == 1

    def test_max_attempts_argument_wins(self, config_file):
        config = Config(config_file({'max_attempts': 5}))
        assert config.build_retry_policy(max_attempts=2).max_attempts == 2

    def test_extra_codes_registered(self, config_file):
        config = Config(config_file({
            'extra_codes': [
                {'code': 40001, 'category': 'Deadlock', 'message': 'Serialization failure', 'retryable': True},
                {'code': 40613, 'category': 'CommandTimeout'},
            ]
        }))

        catalog = config.build_catalog()
        assert catalog.lookup(40001).category is FailureCategory.DEADLOCK
        assert catalog.lookup(40613).retryable is False
        assert "40613" in catalog.lookup(40613).default_message
        assert 1205 in catalog

    def test_extra_code_collision_fails_fast(self, config_file):
        config = Config(config_file({
            'extra_codes': [{'code': 1205, 'category': 'LockTimeout', 'message': 'x', 'retryable': False}]
        }))

        with pytest.raises(DuplicateCodeError):
            config.build_catalog()

    def test_extra_code_overwrite_allowed(self, config_file):
        config = Config(config_file({
            'allow_overwrite': True,
            'extra_codes': [{'code': 1205, 'category': 'LockTimeout', 'message': 'x', 'retryable': False}]
        }))

        entry = config.build_catalog().lookup(1205)
        assert entry.category is FailureCategory.LOCK_TIMEOUT
        assert entry.retryable is False

    def test_build_catalog_from_base_leaves_base_alone(self, config_file):
        base = FailureCatalog.seeded()
        config = Config(config_file({'extra_codes': [{'code': 1, 'category': 'Deadlock'}]}))

        catalog = config.build_catalog(base)

        assert 1 in catalog
        assert 1 not in base

    def test_build_catalog_from_base_emits_events(self, config_file):
        emitter = EventEmitter(enable_console=False)
        config = Config(config_file({'extra_codes': [{'code': 40001, 'category': 'Deadlock'}]}))

        config.build_catalog(FailureCatalog.seeded(), emitter=emitter)

        events = emitter.query_events(event_type=EventType.CATALOG_ENTRY_REGISTERED)
        assert [e.context['code'] for e in events] == [40001]

    def test_save_and_reload(self, tmp_path):
        config = Config()
        config.set('max_attempts', 8)
        path = tmp_path / "saved.json"
        config.save_config(path)

        assert Config(path).max_attempts == 8


class TestValidationErrors:
    """Test that bad values show clear errors and fall back to defaults."""

    def test_invalid_type_shows_clear_error(self, config_file, capsys):
        config = Config(config_file({'max_attempts': "three"}))

        assert config.max_attempts == 3
        captured = capsys.readouterr()
        assert "ERROR: Invalid config value" in captured.out
        assert "Field: max_attempts" in captured.out
        assert "'three' (str)" in captured.out
        assert "Example: 3" in captured.out
        assert "Using default configuration instead." in captured.out

    def test_out_of_range(self, config_file, capsys):
        config = Config(config_file({'max_attempts': 0}))
        assert config.max_attempts == 3
        assert "between 1 and 100" in capsys.readouterr().out

    def test_unknown_category(self, config_file, capsys):
        config = Config(config_file({'retryable_categories': ['Deadlock', 'Meltdown']}))
        assert FailureCategory.LOCK_TIMEOUT in config.retryable_categories
        assert "'Meltdown'" in capsys.readouterr().out

    def test_bad_exhaustion_mode(self, config_file, capsys):
        Config(config_file({'exhaustion_mode': 'loop'}))
        assert "Field: exhaustion_mode" in capsys.readouterr().out

    def test_bad_backoff_strategy(self, config_file, capsys):
        Config(config_file({'backoff_strategy': 'fibonacci'}))
        assert "none, constant, exponential" in capsys.readouterr().out

    def test_negative_backoff(self, config_file, capsys):
        Config(config_file({'backoff_base_seconds': -1}))
        assert "non-negative number" in capsys.readouterr().out

    def test_extra_code_with_unknown_category(self, config_file, capsys):
        config = Config(config_file({'extra_codes': [{'code': 5, 'category': 'Unknown'}]}))
        assert config.get('extra_codes') == []
        assert "extra_codes[0].category" in capsys.readouterr().out

    def test_extra_code_with_bad_code(self, config_file, capsys):
        Config(config_file({'extra_codes': [{'code': "40001", 'category': 'Deadlock'}]}))
        assert "extra_codes[0].code" in capsys.readouterr().out

    def test_extra_codes_not_a_list(self, config_file, capsys):
        Config(config_file({'extra_codes': {'code': 1}}))
        assert "Field: extra_codes" in capsys.readouterr().out

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{ invalid json }", encoding="utf-8")

        config = Config(path)

        assert config.max_attempts == 3
        captured = capsys.readouterr()
        assert "Invalid JSON" in captured.out
        assert "Line:" in captured.out

    def test_non_object_json(self, tmp_path, capsys):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")

        Config(path)

        assert "must contain a JSON object" in capsys.readouterr().out

    def test_multiple_errors_reported(self, config_file, capsys):
        Config(config_file({'max_attempts': -1, 'allow_overwrite': 'yes', 'log_folder': 5}))

        out = capsys.readouterr().out
        assert "Field: max_attempts" in out
        assert "Field: allow_overwrite" in out
        assert "log_folder must be a string" in out
