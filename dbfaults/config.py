"""
Configuration management for dbfaults.
Loads and validates settings for retry policies, scripted sources and extra catalog codes.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .catalog import SEEDED_ENTRIES, FailureCatalog, FailureCategory
from .error_messages import format_config_error
from .retry import RetryPolicy, constant_backoff, exponential_backoff, no_backoff
from .scripted import ExhaustionMode


class Config:
    """Manages library configuration."""

    # Default configuration values
    DEFAULT_CONFIG = {
        'max_attempts': 3,
        'backoff_strategy': 'none',
        'backoff_base_seconds': 0.1,
        'backoff_multiplier': 2.0,
        'backoff_max_seconds': 5.0,
        'retryable_categories': ['CommandTimeout', 'LockTimeout', 'Deadlock', 'SnapshotConflict'],
        'exhaustion_mode': 'sticky',
        'extra_codes': [],
        'allow_overwrite': False,
        'max_log_files': 5,
        'log_folder': 'logs'
    }

    BACKOFF_STRATEGIES = ('none', 'constant', 'exponential')

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to a JSON config file. If None, uses defaults.
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_path and config_path.exists():
            self.load_config(config_path)

    def load_config(self, config_path: Path):
        """Load configuration from JSON file."""
        try:
            with open(config_path, 'r') as f:
                user_config = json.load(f)
        except json.JSONDecodeError as e:
            print(f"\nERROR: Invalid JSON in config file")
            print(f"  Config file: {config_path.absolute()}")
            print(f"  Problem: {e}")
            print(f"  Line: {e.lineno}, Column: {e.colno}")
            print()
            print("Fix the JSON syntax and try again.")
            print("Using default configuration.")
            return
        except OSError as e:
            print(f"\nERROR: Could not load config file")
            print(f"  Config file: {config_path.absolute()}")
            print(f"  Problem: {e}")
            print()
            print("Using default configuration.")
            return

        if not isinstance(user_config, dict):
            print(f"\nERROR: Config file must contain a JSON object")
            print(f"  Config file: {config_path.absolute()}")
            print("Using default configuration.")
            return

        is_valid, errors = self._validate_config(user_config)
        if not is_valid:
            print(f"\nConfiguration validation failed:")
            print(f"  Config file: {config_path.absolute()}")
            print()
            for error in errors:
                print(error)
                print()
            print("Using default configuration instead.")
            return

        self.config.update(user_config)
        logging.info(f"Loaded configuration from {config_path}")

    def save_config(self, config_path: Path):
        """Save current configuration to JSON file."""
        with open(config_path, 'w') as f:
            json.dump(self.config, f, indent=4)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        """Set configuration value."""
        self.config[key] = value

    def _validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate configuration dictionary.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        integer_fields = {
            'max_attempts': (1, 100, 3),
            'max_log_files': (1, 100, 5),
        }

        for field, (min_val, max_val, example) in integer_fields.items():
            if field in config:
                value = config[field]
                if isinstance(value, bool) or not isinstance(value, int):
                    errors.append(format_config_error(
                        field, value, f"number (integer) between {min_val} and {max_val}", example
                    ))
                elif value < min_val or value > max_val:
                    errors.append(format_config_error(
                        field, value, f"number between {min_val} and {max_val}", example
                    ))

        number_fields = {
            'backoff_base_seconds': 0.1,
            'backoff_multiplier': 2.0,
            'backoff_max_seconds': 5.0,
        }

        for field, example in number_fields.items():
            if field in config:
                value = config[field]
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    errors.append(format_config_error(field, value, "number (seconds or factor)", example))
                elif value < 0:
                    errors.append(format_config_error(field, value, "non-negative number", example))

        if 'backoff_strategy' in config and config['backoff_strategy'] not in self.BACKOFF_STRATEGIES:
            errors.append(format_config_error(
                'backoff_strategy', config['backoff_strategy'],
                f"one of {', '.join(self.BACKOFF_STRATEGIES)}", 'exponential'
            ))

        if 'exhaustion_mode' in config:
            try:
                ExhaustionMode.parse(str(config['exhaustion_mode']))
            except ValueError:
                errors.append(format_config_error(
                    'exhaustion_mode', config['exhaustion_mode'], "'sticky' or 'strict'", 'strict'
                ))

        if 'retryable_categories' in config:
            value = config['retryable_categories']
            if not isinstance(value, list):
                errors.append(format_config_error(
                    'retryable_categories', value, "list of category names", ['Deadlock', 'LockTimeout']
                ))
            else:
                for name in value:
                    if not self._is_category(name):
                        errors.append(format_config_error(
                            'retryable_categories', name, "known category name", 'Deadlock'
                        ))

        if 'extra_codes' in config:
            errors.extend(self._validate_extra_codes(config['extra_codes']))

        if 'allow_overwrite' in config and not isinstance(config['allow_overwrite'], bool):
            errors.append(format_config_error('allow_overwrite', config['allow_overwrite'], "true or false", False))

        if 'log_folder' in config and not isinstance(config['log_folder'], str):
            errors.append(f"log_folder must be a string, got {type(config['log_folder']).__name__}")

        return (len(errors) == 0, errors)

    def _validate_extra_codes(self, entries) -> List[str]:
        example = {'code': 40001, 'category': 'Deadlock', 'message': 'Serialization failure', 'retryable': True}
        if not isinstance(entries, list):
            return [format_config_error('extra_codes', entries, "list of code entries", [example])]

        errors = []
        for index, entry in enumerate(entries):
            field = f"extra_codes[{index}]"
            if not isinstance(entry, dict):
                errors.append(format_config_error(field, entry, "object with code/category/message/retryable", example))
                continue
            code = entry.get('code')
            if isinstance(code, bool) or not isinstance(code, int):
                errors.append(format_config_error(f"{field}.code", code, "integer error number", 40001))
            category = entry.get('category')
            if not self._is_category(category) or FailureCategory.parse(category) is FailureCategory.UNKNOWN:
                errors.append(format_config_error(f"{field}.category", category, "known category other than Unknown", 'Deadlock'))
            if not isinstance(entry.get('message', ''), str):
                errors.append(format_config_error(f"{field}.message", entry.get('message'), "string", example['message']))
            if not isinstance(entry.get('retryable', False), bool):
                errors.append(format_config_error(f"{field}.retryable", entry.get('retryable'), "true or false", True))
        return errors

    @staticmethod
    def _is_category(name) -> bool:
        if not isinstance(name, str):
            return False
        try:
            FailureCategory.parse(name)
        except ValueError:
            return False
        return True

    def build_backoff(self):
        """Backoff function for the configured strategy."""
        strategy = self.config['backoff_strategy']
        if strategy == 'constant':
            return constant_backoff(self.config['backoff_base_seconds'])
        if strategy == 'exponential':
            return exponential_backoff(
                self.config['backoff_base_seconds'],
                self.config['backoff_multiplier'],
                self.config['backoff_max_seconds'],
            )
        return no_backoff

    def build_retry_policy(self, max_attempts: Optional[int] = None) -> RetryPolicy:
        """RetryPolicy from settings; max_attempts overrides the configured value."""
        return RetryPolicy(
            max_attempts=max_attempts if max_attempts is not None else self.max_attempts,
            retryable_categories=self.retryable_categories,
            backoff=self.build_backoff(),
        )

    def build_catalog(self, base: Optional[FailureCatalog] = None, emitter=None) -> FailureCatalog:
        """
        Seeded catalog plus the configured extra codes.

        Raises:
            DuplicateCodeError: If an extra code collides and allow_overwrite is false
        """
        catalog = base.copy(emitter=emitter) if base is not None else FailureCatalog(SEEDED_ENTRIES, emitter=emitter)
        for entry in self.config['extra_codes']:
            catalog.register(
                entry['code'],
                FailureCategory.parse(entry['category']),
                entry.get('message', f"Simulated database error {entry['code']}."),
                entry.get('retryable', False),
                overwrite=self.allow_overwrite,
            )
        return catalog

    @property
    def max_attempts(self) -> int:
        """Get total attempts allowed per execution."""
        return self.config['max_attempts']

    @property
    def retryable_categories(self) -> frozenset:
        """Get categories the executor retries."""
        return frozenset(FailureCategory.parse(name) for name in self.config['retryable_categories'])

    @property
    def exhaustion_mode(self) -> ExhaustionMode:
        """Get behavior of scripted sources once exhausted."""
        return ExhaustionMode.parse(str(self.config['exhaustion_mode']))

    @property
    def allow_overwrite(self) -> bool:
        """Get whether extra codes may replace existing entries."""
        return self.config['allow_overwrite']

    @property
    def max_log_files(self) -> int:
        """Get maximum number of log files to keep."""
        return self.config['max_log_files']

    @property
    def log_folder(self) -> str:
        """Get log folder path."""
        return self.config['log_folder']
