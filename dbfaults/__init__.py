"""
dbfaults Core Module
Synthetic database failures, failure classification and scripted failure sources for tests.
"""

from .catalog import (
    CatalogEntry,
    FailureCatalog,
    FailureCategory,
    FailureDescriptor,
    default_catalog,
)
from .classifier import Decision, FailureClassifier, classify, overrides_from_categories
from .config import Config
from .exceptions import (
    CatalogError,
    DbFaultsError,
    DuplicateCodeError,
    EmptySequenceError,
    ExhaustedSequenceError,
    ReservedCategoryError,
    RetryPolicyError,
    ScriptError,
    SimulatedDriverError,
    SimulatedTransactionAbortedError,
)
from .factory import SyntheticFailureFactory, create, create_transaction_abort
from .logger import setup_logging
from .retry import (
    RetryPolicy,
    RetryPolicyExecutor,
    RetryResult,
    VirtualClock,
    constant_backoff,
    exponential_backoff,
    no_backoff,
)
from .scripted import (
    ExhaustionMode,
    Fail,
    ScriptedFailureSource,
    ScriptedSequence,
    Success,
    fail,
    succeed,
)
from .structured_events import EventEmitter

__version__ = "1.0.0"

__all__ = [
    'CatalogEntry',
    'CatalogError',
    'Config',
    'DbFaultsError',
    'Decision',
    'DuplicateCodeError',
    'EmptySequenceError',
    'EventEmitter',
    'ExhaustedSequenceError',
    'ExhaustionMode',
    'Fail',
    'FailureCatalog',
    'FailureCategory',
    'FailureClassifier',
    'FailureDescriptor',
    'ReservedCategoryError',
    'RetryPolicy',
    'RetryPolicyError',
    'RetryPolicyExecutor',
    'RetryResult',
    'ScriptError',
    'ScriptedFailureSource',
    'ScriptedSequence',
    'SimulatedDriverError',
    'SimulatedTransactionAbortedError',
    'Success',
    'SyntheticFailureFactory',
    'VirtualClock',
    'classify',
    'constant_backoff',
    'create',
    'create_transaction_abort',
    'default_catalog',
    'exponential_backoff',
    'fail',
    'no_backoff',
    'overrides_from_categories',
    'setup_logging',
    'succeed',
]
