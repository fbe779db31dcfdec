"""
Pytest configuration and fixtures for dbfaults tests.
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dbfaults import (
    EventEmitter,
    FailureCatalog,
    FailureClassifier,
    RetryPolicyExecutor,
    SyntheticFailureFactory,
    VirtualClock,
)


@pytest.fixture
def catalog():
    """Fresh seeded catalog so registrations never leak between tests."""
    return FailureCatalog.seeded()


@pytest.fixture
def factory(catalog):
    return SyntheticFailureFactory(catalog)


@pytest.fixture
def classifier():
    return FailureClassifier()


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def emitter():
    """In-memory event emitter (no file, no console)."""
    return EventEmitter(enable_console=False)


@pytest.fixture
def executor(clock):
    """Executor that never really sleeps."""
    return RetryPolicyExecutor(sleep=clock)
