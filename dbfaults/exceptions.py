"""
Exceptions raised by dbfaults.

Setup problems (catalog, scripts, policies) are raised immediately. Simulated
database failures are values (FailureDescriptor); SimulatedDriverError only
exists to hand those values to code that expects a driver exception.
"""

from typing import TYPE_CHECKING

from .error_messages import format_duplicate_code_error, format_exhausted_sequence_error

if TYPE_CHECKING:
    from .catalog import FailureDescriptor


class DbFaultsError(Exception):
    """Base exception for all dbfaults errors."""
    pass


class CatalogError(DbFaultsError):
    """Raised when the failure catalog is misconfigured."""
    pass


class DuplicateCodeError(CatalogError):
    """Raised when a code is registered twice without overwrite."""

    def __init__(self, code: int, existing_category: str):
        self.code = code
        self.existing_category = existing_category
        super().__init__(format_duplicate_code_error(code, existing_category))


class ReservedCategoryError(CatalogError):
    """Raised when registering a code under the reserved Unknown category."""
    pass


class ScriptError(DbFaultsError):
    """Raised when a scripted sequence is misused."""
    pass


class EmptySequenceError(ScriptError):
    """Raised when a scripted sequence has no outcomes."""
    pass


class ExhaustedSequenceError(ScriptError):
    """Raised in strict mode when more outcomes are requested than scripted."""

    def __init__(self, length: int, calls: int):
        self.length = length
        self.calls = calls
        super().__init__(format_exhausted_sequence_error(length, calls))


class RetryPolicyError(DbFaultsError):
    """Raised for an invalid retry policy."""
    pass


class SimulatedDriverError(DbFaultsError):
    """
    A synthetic failure raised as an exception.

    Mirrors the shape of a driver exception: ``number`` is the server error
    code and ``descriptor`` is the full FailureDescriptor it was built from.
    """

    def __init__(self, descriptor: 'FailureDescriptor'):
        self.descriptor = descriptor
        self.number = descriptor.code
        super().__init__(descriptor.message)

    @property
    def category(self):
        return self.descriptor.category

    @classmethod
    def from_descriptor(cls, descriptor: 'FailureDescriptor') -> 'SimulatedDriverError':
        """Pick the exception type matching the descriptor's origin."""
        if descriptor.is_coordinator_failure:
            return SimulatedTransactionAbortedError(descriptor)
        return SimulatedDriverError(descriptor)


class SimulatedTransactionAbortedError(SimulatedDriverError):
    """Coordinator-level abort, distinct from server error codes."""
    pass
