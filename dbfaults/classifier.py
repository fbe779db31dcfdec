"""
Failure classification.

Maps a FailureDescriptor to a handling Decision. Classification is a pure,
total function so tests can assert on it without any setup.

Precedence:
    1. Unknown category always surfaces.
    2. An explicit override wins over the catalog default.
    3. The catalog default decides between Retry and Surface.
"""

import logging
from enum import Enum
from typing import Iterable, Mapping, Optional

from .catalog import FailureCategory, FailureDescriptor


logger = logging.getLogger(__name__)


class Decision(Enum):
    """How a failure should be handled."""
    RETRY = "Retry"
    ABORT = "Abort"
    SURFACE = "Surface"


PolicyOverrides = Mapping[FailureCategory, bool]


class FailureClassifier:
    """Decides retry / abort / surface for a failure."""

    def classify(
        self,
        descriptor: FailureDescriptor,
        overrides: Optional[PolicyOverrides] = None
    ) -> Decision:
        """
        Classify a failure.

        Args:
            descriptor: Failure to classify
            overrides: Category -> retryable. False forces Abort, True forces Retry.

        Returns:
            Decision for this failure instance
        """
        decision = self._decide(descriptor, overrides or {})
        logger.debug(
            f"Classified {descriptor.category.value} (code={descriptor.code}) as {decision.value}"
        )
        return decision

    @staticmethod
    def _decide(descriptor: FailureDescriptor, overrides: PolicyOverrides) -> Decision:
        if descriptor.category is FailureCategory.UNKNOWN:
            return Decision.SURFACE

        override = overrides.get(descriptor.category)
        if override is not None:
            return Decision.RETRY if override else Decision.ABORT
        if descriptor.retryable:
            return Decision.RETRY
        return Decision.SURFACE


def classify(
    descriptor: FailureDescriptor,
    overrides: Optional[PolicyOverrides] = None
) -> Decision:
    """Module-level shorthand for FailureClassifier().classify."""
    return FailureClassifier().classify(descriptor, overrides)


def overrides_from_categories(retryable_categories: Iterable[FailureCategory]) -> dict:
    """
    Build an override map from a set of retryable categories.

    Every known category is marked retryable iff it is in the set. Unknown is
    left out; it always surfaces.
    """
    wanted = set(retryable_categories)
    return {
        category: category in wanted
        for category in FailureCategory
        if category is not FailureCategory.UNKNOWN
    }
