"""
Synthetic failure construction.

Builds FailureDescriptor values from catalog codes. Construction never fails:
unknown codes still produce a descriptor so that unexpected driver errors can
be represented and classified.
"""

import logging
from typing import Optional

from .catalog import (
    ORIGIN_SERVER,
    FailureCatalog,
    FailureCategory,
    FailureDescriptor,
    default_catalog,
)


logger = logging.getLogger(__name__)

UNKNOWN_MESSAGE_TEMPLATE = "Unrecognized database error {code}."


class SyntheticFailureFactory:
    """Creates failure descriptors backed by a FailureCatalog."""

    def __init__(self, catalog: Optional[FailureCatalog] = None):
        """
        Initialize the factory.

        Args:
            catalog: Catalog to consult. None uses the process-wide default.
        """
        self.catalog = catalog if catalog is not None else default_catalog()

    def create(self, code: int, message_override: Optional[str] = None) -> FailureDescriptor:
        """
        Build the descriptor for ``code``.

        ``message_override`` replaces the default message only; category and
        retryability always come from the catalog.
        """
        entry = self.catalog.lookup(code)
        if entry is None:
            descriptor = FailureDescriptor(
                code=code,
                category=FailureCategory.UNKNOWN,
                message=message_override if message_override is not None
                else UNKNOWN_MESSAGE_TEMPLATE.format(code=code),
                retryable=False,
                origin=ORIGIN_SERVER,
            )
        else:
            descriptor = FailureDescriptor(
                code=entry.code,
                category=entry.category,
                message=message_override if message_override is not None else entry.default_message,
                retryable=entry.retryable,
                origin=entry.origin,
            )

        logger.debug(f"Synthesized failure {descriptor.code} ({descriptor.category.value})")
        return descriptor

    def create_transaction_abort(self, message: Optional[str] = None) -> FailureDescriptor:
        """Build the category-only coordinator abort descriptor."""
        entry = self.catalog.coordinator_entry
        descriptor = FailureDescriptor(
            code=None,
            category=entry.category,
            message=message if message is not None else entry.default_message,
            retryable=entry.retryable,
            origin=entry.origin,
        )
        logger.debug(f"Synthesized coordinator failure ({descriptor.category.value})")
        return descriptor

    # Shorthands for the seeded codes

    def command_timeout(self, message: Optional[str] = None) -> FailureDescriptor:
        return self.create(-2, message)

    def lock_timeout(self, message: Optional[str] = None) -> FailureDescriptor:
        return self.create(1222, message)

    def deadlock(self, message: Optional[str] = None) -> FailureDescriptor:
        return self.create(1205, message)

    def snapshot_conflict(self, message: Optional[str] = None) -> FailureDescriptor:
        return self.create(3960, message)


def create(code: int, message_override: Optional[str] = None) -> FailureDescriptor:
    """Build a descriptor from the default catalog."""
    return SyntheticFailureFactory().create(code, message_override)


def create_transaction_abort(message: Optional[str] = None) -> FailureDescriptor:
    """Build a coordinator abort descriptor from the default catalog."""
    return SyntheticFailureFactory().create_transaction_abort(message)
