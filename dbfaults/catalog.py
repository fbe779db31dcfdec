"""
Failure catalog.

Static registry mapping a database error code to its category, default
message and retryability. The seeded entries mirror the SQL Server errors a
service layer most often has to survive.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .exceptions import CatalogError, DuplicateCodeError, ReservedCategoryError, SimulatedDriverError
from .structured_events import EventBuilder


logger = logging.getLogger(__name__)

ORIGIN_SERVER = "server"
ORIGIN_TRANSACTION_MANAGER = "transaction-manager"


class FailureCategory(Enum):
    """Semantic category of a simulated failure."""
    COMMAND_TIMEOUT = "CommandTimeout"
    LOCK_TIMEOUT = "LockTimeout"
    DEADLOCK = "Deadlock"
    SNAPSHOT_CONFLICT = "SnapshotConflict"
    TRANSACTION_ABORT = "TransactionAbort"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, text: str) -> 'FailureCategory':
        """
        Resolve a category from its value or member name.

        Accepts "Deadlock", "DEADLOCK", "lock_timeout", "lock-timeout" etc.

        Raises:
            ValueError: If no category matches
        """
        wanted = str(text).replace('_', '').replace('-', '').lower()
        for category in cls:
            if wanted in (category.value.lower(), category.name.replace('_', '').lower()):
                return category
        raise ValueError(f"Unknown failure category: {text!r}")


@dataclass(frozen=True)
class CatalogEntry:
    """Catalog row. ``code`` is None for category-only entries."""
    code: Optional[int]
    category: FailureCategory
    default_message: str
    retryable: bool
    origin: str = ORIGIN_SERVER


@dataclass(frozen=True)
class FailureDescriptor:
    """
    Immutable description of one simulated failure.

    Safe to share across threads; never mutated after construction.
    """
    code: Optional[int]
    category: FailureCategory
    message: str
    retryable: bool
    origin: str = ORIGIN_SERVER

    @property
    def is_coordinator_failure(self) -> bool:
        """True when the failure comes from the transaction manager, not the server."""
        return self.origin == ORIGIN_TRANSACTION_MANAGER

    def to_exception(self):
        """Wrap this descriptor in the matching SimulatedDriverError subclass."""
        return SimulatedDriverError.from_descriptor(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'code': self.code,
            'category': self.category.value,
            'message': self.message,
            'retryable': self.retryable,
            'origin': self.origin,
        }


SEEDED_ENTRIES = (
    CatalogEntry(
        -2,
        FailureCategory.COMMAND_TIMEOUT,
        "Execution Timeout Expired. The timeout period elapsed prior to completion "
        "of the operation or the server is not responding.",
        True,
    ),
    CatalogEntry(
        1222,
        FailureCategory.LOCK_TIMEOUT,
        "Lock request time out period exceeded.",
        True,
    ),
    CatalogEntry(
        1205,
        FailureCategory.DEADLOCK,
        "Transaction was deadlocked on lock resources with another process and has "
        "been chosen as the deadlock victim. Rerun the transaction.",
        True,
    ),
    CatalogEntry(
        3960,
        FailureCategory.SNAPSHOT_CONFLICT,
        "Snapshot isolation transaction aborted due to update conflict. Retry the "
        "transaction or change the isolation level for the update/delete statement.",
        True,
    ),
)

# Coordinator abort has no server code. Not retryable without idempotency guarantees.
TRANSACTION_ABORT_ENTRY = CatalogEntry(
    None,
    FailureCategory.TRANSACTION_ABORT,
    "The transaction has aborted.",
    False,
    origin=ORIGIN_TRANSACTION_MANAGER,
)


class FailureCatalog:
    """Registry of known failure codes."""

    def __init__(
        self,
        entries=(),
        coordinator_entry: CatalogEntry = TRANSACTION_ABORT_ENTRY,
        emitter=None
    ):
        self._entries: Dict[int, CatalogEntry] = {}
        self.coordinator_entry = coordinator_entry
        self._emitter = emitter
        self._events = EventBuilder(emitter) if emitter is not None else None
        for entry in entries:
            self._entries[entry.code] = entry

    @classmethod
    def seeded(cls) -> 'FailureCatalog':
        """Create a catalog holding the standard driver failure codes."""
        return cls(SEEDED_ENTRIES)

    def lookup(self, code: int) -> Optional[CatalogEntry]:
        """Return the entry for ``code``, or None if it is not registered."""
        return self._entries.get(code)

    def register(
        self,
        code: int,
        category: FailureCategory,
        message: str,
        retryable: bool,
        overwrite: bool = False,
        origin: str = ORIGIN_SERVER
    ) -> CatalogEntry:
        """
        Register an additional failure code.

        Args:
            code: Driver error number
            category: Category the code belongs to (never UNKNOWN)
            message: Default message for descriptors built from this code
            retryable: Whether retrying is safe by default
            overwrite: Replace an existing entry instead of failing
            origin: Simulated subsystem reporting the failure

        Returns:
            The registered entry

        Raises:
            DuplicateCodeError: If the code exists and overwrite is False
            CatalogError: If code is not an integer
            ReservedCategoryError: If category is UNKNOWN
        """
        if isinstance(code, bool) or not isinstance(code, int):
            raise CatalogError(f"Failure codes must be integers, got {code!r} ({type(code).__name__})")
        if not isinstance(category, FailureCategory):
            category = FailureCategory.parse(category)
        if category is FailureCategory.UNKNOWN:
            raise ReservedCategoryError(
                f"Code {code} cannot be registered as Unknown; "
                f"Unknown is reserved for codes absent from the catalog"
            )

        existing = self._entries.get(code)
        if existing is not None and not overwrite:
            raise DuplicateCodeError(code, existing.category.value)

        entry = CatalogEntry(code, category, message, bool(retryable), origin)
        self._entries[code] = entry
        if existing is not None:
            logger.info(f"Replaced catalog entry {code}: {existing.category.value} -> {category.value}")
        else:
            logger.info(f"Registered catalog entry {code} as {category.value}")
        if self._events:
            self._events.catalog_entry_registered(code, category.value, existing is not None)
        return entry

    def codes(self) -> List[int]:
        """Registered codes in ascending order."""
        return sorted(self._entries)

    def entries(self) -> List[CatalogEntry]:
        """Registered entries ordered by code."""
        return [self._entries[code] for code in self.codes()]

    def copy(self, emitter=None) -> 'FailureCatalog':
        """
        Independent copy; registrations on it do not leak back.

        The copy reports to ``emitter``, or to this catalog's emitter if None.
        """
        return FailureCatalog(
            self._entries.values(),
            self.coordinator_entry,
            emitter=emitter if emitter is not None else self._emitter
        )

    def __contains__(self, code) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries())


_DEFAULT_CATALOG = FailureCatalog.seeded()


def default_catalog() -> FailureCatalog:
    """Process-wide catalog shared by factories built without an explicit one."""
    return _DEFAULT_CATALOG
