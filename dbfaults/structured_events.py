"""
Structured Event Logging

Every retry execution and sequence lifecycle change can be recorded as a
structured event that is:
- Machine-readable (JSON)
- Queryable from tests
- Consistent in format

Events are append-only (never modified). Nothing is emitted unless an
EventEmitter is handed to the executor or the scripted source.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur."""
    # Catalog
    CATALOG_ENTRY_REGISTERED = auto()

    # Scripted sequences
    SEQUENCE_EXHAUSTED = auto()
    SEQUENCE_RESET = auto()

    # Retry executions
    EXECUTION_STARTED = auto()
    ATTEMPT_SUCCEEDED = auto()
    ATTEMPT_FAILED = auto()
    RETRY_SCHEDULED = auto()
    EXECUTION_SUCCEEDED = auto()
    EXECUTION_FAILED = auto()


class EventSeverity(Enum):
    """Severity levels for events."""
    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass
class StructuredEvent:
    """
    A structured event with consistent format.

    All events have these core fields plus event-specific data.
    """
    event_id: str
    event_type: EventType
    timestamp: datetime
    severity: EventSeverity
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    parent_event_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'event_id': self.event_id,
            'event_type': self.event_type.name,
            'timestamp': self.timestamp.isoformat(),
            'severity': self.severity.name,
            'message': self.message,
            'context': self.context,
            'metadata': self.metadata,
            'session_id': self.session_id,
            'parent_event_id': self.parent_event_id
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> 'StructuredEvent':
        """Create from dictionary."""
        data = data.copy()
        data['event_type'] = EventType[data['event_type']]
        data['severity'] = EventSeverity[data['severity']]
        data['timestamp'] = datetime.fromisoformat(data['timestamp'])
        return cls(**data)


class EventEmitter:
    """
    Emits structured events to various sinks.

    Sinks:
    - In-memory buffer (always)
    - Standard logging (enable_console)
    - JSON lines file (log_file)
    """

    def __init__(
        self,
        log_file: Optional[Path] = None,
        session_id: Optional[str] = None,
        enable_console: bool = True
    ):
        """
        Initialize event emitter.

        Args:
            log_file: Path to event log file (JSON lines format). None disables the file sink.
            session_id: Session identifier for grouping events
            enable_console: Emit to console via standard logging
        """
        self.log_file = log_file
        self.session_id = session_id or str(uuid.uuid4())
        self.enable_console = enable_console

        # In-memory buffer for current session
        self.event_buffer: List[StructuredEvent] = []

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def emit(
        self,
        event_type: EventType,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        context: Optional[Dict] = None,
        metadata: Optional[Dict] = None,
        parent_event_id: Optional[str] = None
    ) -> StructuredEvent:
        """
        Emit a structured event.

        Args:
            event_type: Type of event
            message: Human-readable message
            severity: Event severity
            context: Context data (operation-specific)
            metadata: Additional metadata
            parent_event_id: ID of parent event (for event chains)

        Returns:
            The emitted event
        """
        event = StructuredEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.now(),
            severity=severity,
            message=message,
            context=context or {},
            metadata=metadata or {},
            session_id=self.session_id,
            parent_event_id=parent_event_id
        )

        self.event_buffer.append(event)

        if self.enable_console:
            self._emit_to_console(event)

        if self.log_file is not None:
            self._emit_to_file(event)

        return event

    def _emit_to_console(self, event: StructuredEvent):
        """Emit event to console via standard logging."""
        level_map = {
            EventSeverity.DEBUG: logging.DEBUG,
            EventSeverity.INFO: logging.INFO,
            EventSeverity.WARNING: logging.WARNING,
            EventSeverity.ERROR: logging.ERROR,
            EventSeverity.CRITICAL: logging.CRITICAL
        }

        log_level = level_map.get(event.severity, logging.INFO)

        context_str = ""
        if event.context:
            key_context = {k: v for k, v in event.context.items() if k in ['attempt', 'code', 'decision']}
            if key_context:
                context_str = " | " + ", ".join(f"{k}={v}" for k, v in key_context.items())

        logger.log(
            log_level,
            f"[{event.event_type.name}] {event.message}{context_str}"
        )

    def _emit_to_file(self, event: StructuredEvent):
        """Emit event to JSON lines file."""
        try:
            with open(self.log_file, 'a') as f:
                f.write(event.to_json() + '\n')
        except OSError as e:
            logger.error(f"Failed to write event to file: {e}")

    def get_session_events(self) -> List[StructuredEvent]:
        """Get all events for current session."""
        return self.event_buffer.copy()

    def query_events(
        self,
        event_type: Optional[EventType] = None,
        severity: Optional[EventSeverity] = None,
        parent_event_id: Optional[str] = None
    ) -> List[StructuredEvent]:
        """
        Query events with filters.

        Args:
            event_type: Filter by event type
            severity: Filter by severity
            parent_event_id: Only events chained to this parent

        Returns:
            Filtered list of events
        """
        filtered = self.event_buffer

        if event_type:
            filtered = [e for e in filtered if e.event_type == event_type]

        if severity:
            filtered = [e for e in filtered if e.severity == severity]

        if parent_event_id:
            filtered = [e for e in filtered if e.parent_event_id == parent_event_id]

        return filtered


class EventBuilder:
    """
    Builder for the events dbfaults emits.

    Provides convenience methods with consistent formatting.
    """

    def __init__(self, emitter: EventEmitter):
        self.emitter = emitter

    # Catalog events

    def catalog_entry_registered(self, code: int, category: str, replaced: bool) -> StructuredEvent:
        """Emit catalog registration event."""
        verb = "Replaced" if replaced else "Registered"
        return self.emitter.emit(
            EventType.CATALOG_ENTRY_REGISTERED,
            f"{verb} failure code {code} as {category}",
            severity=EventSeverity.INFO,
            context={'code': code, 'category': category, 'replaced': replaced}
        )

    # Sequence events

    def sequence_exhausted(self, length: int, calls: int) -> StructuredEvent:
        """Emit strict-mode exhaustion event."""
        return self.emitter.emit(
            EventType.SEQUENCE_EXHAUSTED,
            f"Scripted sequence of {length} outcomes exhausted on call {calls}",
            severity=EventSeverity.ERROR,
            context={'length': length, 'calls': calls}
        )

    def sequence_reset(self, length: int) -> StructuredEvent:
        """Emit sequence reset event."""
        return self.emitter.emit(
            EventType.SEQUENCE_RESET,
            f"Scripted sequence of {length} outcomes reset",
            severity=EventSeverity.DEBUG,
            context={'length': length}
        )

    # Execution events

    def execution_started(self, max_attempts: int) -> StructuredEvent:
        """Emit execution started event; later events chain to it."""
        return self.emitter.emit(
            EventType.EXECUTION_STARTED,
            f"Executing operation with up to {max_attempts} attempts",
            severity=EventSeverity.DEBUG,
            context={'max_attempts': max_attempts}
        )

    def attempt_succeeded(self, attempt: int, parent_event_id: Optional[str] = None) -> StructuredEvent:
        """Emit attempt succeeded event."""
        return self.emitter.emit(
            EventType.ATTEMPT_SUCCEEDED,
            f"Attempt {attempt} succeeded",
            severity=EventSeverity.DEBUG,
            context={'attempt': attempt},
            parent_event_id=parent_event_id
        )

    def attempt_failed(
        self,
        attempt: int,
        descriptor,
        decision,
        parent_event_id: Optional[str] = None
    ) -> StructuredEvent:
        """Emit attempt failed event with the classification decision."""
        return self.emitter.emit(
            EventType.ATTEMPT_FAILED,
            f"Attempt {attempt} failed with {descriptor.category.value}",
            severity=EventSeverity.WARNING,
            context={
                'attempt': attempt,
                'code': descriptor.code,
                'category': descriptor.category.value,
                'decision': decision.value
            },
            metadata={'message': descriptor.message, 'origin': descriptor.origin},
            parent_event_id=parent_event_id
        )

    def retry_scheduled(
        self,
        attempt: int,
        delay: float,
        parent_event_id: Optional[str] = None
    ) -> StructuredEvent:
        """Emit retry scheduled event."""
        return self.emitter.emit(
            EventType.RETRY_SCHEDULED,
            f"Retrying after attempt {attempt} in {delay:.3f}s",
            severity=EventSeverity.INFO,
            context={'attempt': attempt, 'delay_seconds': delay},
            parent_event_id=parent_event_id
        )

    def execution_succeeded(self, attempts: int, parent_event_id: Optional[str] = None) -> StructuredEvent:
        """Emit execution succeeded event."""
        return self.emitter.emit(
            EventType.EXECUTION_SUCCEEDED,
            f"Operation succeeded after {attempts} attempt(s)",
            severity=EventSeverity.INFO,
            context={'attempts': attempts},
            parent_event_id=parent_event_id
        )

    def execution_failed(
        self,
        attempts: int,
        descriptor,
        reason: str,
        parent_event_id: Optional[str] = None
    ) -> StructuredEvent:
        """Emit execution failed event with the terminating failure."""
        return self.emitter.emit(
            EventType.EXECUTION_FAILED,
            f"Operation failed after {attempts} attempt(s): {reason}",
            severity=EventSeverity.ERROR,
            context={
                'attempts': attempts,
                'code': descriptor.code,
                'category': descriptor.category.value,
                'reason': reason
            },
            parent_event_id=parent_event_id
        )
