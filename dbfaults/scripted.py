"""
Scripted failure source.

A thread-safe test double that plays back a fixed, ordered plan of outcomes.
Each call to next() takes the outcome at the cursor and advances it under a
lock, so concurrent callers never receive the same index.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Union
from unittest.mock import patch

from .catalog import FailureDescriptor
from .exceptions import EmptySequenceError, ExhaustedSequenceError
from .factory import SyntheticFailureFactory
from .structured_events import EventBuilder


logger = logging.getLogger(__name__)


class ExhaustionMode(Enum):
    """What next() does once every scripted outcome has been consumed."""
    STICKY_TAIL = "sticky"   # Keep returning the final outcome
    STRICT = "strict"        # Raise ExhaustedSequenceError

    @classmethod
    def parse(cls, text: str) -> 'ExhaustionMode':
        for mode in cls:
            if text.lower() in (mode.value, mode.name.lower()):
                return mode
        raise ValueError(f"Unknown exhaustion mode: {text!r}")


@dataclass(frozen=True)
class Success:
    """Scripted successful call returning ``value``."""
    value: Any = None

    @property
    def is_failure(self) -> bool:
        return False


@dataclass(frozen=True)
class Fail:
    """Scripted failed call reporting ``descriptor``."""
    descriptor: FailureDescriptor

    @property
    def is_failure(self) -> bool:
        return True


ScriptedOutcome = Union[Success, Fail]


def succeed(value: Any = None) -> Success:
    return Success(value)


def fail(descriptor: FailureDescriptor) -> Fail:
    return Fail(descriptor)


class ScriptedSequence:
    """Ordered, immutable list of outcomes to play back."""

    def __init__(self, outcomes: Iterable[ScriptedOutcome]):
        self.outcomes = tuple(outcomes)
        if not self.outcomes:
            raise EmptySequenceError("A scripted sequence needs at least one outcome")
        for outcome in self.outcomes:
            if not isinstance(outcome, (Success, Fail)):
                raise TypeError(
                    f"Scripted outcomes must be Success or Fail, got {type(outcome).__name__}"
                )

    @classmethod
    def from_codes(
        cls,
        *items,
        factory: Optional[SyntheticFailureFactory] = None
    ) -> 'ScriptedSequence':
        """
        Build a sequence from shorthand items.

        Integers become failures built by the factory, FailureDescriptors become
        failures as-is, ready-made outcomes are kept, anything else is a success
        value. Use Success(5) to script a success that returns an integer.
        """
        factory = factory or SyntheticFailureFactory()
        outcomes: List[ScriptedOutcome] = []
        for item in items:
            if isinstance(item, (Success, Fail)):
                outcomes.append(item)
            elif isinstance(item, FailureDescriptor):
                outcomes.append(Fail(item))
            elif isinstance(item, int) and not isinstance(item, bool):
                outcomes.append(Fail(factory.create(item)))
            else:
                outcomes.append(Success(item))
        return cls(outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __getitem__(self, index: int) -> ScriptedOutcome:
        return self.outcomes[index]


class ScriptedFailureSource:
    """
    Plays back a ScriptedSequence, one outcome per call.

    Usage:
        source = ScriptedFailureSource(ScriptedSequence.from_codes(-2, -2, Success(42)))
        with source.inject('shop.repository.OrderRepository.save'):
            service.place_order()
    """

    def __init__(
        self,
        sequence: Union[ScriptedSequence, Iterable[ScriptedOutcome]],
        mode: ExhaustionMode = ExhaustionMode.STICKY_TAIL,
        emitter=None
    ):
        """
        Initialize the source.

        Args:
            sequence: Outcomes to play back (owned by this source)
            mode: Behavior once the sequence is exhausted
            emitter: Optional EventEmitter for exhaustion/reset events
        """
        if not isinstance(sequence, ScriptedSequence):
            sequence = ScriptedSequence(sequence)
        self.sequence = sequence
        self.mode = mode
        self._lock = threading.Lock()
        self._cursor = 0
        self._calls = 0
        self._events = None
        if emitter is not None:
            self._events = EventBuilder(emitter)

    def next(self) -> ScriptedOutcome:
        """
        Return the outcome at the cursor and advance it.

        Raises:
            ExhaustedSequenceError: In strict mode, once every outcome was consumed
        """
        length = len(self.sequence)
        with self._lock:
            self._calls += 1
            calls = self._calls
            if self._cursor < length:
                outcome = self.sequence[self._cursor]
                self._cursor += 1
                return outcome
            exhausted_strict = self.mode is ExhaustionMode.STRICT

        if exhausted_strict:
            logger.warning(f"Scripted sequence of {length} exhausted on call {calls}")
            if self._events:
                self._events.sequence_exhausted(length, calls)
            raise ExhaustedSequenceError(length, calls)

        # Sticky tail: cursor stays at the end, last outcome repeats.
        return self.sequence[length - 1]

    def reset(self):
        """Rewind to the first outcome and clear the call count."""
        with self._lock:
            self._cursor = 0
            self._calls = 0
        logger.info("Scripted sequence reset")
        if self._events:
            self._events.sequence_reset(len(self.sequence))

    def invoke(self):
        """Next outcome unwrapped: the success value or the FailureDescriptor."""
        outcome = self.next()
        if isinstance(outcome, Fail):
            return outcome.descriptor
        return outcome.value

    def as_side_effect(self):
        """
        Callable for unittest.mock side_effect.

        Returns success values and raises SimulatedDriverError for failures,
        so exception-based code under test sees a driver-like error.
        """
        def side_effect(*args, **kwargs):
            outcome = self.next()
            if isinstance(outcome, Fail):
                raise outcome.descriptor.to_exception()
            return outcome.value

        return side_effect

    def inject(self, target: str, **kwargs):
        """Patch ``target`` so every call is served by this source."""
        return patch(target, side_effect=self.as_side_effect(), **kwargs)

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def calls(self) -> int:
        """Total next() invocations since construction or the last reset."""
        with self._lock:
            return self._calls

    @property
    def remaining(self) -> int:
        with self._lock:
            return len(self.sequence) - self._cursor

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0
