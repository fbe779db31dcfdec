"""
Retry policy execution.

Repeatedly invokes an operation that returns either a success value or a
FailureDescriptor, classifying each failure and waiting between attempts
according to a RetryPolicy. Failures are returned, never swallowed: the result
always carries either the success value or the terminating descriptor.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional

from .catalog import FailureCategory, FailureDescriptor
from .classifier import Decision, FailureClassifier, overrides_from_categories
from .exceptions import RetryPolicyError, SimulatedDriverError
from .scripted import Fail, Success
from .structured_events import EventBuilder


logger = logging.getLogger(__name__)

Backoff = Callable[[int], float]

DEFAULT_RETRYABLE_CATEGORIES = frozenset({
    FailureCategory.COMMAND_TIMEOUT,
    FailureCategory.LOCK_TIMEOUT,
    FailureCategory.DEADLOCK,
    FailureCategory.SNAPSHOT_CONFLICT,
})


def no_backoff(attempt: int) -> float:
    """Zero-duration wait."""
    return 0.0


def constant_backoff(seconds: float) -> Backoff:
    """Wait the same amount after every failed attempt."""
    def backoff(attempt: int) -> float:
        return seconds
    return backoff


def exponential_backoff(base: float, multiplier: float = 2.0, maximum: Optional[float] = None) -> Backoff:
    """
    Exponential backoff: base * multiplier ** (attempt - 1), capped at maximum.

    Args:
        base: Delay after the first failed attempt (seconds)
        multiplier: Growth factor per attempt
        maximum: Upper bound on any single delay (None = unbounded)
    """
    def backoff(attempt: int) -> float:
        delay = base * (multiplier ** (attempt - 1))
        if maximum is not None:
            delay = min(delay, maximum)
        return delay
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to invoke an operation and which failures to retry.

    ``max_attempts`` bounds total invocations including the first.
    Failures in ``retryable_categories`` are retried; every other known
    category aborts instead of surfacing. Unknown failures always surface.
    """
    max_attempts: int = 3
    retryable_categories: FrozenSet[FailureCategory] = DEFAULT_RETRYABLE_CATEGORIES
    backoff: Backoff = no_backoff

    def __post_init__(self):
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise RetryPolicyError(f"max_attempts must be an integer, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise RetryPolicyError(f"max_attempts must be at least 1, got {self.max_attempts}")
        # Accept any iterable of categories
        object.__setattr__(self, 'retryable_categories', frozenset(self.retryable_categories))

    def overrides(self) -> dict:
        """Classifier overrides derived from retryable_categories."""
        return overrides_from_categories(self.retryable_categories)


class VirtualClock:
    """
    Test clock standing in for time.sleep.

    Records every requested wait and advances ``now`` without sleeping.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds

    __call__ = sleep


@dataclass(frozen=True)
class AttemptRecord:
    """One invocation of the operation."""
    attempt: int
    value: Any = None
    failure: Optional[FailureDescriptor] = None
    decision: Optional[Decision] = None
    delay: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass
class RetryResult:
    """
    Outcome of an execution.

    Exactly one of ``value`` / ``failure`` is meaningful: ``failure`` is None
    on success and holds the terminating descriptor otherwise.
    """
    value: Any = None
    failure: Optional[FailureDescriptor] = None
    attempts: int = 0
    decision: Optional[Decision] = None
    history: List[AttemptRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self):
        """Return the success value or raise the failure as a SimulatedDriverError."""
        if self.failure is not None:
            raise self.failure.to_exception()
        return self.value


def _split_result(result):
    """Normalize an operation's return value to (value, failure)."""
    if isinstance(result, FailureDescriptor):
        return None, result
    if isinstance(result, Fail):
        return None, result.descriptor
    if isinstance(result, Success):
        return result.value, None
    return result, None


class RetryPolicyExecutor:
    """Runs an operation under a RetryPolicy."""

    def __init__(
        self,
        classifier: Optional[FailureClassifier] = None,
        sleep: Callable[[float], Any] = time.sleep,
        emitter=None
    ):
        """
        Initialize the executor.

        Args:
            classifier: Classifier deciding retry/abort/surface
            sleep: Wait function called with the backoff delay; pass a
                VirtualClock or a no-op for unit-speed tests
            emitter: Optional EventEmitter recording each attempt
        """
        self.classifier = classifier or FailureClassifier()
        self.sleep = sleep
        self._events = EventBuilder(emitter) if emitter is not None else None

    def execute(self, operation: Callable[[], Any], policy: Optional[RetryPolicy] = None) -> RetryResult:
        """
        Invoke ``operation`` until it succeeds or the policy stops retrying.

        The operation may return a success value, a FailureDescriptor, or a
        ScriptedOutcome, or raise SimulatedDriverError. Any other exception
        propagates untouched.

        Returns:
            RetryResult with the success value or the last failure
        """
        policy = policy or RetryPolicy()
        overrides = policy.overrides()
        history: List[AttemptRecord] = []
        parent_id = None
        if self._events:
            parent_id = self._events.execution_started(policy.max_attempts).event_id

        attempt = 1
        while True:
            try:
                value, failure = _split_result(operation())
            except SimulatedDriverError as e:
                value, failure = None, e.descriptor

            if failure is None:
                history.append(AttemptRecord(attempt, value=value))
                if attempt > 1:
                    logger.info(f"Operation succeeded on attempt {attempt}/{policy.max_attempts}")
                if self._events:
                    self._events.attempt_succeeded(attempt, parent_id)
                    self._events.execution_succeeded(attempt, parent_id)
                return RetryResult(value=value, attempts=attempt, history=history)

            decision = self.classifier.classify(failure, overrides)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed: "
                f"{failure.category.value} (code={failure.code}) -> {decision.value}"
            )
            if self._events:
                self._events.attempt_failed(attempt, failure, decision, parent_id)

            if decision is not Decision.RETRY or attempt >= policy.max_attempts:
                history.append(AttemptRecord(attempt, failure=failure, decision=decision))
                reason = decision.value if decision is not Decision.RETRY else "attempts exhausted"
                logger.error(
                    f"Giving up after {attempt} attempt(s) ({reason}): {failure.message}"
                )
                if self._events:
                    self._events.execution_failed(attempt, failure, reason, parent_id)
                return RetryResult(
                    failure=failure,
                    attempts=attempt,
                    decision=decision,
                    history=history,
                )

            delay = policy.backoff(attempt)
            if delay < 0:
                raise RetryPolicyError(f"Backoff returned a negative delay ({delay}) for attempt {attempt}")
            history.append(AttemptRecord(attempt, failure=failure, decision=decision, delay=delay))
            if self._events:
                self._events.retry_scheduled(attempt, delay, parent_id)
            self.sleep(delay)
            attempt += 1


def execute(
    operation: Callable[[], Any],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Any] = time.sleep
) -> RetryResult:
    """Module-level shorthand for RetryPolicyExecutor(sleep=sleep).execute."""
    return RetryPolicyExecutor(sleep=sleep).execute(operation, policy)

