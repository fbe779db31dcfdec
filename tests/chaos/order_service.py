"""
Minimal service layer used as the code under test in chaos scenarios.

OrderService shows the two handling styles the library supports:
exception filtering on driver error numbers, and value-based handling
through RetryPolicyExecutor.
"""

from dbfaults import (
    RetryPolicy,
    RetryPolicyExecutor,
    SimulatedDriverError,
    SimulatedTransactionAbortedError,
)

TRANSIENT_ERROR_NUMBERS = (-2, 1222, 1205, 3960)


class OrderRepository:
    """Stand-in for a real database-backed repository."""

    def save(self, order: dict) -> str:
        raise NotImplementedError("OrderRepository.save must be stubbed in tests")


class OrderService:
    """Places orders, retrying transient database failures."""

    def __init__(self, repository: OrderRepository, max_attempts: int = 3, sleep=lambda seconds: None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.repository = repository
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.deferred = []

    def place_order(self, order: dict) -> str:
        """
        Save with retries on transient errors.

        Coordinator aborts defer the order instead of retrying.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.repository.save(order)
            except SimulatedTransactionAbortedError:
                self.deferred.append(order)
                return "deferred"
            except SimulatedDriverError as e:
                if e.number not in TRANSIENT_ERROR_NUMBERS or attempt == self.max_attempts:
                    raise
                self.sleep(attempt)

    def place_order_with_policy(self, order: dict, policy: RetryPolicy):
        """Value-based variant: returns a RetryResult instead of raising."""
        executor = RetryPolicyExecutor(sleep=self.sleep)
        return executor.execute(lambda: self.repository.save(order), policy)
