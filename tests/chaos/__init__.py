"""
Chaos Testing Infrastructure

Service-layer scenarios driven by scripted database failures. Each scenario
wires a ScriptedFailureSource behind a stubbed repository method and checks
that the service retries, falls back or surfaces exactly as intended.

Chaos testing philosophy:
- Inject failures systematically, not randomly
- Test one failure mode at a time for clarity
- Assert on exact call counts, not on message strings
"""

from .fault_injectors import (
    FlakyRepositoryInjector,
    FaultScenario,
    multiple_faults,
)

__all__ = [
    'FlakyRepositoryInjector',
    'FaultScenario',
    'multiple_faults',
]
