"""
Test suite for the scripted failure source.

Tests cover:
- Ordered playback and cursor bookkeeping
- Sticky-tail and strict exhaustion
- Reset
- Concurrent callers never sharing an index
- unittest.mock integration
"""

import json
import threading
from unittest.mock import Mock

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from dbfaults.catalog import FailureCategory
from dbfaults.exceptions import EmptySequenceError, ExhaustedSequenceError, SimulatedDriverError
from dbfaults.scripted import (
    ExhaustionMode,
    Fail,
    ScriptedFailureSource,
    ScriptedSequence,
    Success,
    fail,
    succeed,
)
from dbfaults.structured_events import EventType


class TestScriptedSequence:
    """Test sequence construction."""

    def test_from_codes(self, factory):
        sequence = ScriptedSequence.from_codes(-2, 1205, "done", factory=factory)

        assert len(sequence) == 3
        assert sequence[0] == Fail(factory.create(-2))
        assert sequence[1] == Fail(factory.create(1205))
        assert sequence[2] == Success("done")

    def test_from_codes_keeps_outcomes_and_descriptors(self, factory):
        abort = factory.create_transaction_abort()
        sequence = ScriptedSequence.from_codes(abort, Success(5), factory=factory)

        assert sequence[0] == Fail(abort)
        assert sequence[1] == Success(5)

    def test_empty_sequence_rejected(self):
        with pytest.raises(EmptySequenceError):
            ScriptedSequence([])

    def test_rejects_non_outcomes(self):
        with pytest.raises(TypeError):
            ScriptedSequence([42])

    def test_helpers(self, factory):
        assert succeed(1) == Success(1)
        assert fail(factory.create(-2)).is_failure
        assert not succeed().is_failure


class TestPlayback:
    """Test next() ordering and bookkeeping."""

    def test_outcomes_in_order(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(-2, -2, Success(42), factory=factory))

        first = source.next()
        second = source.next()
        third = source.next()

        assert first.descriptor.code == -2
        assert second.descriptor.code == -2
        assert third == Success(42)
        assert source.cursor == 3
        assert source.calls == 3
        assert source.exhausted

    def test_accepts_plain_outcome_list(self, factory):
        source = ScriptedFailureSource([Success(1), Fail(factory.create(1222))])
        assert source.next() == Success(1)
        assert source.next().descriptor.category is FailureCategory.LOCK_TIMEOUT

    def test_remaining(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(-2, "ok", factory=factory))
        assert source.remaining == 2
        source.next()
        assert source.remaining == 1

    def test_invoke_unwraps(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(1205, "value", factory=factory))

        assert source.invoke() == factory.create(1205)
        assert source.invoke() == "value"


class TestExhaustion:
    """Test behavior past the end of the script."""

    def test_sticky_tail_is_default(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(-2, Success(7), factory=factory))
        assert source.mode is ExhaustionMode.STICKY_TAIL

        source.next()
        source.next()
        assert [source.next() for _ in range(5)] == [Success(7)] * 5
        assert source.cursor == 2
        assert source.calls == 7

    def test_sticky_tail_repeats_failure(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(1205, factory=factory))
        assert source.next() == source.next() == Fail(factory.create(1205))

    def test_strict_fails_on_third_call_of_two(self, factory):
        source = ScriptedFailureSource(
            ScriptedSequence.from_codes(-2, Success(1), factory=factory),
            mode=ExhaustionMode.STRICT,
        )

        source.next()
        source.next()
        with pytest.raises(ExhaustedSequenceError) as exc_info:
            source.next()

        assert exc_info.value.length == 2
        assert exc_info.value.calls == 3
        assert source.cursor == 2

    def test_strict_keeps_failing(self, factory):
        source = ScriptedFailureSource([Success(1)], mode=ExhaustionMode.STRICT)
        source.next()
        for _ in range(3):
            with pytest.raises(ExhaustedSequenceError):
                source.next()

    def test_strict_exhaustion_emits_event(self, emitter):
        source = ScriptedFailureSource([Success(1)], mode=ExhaustionMode.STRICT, emitter=emitter)
        source.next()
        with pytest.raises(ExhaustedSequenceError):
            source.next()

        events = emitter.query_events(event_type=EventType.SEQUENCE_EXHAUSTED)
        assert len(events) == 1
        assert events[0].context == {'length': 1, 'calls': 2}

    @pytest.mark.parametrize("text,mode", [
        ("sticky", ExhaustionMode.STICKY_TAIL),
        ("STRICT", ExhaustionMode.STRICT),
        ("sticky_tail", ExhaustionMode.STICKY_TAIL),
    ])
    def test_parse_mode(self, text, mode):
        assert ExhaustionMode.parse(text) is mode


class TestReset:
    """Test rewinding the source."""

    def test_reset_replays_first_outcome(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(3960, 1205, factory=factory))
        first = source.next()
        source.next()
        source.next()

        source.reset()

        assert source.cursor == 0
        assert source.calls == 0
        assert source.next() == first

    def test_reset_after_strict_exhaustion(self):
        source = ScriptedFailureSource([Success("a")], mode=ExhaustionMode.STRICT)
        source.next()
        with pytest.raises(ExhaustedSequenceError):
            source.next()

        source.reset()
        assert source.next() == Success("a")

    def test_reset_emits_event(self, emitter):
        source = ScriptedFailureSource([Success(1)], emitter=emitter)
        source.reset()
        assert len(emitter.query_events(event_type=EventType.SEQUENCE_RESET)) == 1


class TestConcurrency:
    """Concurrent callers must each receive a distinct index."""

    def test_no_two_callers_get_the_same_outcome(self):
        total = 2000
        source = ScriptedFailureSource(
            [Success(i) for i in range(total)],
            mode=ExhaustionMode.STRICT,
        )
        received = []
        received_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            local = []
            barrier.wait()
            for _ in range(total // 8):
                local.append(source.next().value)
            with received_lock:
                received.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(received) == list(range(total))
        assert source.exhausted
        assert source.calls == total

    def test_each_worker_sees_increasing_indexes(self):
        source = ScriptedFailureSource([Success(i) for i in range(400)])
        per_thread = {}

        def worker(name):
            per_thread[name] = [source.next().value for _ in range(100)]

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for values in per_thread.values():
            assert values == sorted(values)
        assert len({v for values in per_thread.values() for v in values}) == 400


class TestMockIntegration:
    """Test driving unittest.mock doubles from a source."""

    def test_side_effect_returns_and_raises(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(1205, Success("saved"), factory=factory))
        repository = Mock()
        repository.save.side_effect = source.as_side_effect()

        with pytest.raises(SimulatedDriverError) as exc_info:
            repository.save("order")
        assert exc_info.value.number == 1205

        assert repository.save("order") == "saved"
        assert repository.save.call_count == 2

    def test_inject_patches_target(self, factory):
        source = ScriptedFailureSource(ScriptedSequence.from_codes(-2, Success(3), factory=factory))

        with source.inject('json.dumps') as patched:
            with pytest.raises(SimulatedDriverError):
                json.dumps({})
            assert json.dumps({}) == 3

        assert patched.call_count == 2
        assert json.dumps({}) == '{}'
