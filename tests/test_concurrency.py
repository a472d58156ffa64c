"""
Test file: test_concurrency.py
Purpose: Tests for concurrent unit registration and creation records.
"""
import pytest

from raceguard import ConcurrencyTracker, CreationRecord, Program
from tests.test_utils import TestData, function, go, ref, store


class TestConcurrencyTracker:
    @pytest.fixture
    def tracker(self):
        return ConcurrencyTracker()

    def test_unregistered_function_is_not_concurrent(self, tracker):
        assert not tracker.is_concurrent_unit(ref("main"))
        assert tracker.creation_record_of(ref("main")) is None

    def test_register_spawn_records_creator(self, tracker):
        assert tracker.register_spawn(ref("worker"), ref("main"), 2, 50)

        assert tracker.is_concurrent_unit(ref("worker"))
        record = tracker.creation_record_of(ref("worker"))
        assert record == CreationRecord(ref("main"), 2, 50)
        assert record.creator_package == "command-line-arguments"
        assert record.creator_function == "main"

    def test_first_spawn_site_wins(self, tracker):
        tracker.register_spawn(ref("worker"), ref("main"), 0, 50)
        assert not tracker.register_spawn(ref("worker"), ref("other"), 1, 10)

        assert tracker.creation_record_of(ref("worker")).creator == ref("main")
        assert tracker.spawned_by(ref("other")) == [ref("worker")]

    def test_spawned_before(self, tracker):
        tracker.register_spawn(ref("worker"), ref("main"), 0, 50)

        assert tracker.spawned_before(ref("worker"), ref("main"), 10) is True
        assert tracker.spawned_before(ref("worker"), ref("main"), 50) is False
        assert tracker.spawned_before(ref("worker"), ref("main"), 60) is False
        assert tracker.spawned_before(ref("worker"), ref("other"), 10) is False
        assert tracker.spawned_before(ref("worker"), ref("main"), None) is None

    def test_unresolved_spawn_callee_is_skipped(self, build_index):
        program = Program([function("main", [go(None, 5), store("x", 6)])])
        resolver, tracker = build_index(program)

        assert tracker.concurrent_units == []
        assert any("unresolved spawn callee" in d for d in resolver.diagnostics)

    def test_closure_scope_order_puts_creators_first(self, build_index):
        program = TestData.unguarded_counter()
        _, tracker = build_index(program)
        reversed_functions = list(program)[::-1]

        ordered = tracker.closure_scope_order(reversed_functions)

        assert [f.name for f in ordered] == ["main", "main$1"]
