"""Tests for MemoStore and SimulationContext."""

import logging

import pytest

from barsim.engine import BEFORE_TIME, MemoStore, SimulationContext, make_key
from barsim.engine.recurrence import ScalarEntry, buffered
from barsim.errors import EngineError, KeyCollisionError, OutOfOrderBarError


class TestMemoStore:
    def test_factory_runs_once_per_key(self):
        store = MemoStore()
        calls = []
        key = make_key(None, "test.entry", 1)

        def factory():
            calls.append(1)
            return {"n": len(calls)}

        first = store.get_or_create(key, factory, dict)
        second = store.get_or_create(key, factory, dict)
        assert first is second
        assert len(calls) == 1
        stats = store.stats()
        assert (stats.entries, stats.hits, stats.misses) == (1, 1, 1)

    def test_type_mismatch_is_a_collision(self):
        store = MemoStore()
        key = make_key(None, "test.entry", 1)
        store.get_or_create(key, dict, dict)
        with pytest.raises(KeyCollisionError):
            store.get_or_create(key, list, list)

    def test_failed_factory_registers_nothing(self):
        store = MemoStore()
        key = make_key(None, "test.entry", 1)

        def factory():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.get_or_create(key, factory)
        assert key not in store
        assert len(store) == 0

    def test_factory_of_wrong_type(self):
        store = MemoStore()
        with pytest.raises(TypeError):
            store.get_or_create(make_key(None, "test.entry"), list, dict)

    def test_clear(self):
        store = MemoStore()
        store.get_or_create(make_key(None, "test.entry"), dict)
        store.clear()
        assert len(store) == 0


class TestSimulationContext:
    def test_starts_before_time(self):
        ctx = SimulationContext()
        assert ctx.bar == BEFORE_TIME
        with pytest.raises(OutOfOrderBarError):
            ctx.require_bar()

    def test_advance_defaults_to_next_bar(self):
        ctx = SimulationContext()
        assert ctx.advance() == 0
        assert ctx.advance() == 1
        assert ctx.advance(bar=10, timestamp="2024-01-02") == 10
        assert ctx.timestamp == "2024-01-02"

    @pytest.mark.parametrize("bar", [3, 2])
    def test_repeating_or_regressing_bar_is_fatal(self, bar):
        ctx = SimulationContext()
        ctx.advance(bar=3)
        with pytest.raises(OutOfOrderBarError):
            ctx.advance(bar=bar)

    def test_evaluating_before_first_bar(self):
        ctx = SimulationContext()
        with pytest.raises(OutOfOrderBarError):
            buffered(ctx, make_key(None, "test.const"), lambda prev: 1.0, 0.0)

    def test_close_clears_store_and_blocks_further_use(self):
        ctx = SimulationContext()
        ctx.advance()
        buffered(ctx, make_key(None, "test.const"), lambda prev: 1.0, 0.0)
        assert len(ctx.store) == 1
        ctx.close()
        assert ctx.closed
        assert len(ctx.store) == 0
        with pytest.raises(EngineError):
            ctx.advance()
        ctx.close()  # idempotent

    def test_context_manager_emits_metrics(self, caplog):
        with caplog.at_level(logging.INFO, logger="barsim.metrics"):
            with SimulationContext(run_id="cm") as ctx:
                for _ in range(3):
                    ctx.advance()
                    buffered(ctx, make_key(None, "test.count"), lambda prev: prev + 1.0, 0.0)
        records = [r for r in caplog.records if r.getMessage() == "run_metrics"]
        assert len(records) == 1
        metrics = records[0].metrics
        assert metrics["run_id"] == "cm"
        assert metrics["bars"] == 3
        assert metrics["misses"] == 1
        assert metrics["hits"] == 2
        assert metrics["recomputes"] == 3

    def test_entries_live_in_their_own_context(self):
        key = make_key(None, "test.count")
        a, b = SimulationContext(), SimulationContext()
        a.advance()
        b.advance()
        buffered(a, key, lambda prev: prev + 1.0, 0.0)
        assert key in a.store
        assert key not in b.store
        assert isinstance(a.store.get(key), ScalarEntry)
