"""Unit tests for the worker pool."""

from __future__ import annotations

import time

import pytest

from parallel_bdd.execution.pool import PoolStartError, WorkerPool
from parallel_bdd.execution.units import ThreadUnit
from parallel_bdd.execution.worker_process import ScenarioOutcome


def _runner(message, context):
    return ScenarioOutcome(status="passed")


def _slow_start(slow_ids, delay=1.0):
    def initializer(context):
        if context.worker_id in slow_ids:
            time.sleep(delay)
    return initializer


def _crash_on_start(context):
    raise SystemExit(1)


class TestStart:
    """Tests for WorkerPool.start."""

    def test_all_workers_ready(self):
        """Every unit that completes the handshake joins the pool."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner), spawn_timeout=2.0)
        try:
            workers = pool.start(3)
            assert [w.id for w in workers] == [1, 2, 3]
            assert all(not w.busy and w.current_work is None for w in workers)
            assert sorted(pool.workers) == [1, 2, 3]
        finally:
            pool.shutdown(1.0)

    def test_slow_worker_left_out(self, capsys):
        """A worker missing the spawn deadline is dropped, the rest continue."""
        factory = lambda wid: ThreadUnit(wid, _runner, _slow_start({2}))
        pool = WorkerPool(factory, spawn_timeout=0.3)
        try:
            workers = pool.start(3)
            assert [w.id for w in workers] == [1, 3]
            err = capsys.readouterr().err
            assert "worker 2 failed to start" in err
            assert "continuing with 2 of 3 workers" in err
        finally:
            pool.shutdown(1.0)

    def test_no_worker_starts(self):
        """PoolStartError is raised when every worker fails."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner, _crash_on_start), spawn_timeout=1.0)
        with pytest.raises(PoolStartError, match="None of 2 workers started"):
            pool.start(2)
        assert pool.workers == {}

    def test_zero_workers_rejected(self):
        """A pool of no workers cannot be started."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner))
        with pytest.raises(PoolStartError):
            pool.start(0)

    def test_log_before_ready(self, capsys):
        """Messages sent before the ready message are consumed by the handshake."""
        def initializer(context):
            context.error("driver warning")

        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner, initializer), spawn_timeout=2.0)
        try:
            assert len(pool.start(1)) == 1
            assert "Worker 1 error: driver warning" in capsys.readouterr().err
        finally:
            pool.shutdown(1.0)

    def test_factory_error_releases_started_units(self):
        """Units started before a factory error are killed and the error propagates."""
        created = []

        def factory(worker_id):
            if worker_id == 3:
                raise RuntimeError("no browser available")
            unit = ThreadUnit(worker_id, _runner)
            created.append(unit)
            return unit

        pool = WorkerPool(factory, spawn_timeout=2.0)
        with pytest.raises(RuntimeError, match="no browser available"):
            pool.start(3)

        assert [u.worker_id for u in created] == [1, 2]
        assert all(u.connection.closed for u in created)
        for unit in created:
            unit.join(2.0)
            assert not unit.is_alive()
        assert pool.workers == {}


class TestShutdown:
    """Tests for WorkerPool.shutdown and discard."""

    def test_workers_exit(self):
        """Terminate makes every worker exit and empties the pool."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner), spawn_timeout=2.0)
        workers = pool.start(2)
        pool.shutdown(2.0)
        assert pool.workers == {}
        assert all(not w.unit.is_alive() for w in workers)

    def test_discard(self):
        """A discarded worker is removed and its channel released."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner), spawn_timeout=2.0)
        workers = pool.start(2)
        try:
            pool.discard(workers[0])
            assert list(pool.workers) == [2]
            assert workers[0].unit.connection.closed
        finally:
            pool.shutdown(1.0)

    def test_wait_on_empty_pool(self):
        """Waiting with no workers returns nothing after the timeout."""
        pool = WorkerPool(lambda wid: ThreadUnit(wid, _runner))
        assert pool.wait(0.01) == []
