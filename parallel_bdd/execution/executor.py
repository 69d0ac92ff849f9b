"""Parallel scenario executor.

Drives one run through its states: expand features into work items, spawn a
pool of at most ``min(max_workers, len(items))`` workers, hand every idle
worker an item, drain results until every item is accounted for or the run
deadline passes, then stop the workers and return the results by work id.

All run state (queue, worker table, results, buckets) is touched only from
the coordinating thread, one message at a time, so no locking is needed.
"""

from __future__ import annotations

import enum
import sys
import time

from parallel_bdd.config import RunConfig
from parallel_bdd.execution.aggregator import IterationAggregator
from parallel_bdd.execution.collector import ResultCollector
from parallel_bdd.execution.dispatcher import Dispatcher
from parallel_bdd.execution.pool import UnitFactory, Worker, WorkerPool
from parallel_bdd.execution.results import RunProgress, ScenarioResult
from parallel_bdd.execution.units import ExecutionUnit, ProcessUnit
from parallel_bdd.features.data_provider import DataProvider
from parallel_bdd.features.expander import WorkItem, WorkItemExpander
from parallel_bdd.features.model import Feature
from parallel_bdd.reporting.reporter import NullPublisher, ResultPublisher


class RunState(enum.Enum):
    BUILDING = "building"
    SPAWNING = "spawning"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    TERMINATING = "terminating"
    DONE = "done"


class ParallelExecutor:
    """Executes scenarios on a pool of isolated workers.

    Args:
        config: Run configuration (timeouts, runner, settings).
        max_workers: Explicit worker cap; see ``RunConfig.resolve_worker_count``.
        unit_factory: Builds the execution unit for a worker id. Defaults to
            ProcessUnit running the configured runner.
        publisher: Receives one publish call per logical scenario.
        data_provider: Loads external example tables.

    Raises:
        ValueError: If neither a unit factory nor a configured runner is given.
    """

    def __init__(
        self,
        config: RunConfig | None = None,
        max_workers: int | None = None,
        unit_factory: UnitFactory | None = None,
        publisher: ResultPublisher | None = None,
        data_provider: DataProvider | None = None,
    ) -> None:
        self.config = config or RunConfig()
        self.max_workers = self.config.resolve_worker_count(max_workers)
        if unit_factory is None and not self.config.runner:
            raise ValueError("No scenario runner configured")
        self.unit_factory = unit_factory or self._process_unit
        self.publisher = publisher or NullPublisher()
        self.expander = WorkItemExpander(data_provider)

        self.state = RunState.BUILDING
        self.state_history: list[RunState] = []
        self.items: list[WorkItem] = []
        self.progress = RunProgress(total=0)
        self.pool: WorkerPool | None = None
        self.dispatcher: Dispatcher | None = None
        self.aggregator: IterationAggregator | None = None
        self.collector: ResultCollector | None = None

    def _process_unit(self, worker_id: int) -> ExecutionUnit:
        assert self.config.runner is not None
        return ProcessUnit(worker_id, self.config.runner, self.config.worker_initializer)

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.state_history.append(state)

    def execute(self, features: list[Feature]) -> dict[str, ScenarioResult]:
        """Execute all scenarios of ``features``.

        Returns:
            Mapping of work item id to result for every enqueued item.
            Items no worker reported on carry ``degraded=True``.

        Raises:
            PoolStartError: If no worker could be started.
        """
        self._enter(RunState.BUILDING)
        self.items = self.expander.expand(features)
        self.progress = RunProgress(total=len(self.items))
        print(f"Total scenarios to execute: {len(self.items)}")
        if not self.items:
            self._enter(RunState.DONE)
            return {}

        verbose = self.config.verbose
        self.aggregator = IterationAggregator(self.publisher, self.config.summary_limit)
        self.dispatcher = Dispatcher(self.items, self.config.snapshot(), verbose)
        self.collector = ResultCollector(
            self.progress, self.dispatcher, self.aggregator, self.publisher, verbose
        )
        self.pool = WorkerPool(self.unit_factory, self.config.spawn_timeout, verbose)

        self._enter(RunState.SPAWNING)
        worker_count = min(self.max_workers, len(self.items))
        print(f"Starting parallel execution with {worker_count} workers")
        workers = self.pool.start(worker_count)

        try:
            self._enter(RunState.DISPATCHING)
            for worker in workers:
                self.dispatcher.assign(worker)

            self._enter(RunState.DRAINING)
            self._drain()
        finally:
            self._enter(RunState.TERMINATING)
            self.pool.shutdown(self.config.shutdown_grace)

        self._account_for_unfinished()
        for key, received, total in self.aggregator.open_buckets():
            print(
                f"parallel: {key} never completed ({received}/{total} iterations), "
                f"consolidated result not published",
                file=sys.stderr,
            )

        self._enter(RunState.DONE)
        print(
            f"Parallel execution completed: "
            f"{self.progress.completed}/{self.progress.total} scenarios"
        )
        return dict(self.progress.results)

    def _drain(self) -> None:
        """Process worker messages until all items are accounted for."""
        assert self.pool is not None and self.collector is not None
        deadline = time.monotonic() + self.config.run_timeout

        while not self.progress.done:
            if time.monotonic() >= deadline:
                print(
                    f"parallel: execution timed out after {self.config.run_timeout}s "
                    f"({self.progress.completed}/{self.progress.total} completed)",
                    file=sys.stderr,
                )
                return
            if not self.pool.workers:
                print("parallel: no live workers remain", file=sys.stderr)
                return

            for worker in self.pool.wait(self.config.poll_interval):
                try:
                    message = worker.unit.recv()
                except (EOFError, OSError):
                    self._lose_worker(worker)
                    continue
                self.collector.handle(worker, message)

            for worker in list(self.pool.workers.values()):
                if not worker.unit.is_alive() and not worker.unit.poll():
                    self._lose_worker(worker)

    def _lose_worker(self, worker: Worker) -> None:
        assert self.pool is not None and self.collector is not None
        self.collector.on_disconnect(worker)
        self.pool.discard(worker)

    def _account_for_unfinished(self) -> None:
        """Give every item without a result a degraded skipped entry."""
        for work in self.items:
            if work.id in self.progress.results:
                continue
            self.progress.results[work.id] = ScenarioResult(
                work_id=work.id,
                scenario_name=work.scenario.name,
                feature_name=work.feature.name,
                status="skipped",
                error="Run ended before this scenario completed",
                iteration_number=work.iteration_number,
                total_iterations=work.total_iterations,
                degraded=True,
            )
