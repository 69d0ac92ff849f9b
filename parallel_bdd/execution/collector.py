"""Correlation of worker messages with the work items they belong to."""

from __future__ import annotations

import sys

from parallel_bdd.execution.aggregator import IterationAggregator
from parallel_bdd.execution.dispatcher import Dispatcher
from parallel_bdd.execution.messages import (
    ErrorMessage,
    LogMessage,
    ReadyMessage,
    ResultMessage,
    WorkerMessage,
)
from parallel_bdd.execution.pool import Worker
from parallel_bdd.execution.results import RunProgress, ScenarioResult
from parallel_bdd.features.expander import WorkItem
from parallel_bdd.reporting.reporter import ResultPublisher, publish_safely

STATUS_SYMBOLS = {"passed": "✓", "failed": "✗", "skipped": "-"}


class ResultCollector:
    """Handles messages arriving from workers.

    A result is recorded against the worker's current work item, handed to
    the aggregator (iterations) or the publisher (plain scenarios), counted,
    and the worker is freed and offered the next queued item.
    """

    def __init__(
        self,
        progress: RunProgress,
        dispatcher: Dispatcher,
        aggregator: IterationAggregator,
        publisher: ResultPublisher,
        verbose: bool = False,
    ) -> None:
        self.progress = progress
        self.dispatcher = dispatcher
        self.aggregator = aggregator
        self.publisher = publisher
        self.verbose = verbose

    def handle(self, worker: Worker, message: WorkerMessage) -> None:
        """Dispatch one worker message by kind."""
        if isinstance(message, ResultMessage):
            self.on_result(worker, message)
        elif isinstance(message, ErrorMessage):
            print(f"parallel: Worker {worker.id} error: {message.error}", file=sys.stderr)
        elif isinstance(message, LogMessage):
            if self.verbose:
                print(f"[Worker {worker.id}] {message.message}")
        elif isinstance(message, ReadyMessage):
            if self.verbose:
                print(f"Worker {worker.id} sent a repeated ready message")
        else:
            print(
                f"parallel: unknown message from worker {worker.id}: {message!r}",
                file=sys.stderr,
            )

    def on_result(self, worker: Worker, message: ResultMessage) -> None:
        """Record a worker's terminal result and reassign the worker."""
        work = worker.current_work
        if work is None:
            print(
                f"parallel: dropping result from idle worker {worker.id}",
                file=sys.stderr,
            )
            return

        self._record(worker, work, message, degraded=False)
        worker.busy = False
        worker.current_work = None
        self.dispatcher.assign(worker)

    def on_disconnect(self, worker: Worker) -> None:
        """Account for the item of a worker whose channel closed.

        A busy worker's item gets a synthesized failed result, which goes
        through the normal recording path so that its outline can still be
        consolidated.
        """
        work = worker.current_work
        if not worker.busy or work is None:
            return

        print(f"parallel: Worker {worker.id} disconnected while busy", file=sys.stderr)
        message = ResultMessage(
            status="failed",
            duration=0.0,
            scenario_id=work.id,
            error=f"Worker {worker.id} disconnected while executing '{work.scenario.name}'",
        )
        self._record(worker, work, message, degraded=True)
        worker.busy = False
        worker.current_work = None

    def _record(
        self,
        worker: Worker,
        work: WorkItem,
        message: ResultMessage,
        degraded: bool,
    ) -> None:
        result = ScenarioResult(
            work_id=work.id,
            scenario_name=message.name or work.scenario.name,
            feature_name=work.feature.name,
            status=message.status,
            duration=message.duration,
            worker_id=worker.id,
            error=message.error,
            stack_trace=message.stack_trace,
            artifacts=dict(message.artifacts),
            test_data=message.test_data,
            iteration_number=work.iteration_number,
            total_iterations=work.total_iterations,
            steps=list(message.steps),
            start_time=message.start_time,
            end_time=message.end_time,
            degraded=degraded,
        )
        self.progress.results[work.id] = result

        if work.is_iteration:
            self.aggregator.add(work, result)
        else:
            publish_safely(
                self.publisher,
                scenario=work.scenario,
                feature=work.feature,
                status=result.status,
                duration=result.duration,
                error=result.error,
                artifacts=result.artifacts,
                stack_trace=result.stack_trace,
                steps=result.steps,
                start_time=result.start_time,
                end_time=result.end_time,
            )

        self.progress.completed += 1
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        print(
            f"[{self.progress.completed}/{self.progress.total}] {symbol} "
            f"{result.scenario_name} ({result.duration:.2f}s)"
        )
