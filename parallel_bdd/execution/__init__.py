"""Test execution engine: worker pool, dispatch, result collection and aggregation."""

from parallel_bdd.execution.aggregator import ConsolidatedResult, IterationAggregator
from parallel_bdd.execution.executor import ParallelExecutor, RunState
from parallel_bdd.execution.pool import PoolStartError, Worker, WorkerPool
from parallel_bdd.execution.results import ScenarioResult
from parallel_bdd.execution.units import ProcessUnit, ThreadUnit
from parallel_bdd.execution.worker_process import ScenarioOutcome, WorkerContext

__all__ = [
    "ConsolidatedResult",
    "IterationAggregator",
    "ParallelExecutor",
    "PoolStartError",
    "ProcessUnit",
    "RunState",
    "ScenarioOutcome",
    "ScenarioResult",
    "ThreadUnit",
    "Worker",
    "WorkerContext",
    "WorkerPool",
]
