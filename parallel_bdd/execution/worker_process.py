"""Worker side of the coordinator protocol.

A worker announces itself with a ReadyMessage once its initializer has run,
then executes one scenario per ExecuteMessage through a pluggable scenario
runner, answering each with exactly one ResultMessage, until it receives a
TerminateMessage or its channel closes.

A scenario runner is any callable ``runner(message, context)`` returning a
ScenarioOutcome. Exceptions raised by the runner become failed results.
"""

from __future__ import annotations

import datetime
import os
import time
import traceback
from dataclasses import dataclass, field
from multiprocessing.connection import Connection
from typing import Any, Callable

from parallel_bdd.execution.messages import (
    ErrorMessage,
    ExecuteMessage,
    LogMessage,
    ReadyMessage,
    ResultMessage,
    TerminateMessage,
)


@dataclass
class ScenarioOutcome:
    """What a scenario runner reports for one execution."""

    status: str
    name: str | None = None
    error: str | None = None
    stack_trace: str | None = None
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    test_data: dict[str, str] | None = None
    # One mapping per executed step, e.g. {"name": ..., "status": ...}
    steps: list[dict[str, Any]] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None


class WorkerContext:
    """Handle given to scenario runners for talking back to the coordinator."""

    def __init__(self, worker_id: int, conn: Connection) -> None:
        self.worker_id = worker_id
        self.config: dict[str, Any] = {}
        self._conn = conn

    def log(self, message: str) -> None:
        self._conn.send(LogMessage(message=message))

    def error(self, message: str) -> None:
        self._conn.send(ErrorMessage(error=message))


ScenarioRunner = Callable[[ExecuteMessage, WorkerContext], ScenarioOutcome]
Initializer = Callable[[WorkerContext], None]


def serve(
    conn: Connection,
    worker_id: int,
    runner: ScenarioRunner,
    initializer: Initializer | None = None,
) -> None:
    """Run the worker message loop until terminated or disconnected.

    Args:
        conn: Worker end of the channel.
        worker_id: Identifier assigned by the pool.
        runner: Scenario runner called once per execute message.
        initializer: Optional callable run before the ready handshake.
    """
    context = WorkerContext(worker_id, conn)
    try:
        if initializer is not None:
            initializer(context)
        conn.send(ReadyMessage(worker_id=worker_id))

        while True:
            message = conn.recv()
            if isinstance(message, TerminateMessage):
                break
            if isinstance(message, ExecuteMessage):
                conn.send(execute_scenario(message, runner, context))
    except (EOFError, OSError):
        # Coordinator closed the channel
        return


def _timestamp() -> str:
    return datetime.datetime.now(tz=datetime.timezone.utc).isoformat()


def execute_scenario(
    message: ExecuteMessage,
    runner: ScenarioRunner,
    context: WorkerContext,
) -> ResultMessage:
    """Execute one scenario and build its result message.

    Args:
        message: The execute request.
        runner: Scenario runner to call.
        context: Worker context passed to the runner.

    Returns:
        ResultMessage with execution outcome, wall-clock duration, and start
        and end timestamps (the runner's own, if it reports them).
    """
    context.config = dict(message.config)
    started_at = _timestamp()
    start_time = time.monotonic()
    try:
        outcome = runner(message, context)
        return ResultMessage(
            status=outcome.status,
            duration=time.monotonic() - start_time,
            scenario_id=message.scenario_id,
            name=outcome.name,
            error=outcome.error,
            stack_trace=outcome.stack_trace,
            artifacts=dict(outcome.artifacts),
            test_data=outcome.test_data,
            steps=list(outcome.steps),
            start_time=outcome.start_time or started_at,
            end_time=outcome.end_time or _timestamp(),
        )
    except Exception as e:
        error = str(e) or type(e).__name__
        context.error(f"{message.scenario.name}: {error}")
        return ResultMessage(
            status="failed",
            duration=time.monotonic() - start_time,
            scenario_id=message.scenario_id,
            error=error,
            stack_trace=traceback.format_exc(),
            start_time=started_at,
            end_time=_timestamp(),
        )


def process_main(
    conn: Connection,
    worker_id: int,
    runner_path: str,
    initializer_path: str | None = None,
) -> None:
    """Entry point of a worker child process."""
    from parallel_bdd.execution.runners import load_callable

    os.environ["PARALLEL_WORKER_ID"] = str(worker_id)
    try:
        runner = load_callable(runner_path)
        initializer = load_callable(initializer_path) if initializer_path else None
        serve(conn, worker_id, runner, initializer)
    finally:
        conn.close()
