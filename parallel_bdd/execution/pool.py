"""Worker pool: spawning, readiness handshake, waiting and shutdown.

The pool exclusively owns the execution units of its workers. Spawning is
per worker and failures are independent: a worker that does not announce
itself before the spawn timeout is killed and left out of the pool.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from multiprocessing.connection import wait as wait_connections
from typing import Callable

from parallel_bdd.execution.messages import ErrorMessage, LogMessage, ReadyMessage, TerminateMessage
from parallel_bdd.execution.units import ExecutionUnit
from parallel_bdd.features.expander import WorkItem

UnitFactory = Callable[[int], ExecutionUnit]


class PoolStartError(RuntimeError):
    """Raised when not a single worker could be started."""


@dataclass
class Worker:
    """A started worker and its current assignment."""

    id: int
    unit: ExecutionUnit
    busy: bool = False
    current_work: WorkItem | None = None


class WorkerPool:
    """Starts, tracks, and stops a fixed set of workers."""

    def __init__(
        self,
        unit_factory: UnitFactory,
        spawn_timeout: float = 30.0,
        verbose: bool = False,
    ) -> None:
        self.unit_factory = unit_factory
        self.spawn_timeout = spawn_timeout
        self.verbose = verbose
        self.workers: dict[int, Worker] = {}

    def start(self, count: int) -> list[Worker]:
        """Spawn ``count`` workers and wait for each one's ready message.

        All units are started first, then every handshake is awaited
        against one shared deadline, so slow starters overlap.

        Returns:
            The workers that completed the handshake, ordered by id.

        Raises:
            PoolStartError: If no worker completed the handshake.
        """
        if count <= 0:
            raise PoolStartError("Worker pool needs at least one worker")

        units: list[ExecutionUnit] = []
        try:
            for worker_id in range(1, count + 1):
                unit = self.unit_factory(worker_id)
                try:
                    unit.start()
                except OSError as e:
                    print(f"parallel: failed to start worker {worker_id}: {e}", file=sys.stderr)
                    unit.close()
                    continue
                units.append(unit)

            deadline = time.monotonic() + self.spawn_timeout
            for unit in units:
                if self._await_ready(unit, deadline):
                    self.workers[unit.worker_id] = Worker(id=unit.worker_id, unit=unit)
                    if self.verbose:
                        print(f"Worker {unit.worker_id} ready")
                else:
                    print(
                        f"parallel: worker {unit.worker_id} failed to start "
                        f"within {self.spawn_timeout}s",
                        file=sys.stderr,
                    )
                    unit.kill()
        except Exception:
            # Release the units started so far before re-raising
            for unit in units:
                unit.kill()
            self.workers.clear()
            raise

        if not self.workers:
            raise PoolStartError(f"None of {count} workers started")
        if len(self.workers) < count:
            print(
                f"parallel: continuing with {len(self.workers)} of {count} workers",
                file=sys.stderr,
            )
        return [self.workers[i] for i in sorted(self.workers)]

    def _await_ready(self, unit: ExecutionUnit, deadline: float) -> bool:
        """Consume messages from a starting unit until it reports ready."""
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                if not unit.poll(remaining):
                    return False
                message = unit.recv()
            except (EOFError, OSError):
                return False

            if isinstance(message, ReadyMessage):
                return True
            if isinstance(message, ErrorMessage):
                print(f"parallel: Worker {unit.worker_id} error: {message.error}", file=sys.stderr)
            elif isinstance(message, LogMessage) and self.verbose:
                print(f"[Worker {unit.worker_id}] {message.message}")

    def wait(self, timeout: float) -> list[Worker]:
        """Block until at least one worker has a message or has gone away.

        Args:
            timeout: Maximum seconds to block.

        Returns:
            Workers whose channel is readable (a message or end-of-file).
        """
        by_connection = {w.unit.connection: w for w in self.workers.values()}
        if not by_connection:
            time.sleep(timeout)
            return []
        ready = wait_connections(list(by_connection), timeout)
        return [by_connection[conn] for conn in ready]

    def discard(self, worker: Worker) -> None:
        """Remove a worker from the pool and release its unit."""
        self.workers.pop(worker.id, None)
        worker.unit.kill()

    def shutdown(self, grace: float = 5.0) -> None:
        """Ask every worker to exit, then kill those still running.

        Args:
            grace: Seconds the workers get, together, to exit voluntarily.
        """
        workers = list(self.workers.values())
        for worker in workers:
            try:
                worker.unit.send(TerminateMessage())
            except OSError:
                # Channel already closed; the kill below releases the unit
                continue

        deadline = time.monotonic() + grace
        for worker in workers:
            worker.unit.join(max(0.0, deadline - time.monotonic()))
            if worker.unit.is_alive():
                print(
                    f"parallel: worker {worker.id} did not exit within {grace}s, killing it",
                    file=sys.stderr,
                )
            worker.unit.kill()

        self.workers.clear()
