"""Isolated execution units backing the workers of a pool.

Both unit kinds talk to their worker over a duplex ``multiprocessing`` pipe,
so the coordinator can wait on all of them with a single
``multiprocessing.connection.wait`` call:

- ProcessUnit runs the worker loop in an OS child process. This is the
  production unit: a crashing scenario cannot take the coordinator down.
- ThreadUnit runs the worker loop in a daemon thread of the coordinator
  process. It accepts plain callables and starts instantly, which suits
  in-process runners and tests.
"""

from __future__ import annotations

import multiprocessing
import threading
from multiprocessing.connection import Connection
from typing import Any

from parallel_bdd.execution.worker_process import Initializer, ScenarioRunner, process_main, serve


class ExecutionUnit:
    """Coordinator-side handle to one isolated worker."""

    def __init__(self, worker_id: int, connection: Connection) -> None:
        self.worker_id = worker_id
        self.connection = connection

    def start(self) -> None:
        raise NotImplementedError

    def is_alive(self) -> bool:
        raise NotImplementedError

    def join(self, timeout: float | None = None) -> None:
        raise NotImplementedError

    def kill(self) -> None:
        raise NotImplementedError

    def send(self, message: Any) -> None:
        self.connection.send(message)

    def recv(self) -> Any:
        return self.connection.recv()

    def poll(self, timeout: float = 0.0) -> bool:
        return self.connection.poll(timeout)

    def close(self) -> None:
        self.connection.close()


class ProcessUnit(ExecutionUnit):
    """Worker running in a child process."""

    def __init__(
        self,
        worker_id: int,
        runner_path: str,
        initializer_path: str | None = None,
        mp_context: Any = None,
    ) -> None:
        ctx = mp_context or multiprocessing.get_context()
        parent_conn, child_conn = ctx.Pipe()
        super().__init__(worker_id, parent_conn)
        self._child_conn = child_conn
        self._process = ctx.Process(
            target=process_main,
            args=(child_conn, worker_id, runner_path, initializer_path),
            name=f"parallel-worker-{worker_id}",
            daemon=True,
        )

    @property
    def pid(self) -> int | None:
        return self._process.pid

    def start(self) -> None:
        self._process.start()
        # Only the child keeps the worker end open, so its exit closes the pipe
        self._child_conn.close()

    def is_alive(self) -> bool:
        return self._process.is_alive()

    def join(self, timeout: float | None = None) -> None:
        self._process.join(timeout)

    def kill(self) -> None:
        if self._process.is_alive():
            self._process.kill()
            self._process.join(1.0)
        self.close()


class ThreadUnit(ExecutionUnit):
    """Worker running in a daemon thread."""

    def __init__(
        self,
        worker_id: int,
        runner: ScenarioRunner,
        initializer: Initializer | None = None,
    ) -> None:
        parent_conn, child_conn = multiprocessing.Pipe()
        super().__init__(worker_id, parent_conn)
        self._child_conn = child_conn
        self._runner = runner
        self._initializer = initializer
        self._thread = threading.Thread(
            target=self._run,
            name=f"parallel-worker-{worker_id}",
            daemon=True,
        )

    def _run(self) -> None:
        try:
            serve(self._child_conn, self.worker_id, self._runner, self._initializer)
        except SystemExit:
            # sys.exit() in a runner ends this worker the way it ends a process
            return
        finally:
            self._child_conn.close()

    def start(self) -> None:
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def kill(self) -> None:
        # A thread cannot be killed; closing our end makes its next pipe
        # operation fail, which ends the worker loop.
        self.close()
