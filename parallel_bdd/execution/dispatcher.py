"""FIFO dispatch of queued work items to idle workers."""

from __future__ import annotations

import sys
from collections import deque
from typing import Any

from parallel_bdd.execution.messages import ExecuteMessage
from parallel_bdd.execution.pool import Worker
from parallel_bdd.features.expander import WorkItem


class Dispatcher:
    """Owns the pending-work queue.

    Any idle worker may take the head of the queue; there is no priority or
    affinity. Assignment marks the worker busy and records its current work
    before the execute message is sent.
    """

    def __init__(
        self,
        items: list[WorkItem],
        config_snapshot: dict[str, Any] | None = None,
        verbose: bool = False,
    ) -> None:
        self._queue: deque[WorkItem] = deque(items)
        self.config_snapshot = config_snapshot or {}
        self.verbose = verbose
        self.dispatched = 0

    def __len__(self) -> int:
        return len(self._queue)

    def assign(self, worker: Worker) -> WorkItem | None:
        """Give the next queued item to ``worker`` if it is idle.

        Returns:
            The assigned item, or None when the worker is busy or the queue
            is empty.
        """
        if worker.busy or not self._queue:
            return None

        work = self._queue.popleft()
        worker.busy = True
        worker.current_work = work
        self.dispatched += 1

        message = ExecuteMessage(
            scenario_id=work.id,
            feature=work.feature,
            scenario=work.scenario,
            config=self.config_snapshot,
            example_row=work.example_row,
            example_headers=work.example_headers,
            iteration_number=work.iteration_number,
            total_iterations=work.total_iterations,
        )
        try:
            worker.unit.send(message)
        except OSError as e:
            # The worker stays busy; the drain loop sees its closed channel
            # and accounts for the item.
            print(
                f"parallel: failed to send {work.id} to worker {worker.id}: {e}",
                file=sys.stderr,
            )
            return work

        if self.verbose:
            print(f"Worker {worker.id} assigned: {work.scenario.name}")
        return work

    def remaining(self) -> list[WorkItem]:
        """Items still queued, in dispatch order."""
        return list(self._queue)
