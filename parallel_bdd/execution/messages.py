"""Messages exchanged between the coordinator and its workers.

Each message kind is its own frozen dataclass carrying only the fields that
kind needs. Messages travel pickled over a ``multiprocessing`` pipe.

Coordinator to worker: ExecuteMessage, TerminateMessage.
Worker to coordinator: ReadyMessage (once), ResultMessage (exactly once per
execute), ErrorMessage and LogMessage (informational).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from parallel_bdd.features.model import Feature, Scenario

# Valid scenario statuses reported by workers
VALID_STATUSES = frozenset({"passed", "failed", "skipped"})


@dataclass(frozen=True)
class ReadyMessage:
    worker_id: int


@dataclass(frozen=True)
class ExecuteMessage:
    scenario_id: str
    feature: Feature
    scenario: Scenario
    config: dict[str, Any] = field(default_factory=dict)
    example_row: tuple[str, ...] | None = None
    example_headers: tuple[str, ...] | None = None
    iteration_number: int | None = None
    total_iterations: int | None = None


@dataclass(frozen=True)
class ResultMessage:
    status: str
    duration: float
    scenario_id: str = ""
    name: str | None = None
    error: str | None = None
    stack_trace: str | None = None
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    test_data: dict[str, str] | None = None
    steps: list[dict[str, Any]] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None

    def __post_init__(self) -> None:
        if self.status not in VALID_STATUSES:
            raise ValueError(f"Invalid result status: {self.status}")


@dataclass(frozen=True)
class ErrorMessage:
    error: str


@dataclass(frozen=True)
class LogMessage:
    message: str


@dataclass(frozen=True)
class TerminateMessage:
    pass


WorkerMessage = Union[ReadyMessage, ResultMessage, ErrorMessage, LogMessage]
CoordinatorMessage = Union[ExecuteMessage, TerminateMessage]
