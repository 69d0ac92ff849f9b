"""Per work item results and run accounting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ScenarioResult:
    """Result of a single work item."""

    work_id: str
    scenario_name: str
    feature_name: str
    status: str  # passed, failed, skipped
    duration: float = 0.0
    worker_id: int | None = None
    error: str | None = None
    stack_trace: str | None = None
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    test_data: dict[str, str] | None = None
    iteration_number: int | None = None
    total_iterations: int | None = None
    steps: list[dict[str, Any]] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    # True when no worker actually reported this result
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "work_id": self.work_id,
            "scenario": self.scenario_name,
            "feature": self.feature_name,
            "status": self.status,
            "duration_seconds": round(self.duration, 3),
        }
        if self.worker_id is not None:
            entry["worker_id"] = self.worker_id
        if self.iteration_number is not None:
            entry["iteration"] = self.iteration_number
            entry["total_iterations"] = self.total_iterations
        if self.error:
            entry["error"] = self.error
        if self.start_time:
            entry["start_time"] = self.start_time
            entry["end_time"] = self.end_time
        if self.degraded:
            entry["degraded"] = True
        return entry


@dataclass
class RunProgress:
    """Completion accounting for one run."""

    total: int
    completed: int = 0
    results: dict[str, ScenarioResult] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        return self.completed >= self.total
