"""Publishing of scenario outcomes and run report generation.

The executor hands every logical scenario to a ResultPublisher exactly once:
plain scenarios as soon as their result arrives, data-driven scenarios as a
single consolidated outcome once every iteration is in.

Reporter is a publisher that keeps the published outcomes and renders them
as a YAML or JSON report with a status summary.
"""

from __future__ import annotations

import datetime
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

from parallel_bdd.features.model import Feature, Scenario


class ResultPublisher(Protocol):
    """Receives the outcome of each logical scenario."""

    def publish(
        self,
        scenario: Scenario,
        feature: Feature,
        status: str,
        duration: float,
        error: str | None = None,
        artifacts: dict[str, list[str]] | None = None,
        stack_trace: str | None = None,
        iteration_number: int | None = None,
        iteration_data: list[dict[str, Any]] | None = None,
        summary_comment: str | None = None,
        steps: list[dict[str, Any]] | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> None: ...


class NullPublisher:
    """Publisher that discards everything."""

    def publish(
        self,
        scenario: Scenario,
        feature: Feature,
        status: str,
        duration: float,
        **kwargs: Any,
    ) -> None:
        return None


def publish_safely(publisher: ResultPublisher, **kwargs: Any) -> bool:
    """Call ``publisher.publish`` and report, rather than raise, its errors.

    Returns:
        True if the publisher accepted the outcome.
    """
    try:
        publisher.publish(**kwargs)
    except Exception as e:
        scenario = kwargs.get("scenario")
        name = scenario.name if scenario is not None else "<unknown>"
        print(f"parallel: failed to publish result for {name}: {e}", file=sys.stderr)
        return False
    return True


@dataclass
class PublishedResult:
    """One published outcome as held by the Reporter."""

    feature: str
    scenario: str
    status: str
    duration: float
    error: str | None = None
    stack_trace: str | None = None
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    iteration_number: int | None = None
    iteration_data: list[dict[str, Any]] | None = None
    summary_comment: str | None = None
    tags: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None


class Reporter:
    """Collects published outcomes and generates run reports."""

    def __init__(self) -> None:
        self.results: list[PublishedResult] = []
        self.run_name: str | None = None

    def set_run_name(self, name: str) -> None:
        """Set the name shown at the top of the report."""
        self.run_name = name

    def publish(
        self,
        scenario: Scenario,
        feature: Feature,
        status: str,
        duration: float,
        error: str | None = None,
        artifacts: dict[str, list[str]] | None = None,
        stack_trace: str | None = None,
        iteration_number: int | None = None,
        iteration_data: list[dict[str, Any]] | None = None,
        summary_comment: str | None = None,
        steps: list[dict[str, Any]] | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> None:
        self.results.append(PublishedResult(
            feature=feature.name,
            scenario=scenario.name,
            status=status,
            duration=duration,
            error=error,
            stack_trace=stack_trace,
            artifacts=dict(artifacts or {}),
            iteration_number=iteration_number,
            iteration_data=iteration_data,
            summary_comment=summary_comment,
            tags=list(scenario.tags),
            steps=list(steps or []),
            start_time=start_time,
            end_time=end_time,
        ))

    def generate_report(self) -> dict[str, Any]:
        """Generate the report data structure.

        Returns:
            Dictionary representing the full report, suitable for YAML or
            JSON serialization.
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc).isoformat()
        report: dict[str, Any] = {
            "generated_at": now,
            "summary": self._compute_summary(),
            "scenarios": [self._format_result(r) for r in self.results],
        }
        if self.run_name:
            report["run"] = self.run_name
        return {"report": report}

    def write_report(self, path: Path) -> None:
        """Write the report to ``path``, as YAML for .yaml/.yml, else JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        report = self.generate_report()
        with open(path, "w") as f:
            if path.suffix in (".yaml", ".yml"):
                yaml.dump(report, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
            else:
                json.dump(report, f, indent=2)
                f.write("\n")

    def _compute_summary(self) -> dict[str, Any]:
        """Compute summary statistics from published outcomes."""
        return {
            "total": len(self.results),
            "passed": sum(1 for r in self.results if r.status == "passed"),
            "failed": sum(1 for r in self.results if r.status == "failed"),
            "skipped": sum(1 for r in self.results if r.status == "skipped"),
            "total_duration_seconds": round(sum(r.duration for r in self.results), 3),
        }

    def _format_result(self, result: PublishedResult) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "feature": result.feature,
            "scenario": result.scenario,
            "status": result.status,
            "duration_seconds": round(result.duration, 3),
        }
        if result.tags:
            entry["tags"] = result.tags
        if result.error:
            entry["error"] = result.error
        if result.stack_trace:
            entry["stack_trace"] = result.stack_trace
        if result.start_time:
            entry["start_time"] = result.start_time
            entry["end_time"] = result.end_time
        if result.steps:
            entry["steps"] = result.steps
        if any(result.artifacts.values()):
            entry["artifacts"] = result.artifacts
        if result.iteration_data is not None:
            entry["iterations"] = result.iteration_data
        if result.summary_comment:
            entry["summary_comment"] = result.summary_comment
        return entry
