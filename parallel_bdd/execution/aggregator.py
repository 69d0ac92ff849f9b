"""Consolidation of data-driven scenario iterations.

Results of the iterations of one scenario outline are buffered in a bucket
keyed by the parent id shared by its work items. The bucket is flushed the
moment it holds every iteration: one consolidated result is published and
the bucket is removed. Arrival order does not matter; iterations are keyed
and reported by iteration number.
"""

from __future__ import annotations

import dataclasses
import sys
from dataclasses import dataclass, field
from typing import Any

from parallel_bdd.execution.results import ScenarioResult
from parallel_bdd.features.expander import WorkItem, base_scenario_name
from parallel_bdd.features.model import Feature, Scenario
from parallel_bdd.reporting.reporter import ResultPublisher, publish_safely

# Character budget of the consolidated summary comment
DEFAULT_SUMMARY_LIMIT = 1000

# Maximum length of the per-iteration error shown in the summary
SHORT_ERROR_LENGTH = 100

TRUNCATION_MARKER = "..."


@dataclass(frozen=True)
class IterationOutcome:
    """Result of one iteration as held in a bucket."""

    iteration: int
    status: str
    duration: float
    error: str | None = None
    stack_trace: str | None = None
    example_data: dict[str, str] = field(default_factory=dict)
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    steps: list[dict[str, Any]] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "iteration": self.iteration,
            "status": self.status,
            "duration_seconds": round(self.duration, 3),
            "example_data": dict(self.example_data),
        }
        if self.error:
            entry["error"] = self.error
        if self.steps:
            entry["steps"] = [dict(s) for s in self.steps]
        if self.start_time:
            entry["start_time"] = self.start_time
            entry["end_time"] = self.end_time
        return entry


@dataclass
class AggregationBucket:
    """Iterations received so far for one scenario outline."""

    parent_id: str
    feature: Feature
    scenario: Scenario
    total: int
    iterations: dict[int, IterationOutcome] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.feature.name}::{base_scenario_name(self.scenario.name)}"

    @property
    def complete(self) -> bool:
        return len(self.iterations) >= self.total


@dataclass(frozen=True)
class ConsolidatedResult:
    """The single outcome standing for all iterations of an outline."""

    feature_name: str
    scenario_name: str
    status: str
    duration: float
    iterations: list[IterationOutcome]
    summary: str
    error: str | None = None
    stack_trace: str | None = None
    artifacts: dict[str, list[str]] = field(default_factory=dict)
    start_time: str | None = None
    end_time: str | None = None


def short_error(error: str | None) -> str:
    """First line of an error message, cut to SHORT_ERROR_LENGTH."""
    if not error:
        return ""
    first_line = error.strip().splitlines()[0] if error.strip() else ""
    if len(first_line) > SHORT_ERROR_LENGTH:
        cut = SHORT_ERROR_LENGTH - len(TRUNCATION_MARKER)
        first_line = first_line[:cut] + TRUNCATION_MARKER
    return first_line


def build_summary(
    iterations: list[IterationOutcome],
    status: str,
    limit: int = DEFAULT_SUMMARY_LIMIT,
) -> str:
    """Render the human-readable iteration summary.

    The header line comes first, followed by one line per iteration in
    iteration order. Text beyond ``limit`` characters is cut from the tail
    and replaced by ``...``.
    """
    passed = sum(1 for o in iterations if o.status == "passed")
    lines = [f"{status.upper()}: {passed}/{len(iterations)} iterations passed"]
    for outcome in sorted(iterations, key=lambda o: o.iteration):
        line = f"Iteration-{outcome.iteration}: {outcome.status}"
        error = short_error(outcome.error) if outcome.status == "failed" else ""
        if error:
            line += f" [{error}]"
        lines.append(line)

    summary = "\n".join(lines)
    if len(summary) > limit:
        summary = summary[: max(0, limit - len(TRUNCATION_MARKER))] + TRUNCATION_MARKER
    return summary


def consolidate(
    bucket: AggregationBucket,
    summary_limit: int = DEFAULT_SUMMARY_LIMIT,
) -> ConsolidatedResult:
    """Fold a complete bucket into one consolidated result."""
    ordered = [bucket.iterations[i] for i in sorted(bucket.iterations)]
    status = "failed" if any(o.status == "failed" for o in ordered) else "passed"

    error = next((o.error for o in ordered if o.status == "failed" and o.error), None)
    stack_trace = next(
        (o.stack_trace for o in ordered if o.status == "failed" and o.stack_trace), None
    )

    artifacts: dict[str, list[str]] = {}
    for outcome in ordered:
        for kind, paths in outcome.artifacts.items():
            artifacts.setdefault(kind, []).extend(paths)

    starts = [o.start_time for o in ordered if o.start_time]
    ends = [o.end_time for o in ordered if o.end_time]

    return ConsolidatedResult(
        feature_name=bucket.feature.name,
        scenario_name=base_scenario_name(bucket.scenario.name),
        status=status,
        duration=sum(o.duration for o in ordered),
        iterations=ordered,
        summary=build_summary(ordered, status, summary_limit),
        error=error,
        stack_trace=stack_trace,
        artifacts=artifacts,
        start_time=min(starts) if starts else None,
        end_time=max(ends) if ends else None,
    )


class IterationAggregator:
    """Buffers iteration results and publishes each outline exactly once."""

    def __init__(
        self,
        publisher: ResultPublisher,
        summary_limit: int = DEFAULT_SUMMARY_LIMIT,
    ) -> None:
        self.publisher = publisher
        self.summary_limit = summary_limit
        self.emitted: list[ConsolidatedResult] = []
        self._buckets: dict[str, AggregationBucket] = {}
        self._flushed: set[str] = set()

    def add(self, work: WorkItem, result: ScenarioResult) -> ConsolidatedResult | None:
        """Record one iteration result.

        Args:
            work: The iteration's work item.
            result: Its recorded result.

        Returns:
            The consolidated result if this iteration completed the bucket,
            otherwise None.
        """
        if not work.is_iteration or work.parent_id is None:
            raise ValueError(f"{work.id} is not an iteration of a data-driven scenario")
        assert work.iteration_number is not None and work.total_iterations is not None

        if work.parent_id in self._flushed:
            print(
                f"parallel: dropping late iteration {work.iteration_number} "
                f"of already published {work.aggregation_key}",
                file=sys.stderr,
            )
            return None

        bucket = self._buckets.get(work.parent_id)
        if bucket is None:
            bucket = AggregationBucket(
                parent_id=work.parent_id,
                feature=work.feature,
                scenario=work.scenario,
                total=work.total_iterations,
            )
            self._buckets[work.parent_id] = bucket

        if work.iteration_number in bucket.iterations:
            print(
                f"parallel: duplicate iteration {work.iteration_number} "
                f"for {bucket.key}, ignoring",
                file=sys.stderr,
            )
            return None

        bucket.iterations[work.iteration_number] = IterationOutcome(
            iteration=work.iteration_number,
            status=result.status,
            duration=result.duration,
            error=result.error,
            stack_trace=result.stack_trace,
            example_data=result.test_data or work.example_data,
            artifacts=dict(result.artifacts),
            steps=list(result.steps),
            start_time=result.start_time,
            end_time=result.end_time,
        )

        if not bucket.complete:
            return None

        del self._buckets[work.parent_id]
        self._flushed.add(work.parent_id)
        consolidated = consolidate(bucket, self.summary_limit)
        self.emitted.append(consolidated)

        publish_safely(
            self.publisher,
            scenario=dataclasses.replace(bucket.scenario, name=consolidated.scenario_name),
            feature=bucket.feature,
            status=consolidated.status,
            duration=consolidated.duration,
            error=consolidated.error,
            artifacts=consolidated.artifacts,
            stack_trace=consolidated.stack_trace,
            iteration_data=[o.to_dict() for o in consolidated.iterations],
            summary_comment=consolidated.summary,
            start_time=consolidated.start_time,
            end_time=consolidated.end_time,
        )
        return consolidated

    def open_buckets(self) -> list[tuple[str, int, int]]:
        """Buckets not yet complete as ``(key, received, total)`` tuples."""
        return [
            (bucket.key, len(bucket.iterations), bucket.total)
            for bucket in self._buckets.values()
        ]
