"""Expansion of parsed features into independently schedulable work items.

A plain scenario becomes one WorkItem. A scenario outline becomes one
WorkItem per example row, each numbered 1..K and carrying the parent id
shared by its siblings so results can be regrouped later.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Callable

from parallel_bdd.features.data_provider import DataProvider, DataProviderError
from parallel_bdd.features.model import Examples, Feature, Scenario

RowFilter = Callable[[dict[str, str]], bool]

_FILTER_RE = re.compile(r"^(\w+)\s*(!=|>=|<=|=|>|<)\s*(.+)$")

# Trailing iteration markers added to display names of outline iterations,
# e.g. "Login (Iteration 2)", "Login - Iteration 2", "Login_Iteration_2".
_ITERATION_SUFFIX_RE = re.compile(
    r"(?:\s*[-_]\s*|\s+)[\(\[]?\s*(?:iteration|example)[\s_#-]*\d+\s*[\)\]]?\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class WorkItem:
    """One schedulable unit of test execution."""

    id: str
    feature: Feature
    scenario: Scenario
    scenario_index: int
    example_row: tuple[str, ...] | None = None
    example_headers: tuple[str, ...] | None = None
    iteration_number: int | None = None
    total_iterations: int | None = None
    parent_id: str | None = None

    @property
    def is_iteration(self) -> bool:
        return self.iteration_number is not None and self.total_iterations is not None

    @property
    def example_data(self) -> dict[str, str]:
        """Example values of this iteration keyed by header."""
        if self.example_row is None or self.example_headers is None:
            return {}
        return dict(zip(self.example_headers, self.example_row))

    @property
    def aggregation_key(self) -> str:
        return f"{self.feature.name}::{base_scenario_name(self.scenario.name)}"


def base_scenario_name(name: str) -> str:
    """Strip a trailing iteration marker from a scenario display name."""
    stripped = _ITERATION_SUFFIX_RE.sub("", name)
    return stripped or name


def compile_filter(expression: str) -> RowFilter:
    """Compile a ``column <op> value`` expression into a row predicate.

    Supported operators are ``=``, ``!=``, ``>``, ``<``, ``>=`` and ``<=``.
    Ordering operators compare numerically; a non-numeric operand makes the
    row not match. Quotes around the value are removed.

    A malformed expression yields a predicate that accepts every row.
    """
    match = _FILTER_RE.match(expression.strip())
    if not match:
        print(f"parallel: invalid filter expression: {expression!r}", file=sys.stderr)
        return lambda row: True

    column, operator, raw_value = match.groups()
    value = raw_value.strip().strip("\"'")

    def predicate(row: dict[str, str]) -> bool:
        cell = str(row.get(column) or "")
        if operator == "=":
            return cell == value
        if operator == "!=":
            return cell != value
        try:
            left = float(cell)
            right = float(value)
        except ValueError:
            return False
        if operator == ">":
            return left > right
        if operator == "<":
            return left < right
        if operator == ">=":
            return left >= right
        return left <= right

    return predicate


class WorkItemExpander:
    """Turns parsed features into a flat, ordered list of WorkItems."""

    def __init__(self, data_provider: DataProvider | None = None) -> None:
        self.data_provider = data_provider or DataProvider()

    def expand(self, features: list[Feature]) -> list[WorkItem]:
        """Expand features into work items.

        Ids are assigned monotonically (``work-1``, ``work-2``, ...) in
        feature, scenario, then row order.
        """
        items: list[WorkItem] = []

        for feature_index, feature in enumerate(features):
            for scenario_index, scenario in enumerate(feature.scenarios):
                rows: list[list[str]] = []
                headers: list[str] = []
                if scenario.examples is not None:
                    examples = self.load_examples(scenario.examples)
                    headers, rows = examples.headers, examples.rows

                if not rows:
                    items.append(WorkItem(
                        id=f"work-{len(items) + 1}",
                        feature=feature,
                        scenario=scenario,
                        scenario_index=scenario_index,
                    ))
                    continue

                parent_id = f"feature-{feature_index}/scenario-{scenario_index}"
                for iteration, row in enumerate(rows, start=1):
                    items.append(WorkItem(
                        id=f"work-{len(items) + 1}",
                        feature=feature,
                        scenario=scenario,
                        scenario_index=scenario_index,
                        example_row=tuple(row),
                        example_headers=tuple(headers),
                        iteration_number=iteration,
                        total_iterations=len(rows),
                        parent_id=parent_id,
                    ))

        return items

    def load_examples(self, examples: Examples) -> Examples:
        """Resolve an external data source into headers and rows.

        Returns the inline examples unchanged when there is no data source,
        when loading fails, or when the source yields no rows.
        """
        source = examples.data_source
        if source is None:
            return examples

        try:
            records = self.data_provider.load_rows(source)
        except DataProviderError as e:
            print(
                f"parallel: failed to load external data from {source.source}: {e}",
                file=sys.stderr,
            )
            return examples

        if source.filter:
            predicate = compile_filter(source.filter)
            records = [r for r in records if predicate(r)]

        if not records:
            print(
                f"parallel: no data loaded from external source: {source.source}",
                file=sys.stderr,
            )
            return examples

        headers = list(records[0].keys())
        rows = [[str(record.get(h) or "") for h in headers] for record in records]
        return Examples(headers=headers, rows=rows, data_source=source)
