"""Unit tests for built-in runners and runner lookup."""

from __future__ import annotations

import pytest

from parallel_bdd.execution.messages import ExecuteMessage
from parallel_bdd.execution.runners import DRY_RUN, dry_run, interpolate_name, load_callable
from parallel_bdd.features.model import Feature, Scenario


def _message(scenario: Scenario, row=None, headers=None, iteration=None, total=None):
    return ExecuteMessage(
        scenario_id="work-1",
        feature=Feature(name="F", scenarios=[scenario]),
        scenario=scenario,
        example_row=row,
        example_headers=headers,
        iteration_number=iteration,
        total_iterations=total,
    )


class TestLoadCallable:
    """Tests for load_callable."""

    def test_colon_path(self):
        """module:attr paths resolve to the attribute."""
        assert load_callable(DRY_RUN) is dry_run

    def test_dotted_path(self):
        """module.attr paths resolve too."""
        assert load_callable("parallel_bdd.execution.runners.dry_run") is dry_run

    def test_malformed_path(self):
        """A path without a module part is rejected."""
        with pytest.raises(ValueError, match="Invalid callable path"):
            load_callable("dry_run")

    def test_not_callable(self):
        """Attributes that cannot be called are rejected."""
        with pytest.raises(ValueError, match="is not callable"):
            load_callable("parallel_bdd.execution.runners:DRY_RUN")

    def test_missing_module(self):
        """Import errors propagate."""
        with pytest.raises(ImportError):
            load_callable("no_such_module_here:run")


class TestInterpolateName:
    """Tests for interpolate_name."""

    def test_plain_scenario_unchanged(self):
        """Scenarios without example data keep their name."""
        assert interpolate_name(_message(Scenario(name="Login <user>"))) == "Login <user>"

    def test_placeholders_and_iteration_suffix(self):
        """Known placeholders are substituted and the iteration appended."""
        message = _message(
            Scenario(name="Login <user> with <missing>"),
            row=("alice",), headers=("user",), iteration=2, total=3,
        )
        assert interpolate_name(message) == "Login alice with <missing> (Iteration 2)"


class TestDryRun:
    """Tests for the dry_run runner."""

    def test_passes_and_reports_example_data(self):
        """Every scenario passes and reports its example values."""
        message = _message(Scenario(name="Pay <amount>"), row=("10",), headers=("amount",),
                           iteration=1, total=1)
        outcome = dry_run(message, None)
        assert outcome.status == "passed"
        assert outcome.name == "Pay 10 (Iteration 1)"
        assert outcome.test_data == {"amount": "10"}

    def test_skip_tag(self):
        """Scenarios tagged @skip are skipped."""
        outcome = dry_run(_message(Scenario(name="Later", tags=["@skip"])), None)
        assert outcome.status == "skipped"
        assert outcome.test_data is None

    def test_steps_listed(self):
        """Background and scenario steps are reported with values substituted."""
        scenario = Scenario(name="Pay <amount>", steps=["When I pay <amount>", "Then it succeeds"])
        message = ExecuteMessage(
            scenario_id="work-1",
            feature=Feature(name="F", scenarios=[scenario], background=["Given a cart"]),
            scenario=scenario,
            example_row=("10",),
            example_headers=("amount",),
            iteration_number=1,
            total_iterations=1,
        )
        outcome = dry_run(message, None)
        assert outcome.steps == [
            {"name": "Given a cart", "status": "passed"},
            {"name": "When I pay 10", "status": "passed"},
            {"name": "Then it succeeds", "status": "passed"},
        ]

    def test_skipped_steps(self):
        """Steps of a skipped scenario are skipped."""
        outcome = dry_run(_message(Scenario(name="Later", steps=["Given x"], tags=["@skip"])), None)
        assert outcome.steps == [{"name": "Given x", "status": "skipped"}]
