"""Unit tests for result publishing and report generation."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

import yaml

from parallel_bdd.features.model import Feature, Scenario
from parallel_bdd.reporting.reporter import NullPublisher, Reporter, publish_safely


def _publish(reporter: Reporter, name: str, status: str, duration: float = 1.0, **kwargs):
    reporter.publish(
        scenario=Scenario(name=name, tags=kwargs.pop("tags", [])),
        feature=Feature(name="Checkout"),
        status=status,
        duration=duration,
        **kwargs,
    )


class TestGenerateReport:
    """Tests for Reporter.generate_report."""

    def test_empty(self):
        """A report with nothing published has zero counts."""
        report = Reporter().generate_report()["report"]
        assert report["summary"] == {
            "total": 0, "passed": 0, "failed": 0, "skipped": 0, "total_duration_seconds": 0,
        }
        assert report["scenarios"] == []
        assert "run" not in report

    def test_summary_counts(self):
        """Statuses and durations are summed."""
        reporter = Reporter()
        reporter.set_run_name("nightly")
        _publish(reporter, "a", "passed", 1.25)
        _publish(reporter, "b", "failed", 2.0, error="boom", stack_trace="Traceback")
        _publish(reporter, "c", "skipped", 0.0, tags=["@skip"])

        report = reporter.generate_report()["report"]
        assert report["run"] == "nightly"
        assert report["summary"]["passed"] == 1
        assert report["summary"]["failed"] == 1
        assert report["summary"]["skipped"] == 1
        assert report["summary"]["total_duration_seconds"] == 3.25

        entries = {e["scenario"]: e for e in report["scenarios"]}
        assert entries["a"] == {
            "feature": "Checkout", "scenario": "a", "status": "passed", "duration_seconds": 1.25,
        }
        assert entries["b"]["error"] == "boom"
        assert entries["b"]["stack_trace"] == "Traceback"
        assert entries["c"]["tags"] == ["@skip"]

    def test_consolidated_entry(self):
        """Iteration data and summary comment appear for outlines."""
        reporter = Reporter()
        _publish(
            reporter, "Pay <amount>", "passed",
            artifacts={"screenshots": ["1.png", "2.png"], "logs": []},
            iteration_data=[{"iteration": 1, "status": "passed"}],
            summary_comment="PASSED: 1/1 iterations passed",
        )
        entry = reporter.generate_report()["report"]["scenarios"][0]
        assert entry["iterations"] == [{"iteration": 1, "status": "passed"}]
        assert entry["summary_comment"] == "PASSED: 1/1 iterations passed"
        assert entry["artifacts"]["screenshots"] == ["1.png", "2.png"]

    def test_steps_and_times(self):
        """Step results and the time span appear when published."""
        reporter = Reporter()
        _publish(
            reporter, "a", "failed",
            steps=[{"name": "Given x", "status": "passed"}, {"name": "Then y", "status": "failed"}],
            start_time="2026-01-01T10:00:00+00:00",
            end_time="2026-01-01T10:00:02+00:00",
        )
        entry = reporter.generate_report()["report"]["scenarios"][0]
        assert [s["status"] for s in entry["steps"]] == ["passed", "failed"]
        assert entry["start_time"] == "2026-01-01T10:00:00+00:00"
        assert entry["end_time"] == "2026-01-01T10:00:02+00:00"


class TestWriteReport:
    """Tests for Reporter.write_report."""

    def test_yaml(self):
        """.yaml paths get a YAML report."""
        reporter = Reporter()
        _publish(reporter, "a", "passed")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out" / "report.yaml"
            reporter.write_report(path)
            data = yaml.safe_load(path.read_text())
        assert data["report"]["summary"]["total"] == 1

    def test_json(self):
        """Other paths get a JSON report."""
        reporter = Reporter()
        _publish(reporter, "a", "failed", error="x")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "report.json"
            reporter.write_report(path)
            data = json.loads(path.read_text())
        assert data["report"]["scenarios"][0]["error"] == "x"


class TestPublishSafely:
    """Tests for publish_safely."""

    def test_accepted(self):
        """A working publisher returns True."""
        reporter = Reporter()
        assert publish_safely(reporter, scenario=Scenario(name="a"), feature=Feature(name="F"),
                              status="passed", duration=0.1)
        assert len(reporter.results) == 1

    def test_null_publisher(self):
        """The null publisher accepts everything."""
        assert publish_safely(NullPublisher(), scenario=Scenario(name="a"), feature=Feature(name="F"),
                              status="passed", duration=0.1)

    def test_error_reported(self, capsys):
        """Publisher exceptions are printed, not raised."""

        class Broken:
            def publish(self, **kwargs):
                raise ConnectionError("tracker down")

        assert not publish_safely(Broken(), scenario=Scenario(name="a"), feature=Feature(name="F"),
                                  status="passed", duration=0.1)
        assert "failed to publish result for a: tracker down" in capsys.readouterr().err
