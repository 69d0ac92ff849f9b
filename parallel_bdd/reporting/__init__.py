"""Scenario outcome publishing and YAML/JSON run reports."""

from parallel_bdd.reporting.reporter import NullPublisher, Reporter, ResultPublisher, publish_safely

__all__ = [
    "NullPublisher",
    "Reporter",
    "ResultPublisher",
    "publish_safely",
]
