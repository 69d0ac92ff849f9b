"""Built-in scenario runners and runner lookup."""

from __future__ import annotations

import importlib
import re
from typing import Any

from parallel_bdd.execution.messages import ExecuteMessage
from parallel_bdd.execution.worker_process import ScenarioOutcome, WorkerContext

DRY_RUN = "parallel_bdd.execution.runners:dry_run"

_PLACEHOLDER_RE = re.compile(r"<([^<>]+)>")


def load_callable(path: str) -> Any:
    """Import a callable from a ``module:attr`` or ``module.attr`` path.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
    """
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid callable path: {path}")

    module = importlib.import_module(module_name)
    target = module
    for part in attr.split("."):
        target = getattr(target, part)
    if not callable(target):
        raise ValueError(f"{path} is not callable")
    return target


def interpolate_name(message: ExecuteMessage) -> str:
    """Display name of a scenario with example values substituted.

    Iterations get an ``(Iteration N)`` suffix.
    """
    name = message.scenario.name
    if message.example_row is None or message.example_headers is None:
        return name

    values = dict(zip(message.example_headers, message.example_row))
    name = _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), name)
    if message.iteration_number is not None:
        name = f"{name} (Iteration {message.iteration_number})"
    return name


def dry_run(message: ExecuteMessage, context: WorkerContext) -> ScenarioOutcome:
    """Report every scenario as passed without executing any step.

    Scenarios tagged ``@skip`` are reported as skipped. Background and
    scenario steps are listed with example values substituted.
    """
    test_data = None
    if message.example_row is not None and message.example_headers is not None:
        test_data = dict(zip(message.example_headers, message.example_row))

    status = "skipped" if "@skip" in message.scenario.tags else "passed"
    values = test_data or {}
    steps = [
        {
            "name": _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), step),
            "status": status,
        }
        for step in [*message.feature.background, *message.scenario.steps]
    ]
    return ScenarioOutcome(
        status=status,
        name=interpolate_name(message),
        test_data=test_data,
        steps=steps,
    )
