"""Run configuration file management.

Reads the optional JSON configuration that tunes the worker pool, the drain
deadline and the iteration summary, and carries free-form settings that are
forwarded to every worker.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

# Environment variable overriding the worker count
WORKERS_ENV_VAR = "PARALLEL_WORKERS"

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "max_workers": None,
    "spawn_timeout": 30.0,
    "run_timeout": 300.0,
    "poll_interval": 0.1,
    "shutdown_grace": 5.0,
    "summary_limit": 1000,
    "runner": None,
    "worker_initializer": None,
    "verbose": False,
    "settings": {},
}


class RunConfig:
    """Manages the run configuration JSON file."""

    def __init__(self, path: Path | None = None, **overrides: Any) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()
        for key, value in overrides.items():
            if key not in DEFAULT_CONFIG:
                raise ValueError(f"Unknown configuration key: {key}")
            self._data[key] = value

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    @property
    def max_workers(self) -> int | None:
        """Get the configured worker cap (None = CPU count)."""
        val = self._data.get("max_workers")
        return int(val) if val is not None else None

    @property
    def spawn_timeout(self) -> float:
        return float(self._data.get("spawn_timeout", DEFAULT_CONFIG["spawn_timeout"]))

    @property
    def run_timeout(self) -> float:
        return float(self._data.get("run_timeout", DEFAULT_CONFIG["run_timeout"]))

    @property
    def poll_interval(self) -> float:
        return float(self._data.get("poll_interval", DEFAULT_CONFIG["poll_interval"]))

    @property
    def shutdown_grace(self) -> float:
        return float(self._data.get("shutdown_grace", DEFAULT_CONFIG["shutdown_grace"]))

    @property
    def summary_limit(self) -> int:
        return int(self._data.get("summary_limit", DEFAULT_CONFIG["summary_limit"]))

    @property
    def runner(self) -> str | None:
        """Get the ``module:callable`` path of the scenario runner."""
        return self._data.get("runner")

    @property
    def worker_initializer(self) -> str | None:
        return self._data.get("worker_initializer")

    @property
    def verbose(self) -> bool:
        return bool(self._data.get("verbose", False))

    @property
    def settings(self) -> dict[str, Any]:
        """Get the free-form settings forwarded to workers."""
        return dict(self._data.get("settings") or {})

    def resolve_worker_count(self, explicit: int | None = None) -> int:
        """Resolve how many workers may run at once.

        Order: explicit argument, then the PARALLEL_WORKERS environment
        variable, then ``max_workers`` from the file, then the CPU count.
        Non-positive or unparsable values are skipped.
        """
        if explicit is not None and explicit > 0:
            return explicit

        env_value = os.environ.get(WORKERS_ENV_VAR, "")
        try:
            env_workers = int(env_value)
        except ValueError:
            env_workers = 0
        if env_workers > 0:
            return env_workers

        if self.max_workers is not None and self.max_workers > 0:
            return self.max_workers

        return os.cpu_count() or 1

    def snapshot(self) -> dict[str, Any]:
        """Serializable configuration snapshot sent with each execute message."""
        return json.loads(json.dumps(self._data, default=str))
