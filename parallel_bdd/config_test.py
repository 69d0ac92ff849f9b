"""Unit tests for the config module."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from unittest import mock

import pytest

from parallel_bdd.config import DEFAULT_CONFIG, WORKERS_ENV_VAR, RunConfig


class TestRunConfigCreate:
    """Tests for creating RunConfig instances."""

    def test_no_path_uses_defaults(self):
        """No path gives default config values."""
        cfg = RunConfig(None)
        assert cfg.spawn_timeout == DEFAULT_CONFIG["spawn_timeout"]
        assert cfg.run_timeout == 300.0
        assert cfg.poll_interval == 0.1
        assert cfg.summary_limit == 1000
        assert cfg.max_workers is None
        assert cfg.runner is None
        assert cfg.verbose is False
        assert cfg.settings == {}

    def test_nonexistent_path_uses_defaults(self):
        """Nonexistent file path gives default config values."""
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = RunConfig(Path(tmpdir) / "missing.json")
            assert cfg.run_timeout == 300.0

    def test_partial_file_fills_defaults(self):
        """Missing keys in the config file are filled from defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "parallel.json"
            path.write_text(json.dumps({
                "max_workers": 6,
                "runner": "mypkg.steps:run",
                "settings": {"base_url": "http://localhost"},
            }))
            cfg = RunConfig(path)
            assert cfg.max_workers == 6
            assert cfg.runner == "mypkg.steps:run"
            assert cfg.settings == {"base_url": "http://localhost"}
            assert cfg.spawn_timeout == 30.0  # default

    def test_corrupted_file_uses_defaults(self):
        """Corrupted JSON file falls back to defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "parallel.json"
            path.write_text("{ invalid json }")
            cfg = RunConfig(path)
            assert cfg.config == DEFAULT_CONFIG

    def test_overrides_win_over_file(self):
        """Keyword overrides replace file values."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "parallel.json"
            path.write_text(json.dumps({"run_timeout": 60}))
            cfg = RunConfig(path, run_timeout=5)
            assert cfg.run_timeout == 5.0

    def test_unknown_override_rejected(self):
        """Overrides must name a known key."""
        with pytest.raises(ValueError, match="Unknown configuration key"):
            RunConfig(workers=3)


class TestRunConfigSave:
    """Tests for writing the config file."""

    def test_save_and_reload(self):
        """Saved values are read back."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sub" / "parallel.json"
            RunConfig(path, summary_limit=500).save()
            assert RunConfig(path).summary_limit == 500

    def test_save_without_path(self):
        """Saving needs a path."""
        with pytest.raises(ValueError):
            RunConfig().save()

    def test_snapshot_is_plain_data(self):
        """The snapshot is JSON-compatible and detached from the config."""
        cfg = RunConfig(settings={"browser": "firefox", "root": Path("/tmp")})
        snapshot = cfg.snapshot()
        assert snapshot["settings"] == {"browser": "firefox", "root": "/tmp"}
        snapshot["settings"]["browser"] = "chrome"
        assert cfg.settings["browser"] == "firefox"


class TestResolveWorkerCount:
    """Tests for worker count resolution order."""

    def test_explicit_wins(self):
        """An explicit positive count beats everything else."""
        with mock.patch.dict(os.environ, {WORKERS_ENV_VAR: "8"}):
            assert RunConfig(max_workers=2).resolve_worker_count(3) == 3

    def test_env_before_file(self):
        """The environment variable beats the file value."""
        with mock.patch.dict(os.environ, {WORKERS_ENV_VAR: "8"}):
            assert RunConfig(max_workers=2).resolve_worker_count() == 8

    def test_file_value(self):
        """max_workers is used when no explicit or env value is set."""
        with mock.patch.dict(os.environ, {WORKERS_ENV_VAR: ""}):
            assert RunConfig(max_workers=2).resolve_worker_count(None) == 2

    def test_invalid_values_skipped(self):
        """Non-positive and unparsable values fall through to the CPU count."""
        with mock.patch.dict(os.environ, {WORKERS_ENV_VAR: "many"}), \
                mock.patch("os.cpu_count", return_value=12):
            assert RunConfig(max_workers=0).resolve_worker_count(-1) == 12

    def test_cpu_count_unknown(self):
        """One worker when the CPU count is unknown."""
        with mock.patch.dict(os.environ, {WORKERS_ENV_VAR: ""}), \
                mock.patch("os.cpu_count", return_value=None):
            assert RunConfig().resolve_worker_count() == 1
