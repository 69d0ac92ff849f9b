"""Loading of external example tables for data-driven scenarios.

Supported formats are CSV (optionally with a custom delimiter), JSON and
YAML. For JSON and YAML the ``sheet`` of a data source names a top-level key
holding the list of rows.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

import yaml

from parallel_bdd.features.model import DataSource


class DataProviderError(Exception):
    """Raised when an external example table cannot be loaded."""


class DataProvider:
    """Reads example rows from files relative to a base directory."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir or Path.cwd()

    def load_rows(self, source: DataSource) -> list[dict[str, str]]:
        """Load all rows of a data source.

        Args:
            source: Data source descriptor.

        Returns:
            Rows as mappings from header name to string value, in file order.

        Raises:
            DataProviderError: If the file is missing, unreadable, malformed,
                or of an unsupported type.
        """
        path = Path(source.source)
        if not path.is_absolute():
            path = self.base_dir / path

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DataProviderError(f"Cannot read {path}: {e}") from e

        kind = source.type.lower()
        if kind == "csv":
            return self._parse_csv(text, source.delimiter or ",", path)
        if kind == "json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise DataProviderError(f"Invalid JSON in {path}: {e}") from e
            return self._normalize(data, source.sheet, path)
        if kind in ("yaml", "yml"):
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise DataProviderError(f"Invalid YAML in {path}: {e}") from e
            return self._normalize(data, source.sheet, path)
        raise DataProviderError(f"Unsupported data source type: {source.type}")

    def _parse_csv(self, text: str, delimiter: str, path: Path) -> list[dict[str, str]]:
        rows = []
        try:
            reader = csv.DictReader(text.splitlines(), delimiter=delimiter)
            for record in reader:
                rows.append({
                    str(k).strip(): ("" if v is None else str(v).strip())
                    for k, v in record.items()
                    if k is not None
                })
        except (csv.Error, TypeError) as e:
            raise DataProviderError(f"Invalid CSV in {path}: {e}") from e
        return rows

    def _normalize(
        self, data: Any, sheet: str | None, path: Path
    ) -> list[dict[str, str]]:
        if sheet is not None:
            if not isinstance(data, dict) or sheet not in data:
                raise DataProviderError(f"Table '{sheet}' not found in {path}")
            data = data[sheet]
        if not isinstance(data, list):
            raise DataProviderError(f"Expected a list of rows in {path}")

        rows = []
        for item in data:
            if not isinstance(item, dict):
                raise DataProviderError(f"Row is not a mapping in {path}: {item!r}")
            rows.append({
                str(k): "" if v is None else str(v) for k, v in item.items()
            })
        return rows
