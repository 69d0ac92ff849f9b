"""Parsed feature data consumed by the orchestrator.

The Gherkin parser lives outside this package. It hands over features
as plain documents (JSON or YAML), which are turned into the read-only
dataclasses below.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class DataSource:
    """Reference to an external example table."""

    source: str
    type: str = "csv"
    sheet: str | None = None
    delimiter: str | None = None
    filter: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataSource:
        if "source" not in data:
            raise ValueError("dataSource requires a 'source' field")
        return cls(
            source=str(data["source"]),
            type=str(data.get("type", "csv")).lower(),
            sheet=data.get("sheet"),
            delimiter=data.get("delimiter"),
            filter=data.get("filter"),
        )


@dataclass(frozen=True)
class Examples:
    """Example table of a scenario outline."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    data_source: DataSource | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Examples:
        headers = [str(h) for h in data.get("headers", [])]
        rows = [[str(v) for v in row] for row in data.get("rows", [])]
        for row in rows:
            if len(row) != len(headers):
                raise ValueError(
                    f"Example row {row} has {len(row)} values, "
                    f"expected {len(headers)}"
                )
        source = data.get("dataSource", data.get("data_source"))
        return cls(
            headers=headers,
            rows=rows,
            data_source=DataSource.from_dict(source) if source else None,
        )


@dataclass(frozen=True)
class Scenario:
    """A scenario or scenario outline."""

    name: str
    steps: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    examples: Examples | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scenario:
        if "name" not in data:
            raise ValueError("Scenario is missing required 'name' field")
        examples = data.get("examples")
        return cls(
            name=str(data["name"]),
            steps=[str(s) for s in data.get("steps", [])],
            tags=[str(t) for t in data.get("tags", [])],
            examples=Examples.from_dict(examples) if examples else None,
        )


@dataclass(frozen=True)
class Feature:
    """A parsed feature with its scenarios."""

    name: str
    scenarios: list[Scenario] = field(default_factory=list)
    background: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    uri: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Feature:
        if "name" not in data:
            raise ValueError("Feature is missing required 'name' field")
        return cls(
            name=str(data["name"]),
            scenarios=[Scenario.from_dict(s) for s in data.get("scenarios", [])],
            background=[str(s) for s in data.get("background", [])],
            tags=[str(t) for t in data.get("tags", [])],
            uri=str(data.get("uri", "")),
        )


def load_features(path: Path) -> list[Feature]:
    """Load parsed features from a JSON or YAML document.

    The document is either a list of features or a mapping with a
    ``features`` list.

    Raises:
        ValueError: If the document does not have the expected shape.
    """
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)

    if isinstance(data, dict):
        data = data.get("features")
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of features")
    return [Feature.from_dict(f) for f in data]
