"""Feature data, external example tables, and work item expansion."""

from parallel_bdd.features.data_provider import DataProvider, DataProviderError
from parallel_bdd.features.expander import (
    WorkItem,
    WorkItemExpander,
    base_scenario_name,
    compile_filter,
)
from parallel_bdd.features.model import DataSource, Examples, Feature, Scenario, load_features

__all__ = [
    "DataProvider",
    "DataProviderError",
    "DataSource",
    "Examples",
    "Feature",
    "Scenario",
    "WorkItem",
    "WorkItemExpander",
    "base_scenario_name",
    "compile_filter",
    "load_features",
]
