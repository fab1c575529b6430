"""Selectable queries: which device types and services serve a semantic query."""

from semantic_registry.selection.engine import SelectableQueryEngine, parse_interactions_filter
from semantic_registry.selection.flatten import FunctionClassifier, flatten_device_type
from semantic_registry.selection.idmodifier import (
    is_modified_id,
    service_group_variant_id,
    split_modified_id,
)
from semantic_registry.selection.models import (
    Configurable,
    DeviceTypeSelectable,
    ServicePathOption,
)

__all__ = [
    "Configurable",
    "DeviceTypeSelectable",
    "FunctionClassifier",
    "SelectableQueryEngine",
    "ServicePathOption",
    "flatten_device_type",
    "is_modified_id",
    "parse_interactions_filter",
    "service_group_variant_id",
    "split_modified_id",
]
