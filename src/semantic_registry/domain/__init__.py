"""Domain models for the semantic registry."""

from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import (
    CycleDetected,
    InvalidCriteria,
    SemanticRegistryError,
    UnknownReference,
)
from semantic_registry.domain.models import (
    Aspect,
    AspectNode,
    Content,
    ContentVariable,
    DeviceGroup,
    DeviceType,
    Function,
    Service,
    ServiceGroup,
    ServiceTuple,
)

__all__ = [
    "Aspect",
    "AspectNode",
    "Content",
    "ContentVariable",
    "CycleDetected",
    "DeviceGroup",
    "DeviceType",
    "FilterCriteria",
    "Function",
    "Interaction",
    "InvalidCriteria",
    "SemanticRegistryError",
    "Service",
    "ServiceGroup",
    "ServiceTuple",
    "UnknownReference",
]
