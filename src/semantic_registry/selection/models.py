"""Result types of selectable queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from semantic_registry.domain.criteria import Interaction
from semantic_registry.domain.models import AspectNode, DeviceType, Service


@dataclass(frozen=True, slots=True)
class Configurable:
    """An input leaf of a selected service that callers may set alongside it."""

    path: str
    characteristic_id: str = ""
    aspect_node: AspectNode | None = None
    function_id: str = ""
    value: Any = None
    type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "path": self.path,
            "characteristic_id": self.characteristic_id,
            "aspect_node": self.aspect_node.to_dict() if self.aspect_node else None,
            "function_id": self.function_id,
            "type": self.type,
        }
        if self.value is not None:
            result["value"] = self.value
        return result


@dataclass(frozen=True, slots=True)
class ServicePathOption:
    """A content-variable path of a service that satisfied the query."""

    service_id: str
    path: str
    """Matched path including the query's path prefix."""

    interaction: Interaction
    function_id: str = ""
    characteristic_id: str = ""
    aspect_node: AspectNode | None = None
    is_void: bool = False
    value: Any = None
    type: str = ""
    is_controlling_function: bool = False
    configurables: tuple[Configurable, ...] = ()
    matched_criteria: tuple[str, ...] = ()
    """Short form of every query criterion this path satisfied."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "service_id": self.service_id,
            "path": self.path,
            "characteristic_id": self.characteristic_id,
            "aspect_node": self.aspect_node.to_dict() if self.aspect_node else None,
            "function_id": self.function_id,
            "is_void": self.is_void,
            "is_controlling_function": self.is_controlling_function,
            "type": self.type,
            "interaction": self.interaction.value,
            "configurables": [c.to_dict() for c in self.configurables],
            "matched_criteria": list(self.matched_criteria),
        }
        if self.value is not None:
            result["value"] = self.value
        return result


@dataclass(slots=True)
class DeviceTypeSelectable:
    """A device type that satisfied a selectable query."""

    device_type_id: str
    services: list[Service] = field(default_factory=list)
    """Services with at least one path option, in device-type order."""

    service_path_options: dict[str, list[ServicePathOption]] = field(default_factory=dict)
    """Path options per service id, sorted by path."""

    device_type: DeviceType | None = None
    """The full (possibly modified) device type, when requested."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "device_type_id": self.device_type_id,
            "services": [s.to_dict() for s in self.services],
            "service_path_options": {
                sid: [o.to_dict() for o in options]
                for sid, options in self.service_path_options.items()
            },
        }
        if self.device_type is not None:
            result["device_type"] = self.device_type.to_dict()
        return result
