"""Catalog entities of the semantic registry.

These are read-only value objects as far as the matching engine is concerned:
they are materialized by a catalog store and handed to the engine fully loaded.
Dictionary conversion uses the snake_case field names of the device repository
wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from semantic_registry.domain.criteria import FilterCriteria, Interaction

MEASURING_FUNCTION_TYPE = "https://senergy.infai.org/ontology/MeasuringFunction"
CONTROLLING_FUNCTION_TYPE = "https://senergy.infai.org/ontology/ControllingFunction"

URN_PREFIX = "urn:infai:ses:"
CONTROLLING_FUNCTION_PREFIX = URN_PREFIX + "controlling-function:"


@dataclass(frozen=True, slots=True)
class AspectNode:
    """A node of the aspect forest.

    Only ``id``, ``name`` and ``parent_id`` are stored; the remaining fields
    are derived by the aspect forest and are empty on nodes that did not come
    out of one.
    """

    id: str
    """Unique aspect id."""

    name: str = ""
    """Display name."""

    parent_id: str = ""
    """Id of the parent node. Empty for roots."""

    child_ids: tuple[str, ...] = ()
    """Direct children, sorted."""

    root_id: str = ""
    """Topmost ancestor (the node itself for roots)."""

    ancestor_ids: tuple[str, ...] = ()
    """Ancestors ordered from the immediate parent to the root."""

    descendant_ids: tuple[str, ...] = ()
    """All descendants on every level, sorted."""

    @property
    def is_root(self) -> bool:
        """True if the node has no parent."""
        return not self.parent_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "root_id": self.root_id,
            "child_ids": list(self.child_ids),
            "ancestor_ids": list(self.ancestor_ids),
            "descendant_ids": list(self.descendant_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AspectNode:
        """Create from dictionary. Derived fields are accepted but optional."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            parent_id=data.get("parent_id") or "",
            child_ids=tuple(data.get("child_ids") or ()),
            root_id=data.get("root_id") or "",
            ancestor_ids=tuple(data.get("ancestor_ids") or ()),
            descendant_ids=tuple(data.get("descendant_ids") or ()),
        )


@dataclass(frozen=True, slots=True)
class Aspect:
    """An aspect in its authoring form: a tree of sub-aspects."""

    id: str
    name: str = ""
    sub_aspects: tuple[Aspect, ...] = ()

    def iter_nodes(self, parent_id: str = "") -> list[AspectNode]:
        """Flatten this tree into stored aspect nodes, parents first."""
        nodes = [AspectNode(id=self.id, name=self.name, parent_id=parent_id)]
        for sub in self.sub_aspects:
            nodes.extend(sub.iter_nodes(self.id))
        return nodes

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "sub_aspects": [sub.to_dict() for sub in self.sub_aspects],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Aspect:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            sub_aspects=tuple(cls.from_dict(sub) for sub in data.get("sub_aspects") or ()),
        )


@dataclass(frozen=True, slots=True)
class Function:
    """A measuring or controlling capability."""

    id: str
    name: str = ""
    display_name: str = ""
    description: str = ""
    concept_id: str = ""
    rdf_type: str = ""

    @property
    def is_controlling(self) -> bool:
        """True for controlling functions (commands, paired with device classes)."""
        if self.rdf_type:
            return self.rdf_type == CONTROLLING_FUNCTION_TYPE
        return self.id.startswith(CONTROLLING_FUNCTION_PREFIX)

    @property
    def is_measuring(self) -> bool:
        """True for measuring functions (data, paired with aspects)."""
        return not self.is_controlling

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "concept_id": self.concept_id,
            "rdf_type": self.rdf_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Function:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            display_name=data.get("display_name") or "",
            description=data.get("description") or "",
            concept_id=data.get("concept_id") or "",
            rdf_type=data.get("rdf_type") or "",
        )


@dataclass(frozen=True, slots=True)
class ContentVariable:
    """A node of a service's input or output structure."""

    id: str
    name: str
    type: str = ""
    function_id: str = ""
    aspect_id: str = ""
    characteristic_id: str = ""
    is_void: bool = False
    value: Any = None
    sub_content_variables: tuple[ContentVariable, ...] = ()

    @property
    def is_leaf(self) -> bool:
        """True if the variable has no sub variables."""
        return not self.sub_content_variables

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "function_id": self.function_id,
            "aspect_id": self.aspect_id,
            "characteristic_id": self.characteristic_id,
            "is_void": self.is_void,
            "sub_content_variables": [sub.to_dict() for sub in self.sub_content_variables],
        }
        if self.value is not None:
            result["value"] = self.value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentVariable:
        """Create from dictionary."""
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            type=data.get("type") or "",
            function_id=data.get("function_id") or "",
            aspect_id=data.get("aspect_id") or "",
            characteristic_id=data.get("characteristic_id") or "",
            is_void=bool(data.get("is_void", False)),
            value=data.get("value"),
            sub_content_variables=tuple(
                cls.from_dict(sub) for sub in data.get("sub_content_variables") or ()
            ),
        )


@dataclass(frozen=True, slots=True)
class Content:
    """A service input or output: one root content variable plus its encoding."""

    content_variable: ContentVariable
    id: str = ""
    serialization: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "serialization": self.serialization,
            "content_variable": self.content_variable.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Content:
        """Create from dictionary."""
        return cls(
            id=data.get("id") or "",
            serialization=data.get("serialization") or "",
            content_variable=ContentVariable.from_dict(data.get("content_variable") or {}),
        )


@dataclass(frozen=True, slots=True)
class Service:
    """A device-type's unit of functionality."""

    id: str
    local_id: str = ""
    name: str = ""
    interaction: Interaction = Interaction.REQUEST
    service_group_key: str = ""
    inputs: tuple[Content, ...] = ()
    outputs: tuple[Content, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "local_id": self.local_id,
            "name": self.name,
            "interaction": self.interaction.value,
            "service_group_key": self.service_group_key,
            "inputs": [c.to_dict() for c in self.inputs],
            "outputs": [c.to_dict() for c in self.outputs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Service:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            local_id=data.get("local_id") or "",
            name=data.get("name") or "",
            interaction=Interaction.parse(data.get("interaction")) or Interaction.REQUEST,
            service_group_key=data.get("service_group_key") or "",
            inputs=tuple(Content.from_dict(c) for c in data.get("inputs") or ()),
            outputs=tuple(Content.from_dict(c) for c in data.get("outputs") or ()),
        )


@dataclass(frozen=True, slots=True)
class ServiceGroup:
    """A named group of services, selectable through modified device-type ids."""

    key: str
    name: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"key": self.key, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceGroup:
        """Create from dictionary."""
        return cls(key=data["key"], name=data.get("name") or "")


@dataclass(frozen=True, slots=True)
class DeviceType:
    """A device type with its services."""

    id: str
    name: str = ""
    device_class_id: str = ""
    service_groups: tuple[ServiceGroup, ...] = ()
    services: tuple[Service, ...] = ()

    def service(self, service_id: str) -> Service | None:
        """Look up a service by id."""
        for service in self.services:
            if service.id == service_id:
                return service
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "device_class_id": self.device_class_id,
            "service_groups": [sg.to_dict() for sg in self.service_groups],
            "services": [s.to_dict() for s in self.services],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceType:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            device_class_id=data.get("device_class_id") or "",
            service_groups=tuple(
                ServiceGroup.from_dict(sg) for sg in data.get("service_groups") or ()
            ),
            services=tuple(Service.from_dict(s) for s in data.get("services") or ()),
        )


@dataclass(frozen=True, slots=True)
class DeviceGroup:
    """A group of devices described by the criteria they all satisfy."""

    id: str
    name: str = ""
    criteria: tuple[FilterCriteria, ...] = ()
    criteria_short: tuple[str, ...] = ()
    device_ids: tuple[str, ...] = ()

    def with_criteria(
        self, criteria: tuple[FilterCriteria, ...], criteria_short: tuple[str, ...]
    ) -> DeviceGroup:
        """Return a copy with replaced criteria lists."""
        return replace(self, criteria=criteria, criteria_short=criteria_short)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "criteria": [c.to_dict() for c in self.criteria],
            "criteria_short": list(self.criteria_short),
            "device_ids": list(self.device_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceGroup:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            criteria=tuple(FilterCriteria.from_dict(c) for c in data.get("criteria") or ()),
            criteria_short=tuple(data.get("criteria_short") or ()),
            device_ids=tuple(data.get("device_ids") or ()),
        )


@dataclass(frozen=True, slots=True)
class ServiceTuple:
    """One flattened content variable of a device-type service.

    Rows are what criteria are matched against. The device class comes from
    the device type, everything else from the content variable and its service.
    """

    device_type_id: str
    service_id: str
    content_variable_id: str
    path: str
    """Dot-separated content variable names from the root content variable."""

    interaction: Interaction
    function_id: str = ""
    aspect_id: str = ""
    device_class_id: str = ""
    characteristic_id: str = ""
    type: str = ""
    value: Any = None
    is_void: bool = False
    is_leaf: bool = True
    is_input: bool = False
    is_controlling_function: bool = False
    is_id_modified: bool = False
    pure_device_type_id: str = ""
    """Device-type id without id modifiers."""
