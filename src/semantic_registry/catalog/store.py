"""Catalog storage interface and the in-memory catalog.

The registry never talks to a database itself. Everything it needs is read
through :class:`CatalogStore`; the data is returned fully materialized.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from semantic_registry.domain.errors import UnknownReference
from semantic_registry.domain.models import Aspect, AspectNode, DeviceType, Function

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeviceTypeQuery:
    """Candidate restriction for selectable queries.

    Visibility per caller is enforced upstream; the store only narrows by the
    fields given here.
    """

    ids: tuple[str, ...] = ()
    """Restrict to these device-type ids. Empty means all."""

    device_class_ids: tuple[str, ...] = ()
    """Restrict to these device classes. Empty means all."""

    def accepts(self, device_type: DeviceType) -> bool:
        """True if the device type passes the restriction."""
        if self.ids and device_type.id not in self.ids:
            return False
        if self.device_class_ids and device_type.device_class_id not in self.device_class_ids:
            return False
        return True


class CatalogStore(Protocol):
    """Read access to the stored catalog."""

    def load_all_aspect_nodes(self) -> list[AspectNode]:
        """Return every stored aspect node."""
        ...

    def load_device_types_for_selectable_query(
        self, query: DeviceTypeQuery
    ) -> list[DeviceType]:
        """Return the candidate device types of a selectable query."""
        ...

    def load_function(self, function_id: str) -> Function:
        """Return one function.

        Raises:
            UnknownReference: If the function is not stored.
        """
        ...

    def load_all_functions(self) -> list[Function]:
        """Return every stored function."""
        ...


class InMemoryCatalog:
    """A catalog held in process memory.

    Used for catalog documents loaded from disk, for snapshots fetched from a
    remote repository and in tests.
    """

    def __init__(
        self,
        aspect_nodes: Iterable[AspectNode] = (),
        functions: Iterable[Function] = (),
        device_types: Iterable[DeviceType] = (),
    ):
        self._aspect_nodes = list(aspect_nodes)
        self._functions = {f.id: f for f in functions}
        self._device_types = {dt.id: dt for dt in device_types}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryCatalog:
        """Build a catalog from a document.

        Aspects may be given as nested ``aspects`` trees, as flat
        ``aspect_nodes`` with parent ids, or both.
        """
        nodes: list[AspectNode] = []
        for aspect in data.get("aspects") or ():
            nodes.extend(Aspect.from_dict(aspect).iter_nodes())
        nodes.extend(AspectNode.from_dict(n) for n in data.get("aspect_nodes") or ())
        return cls(
            aspect_nodes=nodes,
            functions=[Function.from_dict(f) for f in data.get("functions") or ()],
            device_types=[DeviceType.from_dict(dt) for dt in data.get("device_types") or ()],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a catalog document with flat aspect nodes."""
        return {
            "aspect_nodes": [
                {"id": n.id, "name": n.name, "parent_id": n.parent_id}
                for n in self._aspect_nodes
            ],
            "functions": [f.to_dict() for f in self._functions.values()],
            "device_types": [dt.to_dict() for dt in self._device_types.values()],
        }

    def __repr__(self) -> str:
        return (
            f"InMemoryCatalog(aspect_nodes={len(self._aspect_nodes)}, "
            f"functions={len(self._functions)}, device_types={len(self._device_types)})"
        )

    def load_all_aspect_nodes(self) -> list[AspectNode]:
        return list(self._aspect_nodes)

    def load_device_types_for_selectable_query(
        self, query: DeviceTypeQuery
    ) -> list[DeviceType]:
        return [dt for dt in self._device_types.values() if query.accepts(dt)]

    def load_function(self, function_id: str) -> Function:
        function = self._functions.get(function_id)
        if function is None:
            raise UnknownReference("function", function_id)
        return function

    def load_all_functions(self) -> list[Function]:
        return list(self._functions.values())

    def load_all_device_types(self) -> list[DeviceType]:
        """Return every stored device type."""
        return list(self._device_types.values())

    def replace_aspect_nodes(self, nodes: Iterable[AspectNode]) -> None:
        """Replace the stored aspect nodes, as an external write path would."""
        self._aspect_nodes = list(nodes)
        logger.debug("Catalog aspect nodes replaced: %d nodes", len(self._aspect_nodes))
