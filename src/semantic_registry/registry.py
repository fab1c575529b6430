"""Caller-facing registry operations.

:class:`SemanticRegistry` wires a catalog store to the aspect forest, the
criteria helpers and the selectable query engine. It holds no state besides
the forest snapshot and the function catalog, both replaced as a whole on
reload.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from semantic_registry.aspects.forest import AspectForest, AspectForestSnapshot
from semantic_registry.catalog.loader import load_file
from semantic_registry.catalog.repo_client import RepositoryClient
from semantic_registry.catalog.store import CatalogStore, DeviceTypeQuery
from semantic_registry.config import RegistryConfig, SelectionConfig
from semantic_registry.criteria.codec import encode_criteria_list
from semantic_registry.criteria.dedup import filter_generic_duplicate_criteria
from semantic_registry.criteria.matcher import CriteriaMatcher
from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import UnknownReference
from semantic_registry.domain.models import (
    Aspect,
    AspectNode,
    DeviceGroup,
    DeviceType,
    Function,
    ServiceTuple,
)
from semantic_registry.selection.engine import SelectableQueryEngine
from semantic_registry.selection.flatten import FunctionClassifier, flatten_device_type
from semantic_registry.selection.models import DeviceTypeSelectable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AspectUsageFilter:
    """Restricts aspect listings to aspects used with measuring functions."""

    measuring_function_only: bool = True
    """Only return aspects used in combination with a measuring function."""

    include_ancestors: bool = False
    """Also count usage on an ancestor of the aspect."""

    include_descendants: bool = True
    """Also count usage on a descendant of the aspect."""


class SemanticRegistry:
    """Semantic queries over a device catalog."""

    def __init__(self, store: CatalogStore, selection: SelectionConfig | None = None):
        """Load the aspect forest and the function catalog from the store.

        Args:
            store: Catalog storage collaborator.
            selection: Selectable query settings.

        Raises:
            CycleDetected: If the stored aspect nodes contain a parent cycle.
        """
        self.store = store
        self.selection = selection or SelectionConfig()
        self.forest = AspectForest(store.load_all_aspect_nodes())
        self.engine = SelectableQueryEngine(
            self.forest,
            self._load_classifier(),
            filter_generic_duplicates=self.selection.filter_generic_duplicates,
        )

    @classmethod
    def from_config(cls, config: RegistryConfig) -> SemanticRegistry:
        """Build a registry from the configured catalog source.

        Raises:
            CatalogLoadError: If the catalog file cannot be loaded.
            RepositoryClientError: If the repository cannot be read.
        """
        if config.catalog.source == "repository":
            with RepositoryClient(config.catalog.repository) as client:
                store = client.fetch_all()
        else:
            assert config.catalog.path is not None
            store = load_file(config.catalog.path)
        return cls(store, config.selection)

    def _load_classifier(self) -> FunctionClassifier:
        return FunctionClassifier(
            {f.id: f for f in self.store.load_all_functions()},
            controlling_prefix=self.selection.controlling_function_prefix,
        )

    # Maintenance

    def reload_aspects(self) -> AspectForestSnapshot:
        """Rebuild the aspect forest from the store.

        Raises:
            CycleDetected: If the stored nodes contain a cycle. The previous
                forest stays active.
        """
        return self.forest.rebuild(self.store.load_all_aspect_nodes())

    def reload_functions(self) -> None:
        """Reload the function catalog used for classification."""
        self.engine.classifier = self._load_classifier()
        logger.info(
            "Function catalog reloaded: %d functions", len(self.engine.classifier.functions)
        )

    # Aspect listings

    def get_aspect_node(self, aspect_id: str) -> AspectNode:
        """Return one aspect node with its derived fields.

        Raises:
            UnknownReference: If the aspect node does not exist.
        """
        return self.forest.snapshot.node(aspect_id)

    def list_aspect_nodes_by_ids(self, ids: Iterable[str]) -> list[AspectNode]:
        """Return the known nodes among ``ids``, sorted by id. Unknown ids are skipped."""
        snapshot = self.forest.snapshot
        return [snapshot.node(i) for i in sorted(set(ids)) if i in snapshot]

    def _measuring_rows(self) -> list[ServiceTuple]:
        rows = []
        for device_type in self.store.load_device_types_for_selectable_query(DeviceTypeQuery()):
            for row in flatten_device_type(device_type, self.engine.classifier):
                if row.function_id and not row.is_controlling_function:
                    rows.append(row)
        return rows

    def _used_measuring_aspects(self, snapshot: AspectForestSnapshot) -> set[str]:
        used = set()
        for row in self._measuring_rows():
            if not row.aspect_id:
                continue
            if row.aspect_id not in snapshot:
                logger.warning(
                    "Device type %s uses unknown aspect %s", row.device_type_id, row.aspect_id
                )
                continue
            used.add(row.aspect_id)
        return used

    def _usage_filtered_ids(
        self, snapshot: AspectForestSnapshot, include_ancestors: bool, include_descendants: bool
    ) -> list[str]:
        used = self._used_measuring_aspects(snapshot)
        result = []
        for aspect_id in snapshot.ids:
            if aspect_id in used:
                result.append(aspect_id)
            elif include_descendants and not used.isdisjoint(snapshot.descendant_ids(aspect_id)):
                result.append(aspect_id)
            elif include_ancestors and not used.isdisjoint(snapshot.ancestor_ids(aspect_id)):
                result.append(aspect_id)
        return result

    def list_aspect_nodes(self, usage_filter: AspectUsageFilter | None = None) -> list[AspectNode]:
        """List aspect nodes, sorted by id.

        Args:
            usage_filter: When given with ``measuring_function_only``, only
                return nodes used with a measuring function, directly or
                through their descendants or ancestors as the filter allows.
        """
        snapshot = self.forest.snapshot
        if usage_filter is None or not usage_filter.measuring_function_only:
            return snapshot.nodes()
        ids = self._usage_filtered_ids(
            snapshot, usage_filter.include_ancestors, usage_filter.include_descendants
        )
        return [snapshot.node(i) for i in ids]

    def list_aspects_with_measuring_function(
        self, include_ancestors: bool = False, include_descendants: bool = True
    ) -> list[Aspect]:
        """Root aspect trees used with measuring functions, sorted by id.

        Without expansion only roots that are used themselves are returned;
        with expansion, the roots of every node passing the usage filter.
        """
        snapshot = self.forest.snapshot
        if include_ancestors or include_descendants:
            ids = self._usage_filtered_ids(snapshot, include_ancestors, include_descendants)
            root_ids = {snapshot.node(i).root_id for i in ids}
        else:
            root_ids = {
                i for i in self._used_measuring_aspects(snapshot) if snapshot.node(i).root_id == i
            }
        return [snapshot.subtree(i) for i in sorted(root_ids)]

    # Function listings

    def _resolve_functions(self, function_ids: set[str]) -> list[Function]:
        result = []
        for function_id in sorted(function_ids):
            try:
                result.append(self.store.load_function(function_id))
            except UnknownReference:
                logger.warning(
                    "Function %s is used by device types but not in the catalog", function_id
                )
        return result

    def list_aspect_node_measuring_functions(
        self, aspect_id: str, include_ancestors: bool = False, include_descendants: bool = True
    ) -> list[Function]:
        """Measuring functions used on an aspect, sorted by id.

        Args:
            aspect_id: Aspect node id.
            include_ancestors: Also include functions used on its ancestors.
            include_descendants: Also include functions used on its descendants.

        Raises:
            UnknownReference: If the aspect node does not exist.
        """
        snapshot = self.forest.snapshot
        snapshot.node(aspect_id)
        matcher = CriteriaMatcher(snapshot)
        criteria = FilterCriteria(aspect_id=aspect_id)
        function_ids = {
            row.function_id
            for row in self._measuring_rows()
            if matcher.matches(criteria, row, include_ancestors, include_descendants)
        }
        return self._resolve_functions(function_ids)

    def list_device_class_controlling_functions(self, device_class_id: str) -> list[Function]:
        """Controlling functions offered by device types of a device class, sorted by id."""
        query = DeviceTypeQuery(device_class_ids=(device_class_id,))
        function_ids = {
            row.function_id
            for device_type in self.store.load_device_types_for_selectable_query(query)
            for row in flatten_device_type(device_type, self.engine.classifier)
            if row.function_id and row.is_controlling_function and row.is_input
        }
        return self._resolve_functions(function_ids)

    # Criteria

    def filter_generic_duplicate_criteria(
        self, criteria: list[FilterCriteria]
    ) -> list[FilterCriteria]:
        """Remove criteria that generalize another criterion of the list."""
        return filter_generic_duplicate_criteria(criteria, self.forest.snapshot)

    def filter_device_group_generic_duplicate_criteria(self, group: DeviceGroup) -> DeviceGroup:
        """Deduplicate a device group's criteria and refresh its short criteria."""
        criteria = self.filter_generic_duplicate_criteria(list(group.criteria))
        return group.with_criteria(tuple(criteria), tuple(encode_criteria_list(criteria)))

    # Selectables

    def _candidates(self, query: DeviceTypeQuery | None) -> list[DeviceType]:
        return self.store.load_device_types_for_selectable_query(query or DeviceTypeQuery())

    def query_device_type_selectables(
        self,
        criteria: list[FilterCriteria],
        path_prefix: str | None = None,
        interactions_filter: Iterable[str | Interaction] = (),
        include_modified_ids: bool = False,
        include_device_type: bool = False,
        query: DeviceTypeQuery | None = None,
    ) -> list[DeviceTypeSelectable]:
        """Device types with at least one service matching any criterion.

        Raises:
            InvalidCriteria: For malformed criteria or interaction values.
        """
        return self.engine.query(
            self._candidates(query),
            criteria,
            path_prefix=self.selection.default_path_prefix if path_prefix is None else path_prefix,
            interactions_filter=interactions_filter,
            include_modified=include_modified_ids,
            include_device_type=include_device_type,
        )

    def query_device_type_selectables_v2(
        self,
        criteria: list[FilterCriteria],
        path_prefix: str | None = None,
        include_modified_ids: bool = False,
        services_must_match_all_criteria: bool = False,
        include_device_type: bool = False,
        query: DeviceTypeQuery | None = None,
    ) -> list[DeviceTypeSelectable]:
        """Device types whose services match the criteria, optionally all of them.

        Raises:
            InvalidCriteria: For malformed criteria.
        """
        return self.engine.query_v2(
            self._candidates(query),
            criteria,
            path_prefix=self.selection.default_path_prefix if path_prefix is None else path_prefix,
            include_modified=include_modified_ids,
            services_must_match_all_criteria=services_must_match_all_criteria,
            include_device_type=include_device_type,
        )
