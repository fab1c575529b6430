"""Unit tests for the registry operations."""

import pytest

from semantic_registry.catalog.store import InMemoryCatalog
from semantic_registry.config import SelectionConfig
from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import CycleDetected, UnknownReference
from semantic_registry.domain.models import AspectNode, DeviceGroup
from semantic_registry.registry import AspectUsageFilter, SemanticRegistry


def ids(items: list) -> list[str]:
    """Helper to list the ids of catalog entities."""
    return [item.id for item in items]


class TestAspectNodes:
    """Tests for aspect node listings."""

    def test_list_all(self, registry: SemanticRegistry) -> None:
        """Test listing without filter returns every node sorted by id."""
        assert ids(registry.list_aspect_nodes()) == [
            "air",
            "battery",
            "battery-cell",
            "device",
            "inside-air",
            "outside-air",
            "water",
            "water-tank",
        ]

    def test_get_aspect_node(self, registry: SemanticRegistry) -> None:
        """Test a single node comes with its derived fields."""
        node = registry.get_aspect_node("battery-cell")

        assert node.ancestor_ids == ("battery", "device")
        assert node.root_id == "device"

    def test_get_unknown_aspect_node(self, registry: SemanticRegistry) -> None:
        """Test an unknown node raises UnknownReference."""
        with pytest.raises(UnknownReference):
            registry.get_aspect_node("nope")

    def test_list_by_ids(self, registry: SemanticRegistry) -> None:
        """Test listing by id skips unknown ids and sorts the rest."""
        result = registry.list_aspect_nodes_by_ids(["water-tank", "air", "nope", "air"])

        assert ids(result) == ["air", "water-tank"]

    @pytest.mark.parametrize(
        ("ancestors", "descendants", "expected"),
        [
            (False, False, ["battery", "device", "inside-air", "outside-air"]),
            (False, True, ["air", "battery", "device", "inside-air", "outside-air"]),
            (True, False, ["battery", "battery-cell", "device", "inside-air", "outside-air"]),
            (
                True,
                True,
                ["air", "battery", "battery-cell", "device", "inside-air", "outside-air"],
            ),
        ],
    )
    def test_usage_filter(
        self,
        registry: SemanticRegistry,
        ancestors: bool,
        descendants: bool,
        expected: list[str],
    ) -> None:
        """Test usage by measuring functions, directly or through relatives."""
        usage_filter = AspectUsageFilter(
            include_ancestors=ancestors, include_descendants=descendants
        )

        assert ids(registry.list_aspect_nodes(usage_filter)) == expected

    def test_usage_filter_disabled(self, registry: SemanticRegistry) -> None:
        """Test a filter without measuring_function_only lists everything."""
        result = registry.list_aspect_nodes(AspectUsageFilter(measuring_function_only=False))

        assert len(result) == 8


class TestAspectsWithMeasuringFunction:
    """Tests for root aspect trees in use."""

    def test_default_expansion(self, registry: SemanticRegistry) -> None:
        """Test roots of used nodes are returned as trees."""
        result = registry.list_aspects_with_measuring_function()

        assert ids(result) == ["air", "device"]
        assert [a.id for a in result[0].sub_aspects] == ["inside-air", "outside-air"]

    def test_without_expansion(self, registry: SemanticRegistry) -> None:
        """Test only roots used directly are returned without expansion."""
        result = registry.list_aspects_with_measuring_function(
            include_ancestors=False, include_descendants=False
        )

        assert ids(result) == ["device"]

    def test_dangling_parent_is_a_root(
        self, registry: SemanticRegistry, catalog: InMemoryCatalog
    ) -> None:
        """Test a used node whose parent is missing is listed as its own root."""
        catalog.replace_aspect_nodes([AspectNode(id="inside-air", parent_id="removed")])
        registry.reload_aspects()

        expanded = registry.list_aspects_with_measuring_function()
        exact = registry.list_aspects_with_measuring_function(
            include_ancestors=False, include_descendants=False
        )

        assert ids(expanded) == ["inside-air"]
        assert ids(exact) == ["inside-air"]


class TestFunctionListings:
    """Tests for function listings."""

    def test_measuring_functions_with_descendants(self, registry: SemanticRegistry) -> None:
        """Test functions used below an aspect are included."""
        result = registry.list_aspect_node_measuring_functions("air")

        assert ids(result) == ["humidity", "temperature"]

    def test_measuring_functions_exact(self, registry: SemanticRegistry) -> None:
        """Test without expansion only the aspect itself counts."""
        assert registry.list_aspect_node_measuring_functions("air", False, False) == []
        assert ids(registry.list_aspect_node_measuring_functions("device", False, False)) == [
            "power-state"
        ]

    def test_measuring_functions_with_ancestors(self, registry: SemanticRegistry) -> None:
        """Test functions used above an aspect are included."""
        result = registry.list_aspect_node_measuring_functions(
            "battery-cell", include_ancestors=True, include_descendants=False
        )

        assert ids(result) == ["battery-level", "power-state"]

    def test_measuring_functions_unknown_aspect(self, registry: SemanticRegistry) -> None:
        """Test an unknown aspect raises UnknownReference."""
        with pytest.raises(UnknownReference):
            registry.list_aspect_node_measuring_functions("nope")

    def test_device_class_controlling_functions(self, registry: SemanticRegistry) -> None:
        """Test controlling functions offered by a device class."""
        assert ids(registry.list_device_class_controlling_functions("lamp")) == [
            "set-color",
            "set-on",
        ]
        assert registry.list_device_class_controlling_functions("thermometer") == []


class TestCriteriaOperations:
    """Tests for criteria deduplication operations."""

    def test_filter_generic_duplicates(self, registry: SemanticRegistry) -> None:
        """Test the catalog forest drives deduplication."""
        criteria = [
            FilterCriteria(function_id="temperature", aspect_id="air"),
            FilterCriteria(function_id="temperature", aspect_id="outside-air"),
        ]

        result = registry.filter_generic_duplicate_criteria(criteria)

        assert result == [criteria[1]]

    def test_device_group_criteria_refreshed(self, registry: SemanticRegistry) -> None:
        """Test a device group keeps criteria and short criteria in sync."""
        group = DeviceGroup(
            id="g1",
            name="Inside",
            criteria=(
                FilterCriteria("temperature", "air", interaction=Interaction.EVENT),
                FilterCriteria("temperature", "inside-air", interaction=Interaction.EVENT),
            ),
            criteria_short=("stale",),
            device_ids=("d1",),
        )

        result = registry.filter_device_group_generic_duplicate_criteria(group)

        assert result.criteria == (
            FilterCriteria("temperature", "inside-air", interaction=Interaction.EVENT),
        )
        assert result.criteria_short == ("temperature_inside-air__event",)
        assert result.device_ids == ("d1",)


class TestSelectables:
    """Tests for selectable queries through the registry."""

    def test_v1(self, registry: SemanticRegistry) -> None:
        """Test v1 queries use the store's device types."""
        result = registry.query_device_type_selectables(
            [FilterCriteria(function_id="set-on", device_class_id="lamp")]
        )

        assert [s.device_type_id for s in result] == ["dt-lamp"]

    def test_v2_must_match_all(self, registry: SemanticRegistry) -> None:
        """Test the all-match flag reaches the engine."""
        criteria = [
            FilterCriteria(function_id="temperature", aspect_id="air"),
            FilterCriteria(function_id="humidity", aspect_id="air"),
        ]

        result = registry.query_device_type_selectables_v2(
            criteria, services_must_match_all_criteria=True
        )

        services = {s.device_type_id: [x.id for x in s.services] for s in result}
        assert services == {"dt-climate": ["s-climate"], "dt-split": [], "dt-thermometer": []}

    def test_default_path_prefix(self, catalog: InMemoryCatalog) -> None:
        """Test the configured prefix applies when a query names none."""
        registry = SemanticRegistry(catalog, SelectionConfig(default_path_prefix="x."))

        (result,) = registry.query_device_type_selectables(
            [FilterCriteria(function_id="set-on", device_class_id="lamp")]
        )
        (explicit,) = registry.query_device_type_selectables(
            [FilterCriteria(function_id="set-on", device_class_id="lamp")], path_prefix=""
        )

        assert result.service_path_options["s-on"][0].path == "x.data.power"
        assert explicit.service_path_options["s-on"][0].path == "data.power"


class TestReload:
    """Tests for reloading the aspect forest."""

    def test_reload_picks_up_changes(
        self, registry: SemanticRegistry, catalog: InMemoryCatalog
    ) -> None:
        """Test a reload replaces the forest."""
        catalog.replace_aspect_nodes([AspectNode(id="only")])

        registry.reload_aspects()

        assert ids(registry.list_aspect_nodes()) == ["only"]

    def test_reload_with_cycle_keeps_forest(
        self, registry: SemanticRegistry, catalog: InMemoryCatalog
    ) -> None:
        """Test a cyclic catalog leaves the previous forest active."""
        catalog.replace_aspect_nodes(
            [AspectNode(id="A", parent_id="B"), AspectNode(id="B", parent_id="A")]
        )

        with pytest.raises(CycleDetected):
            registry.reload_aspects()

        assert len(registry.list_aspect_nodes()) == 8

    def test_reload_functions(self, registry: SemanticRegistry) -> None:
        """Test the function catalog can be reloaded."""
        registry.reload_functions()

        assert registry.engine.classifier.is_known("set-on")
