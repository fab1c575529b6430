"""Unit tests for the selectable query engine."""

import logging

import pytest

from semantic_registry.aspects.forest import AspectForest
from semantic_registry.catalog.store import InMemoryCatalog
from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import InvalidCriteria
from semantic_registry.domain.models import (
    CONTROLLING_FUNCTION_TYPE,
    MEASURING_FUNCTION_TYPE,
    Content,
    ContentVariable,
    DeviceType,
    Function,
    Service,
)
from semantic_registry.selection.engine import SelectableQueryEngine, parse_interactions_filter
from semantic_registry.selection.flatten import FunctionClassifier
from semantic_registry.selection.models import DeviceTypeSelectable

TEMPERATURE_AIR = FilterCriteria(function_id="temperature", aspect_id="air")
HUMIDITY_AIR = FilterCriteria(function_id="humidity", aspect_id="air")
TEMPERATURE_INSIDE = FilterCriteria(function_id="temperature", aspect_id="inside-air")
LAMP_ON = FilterCriteria(function_id="set-on", device_class_id="lamp")


@pytest.fixture
def engine(catalog_forest: AspectForest, classifier: FunctionClassifier) -> SelectableQueryEngine:
    """Create an engine over the test catalog."""
    return SelectableQueryEngine(catalog_forest, classifier)


@pytest.fixture
def device_types(catalog: InMemoryCatalog) -> list[DeviceType]:
    """All device types of the test catalog."""
    return catalog.load_all_device_types()


def by_id(result: list[DeviceTypeSelectable]) -> dict[str, DeviceTypeSelectable]:
    """Helper to index results by device-type id."""
    return {s.device_type_id: s for s in result}


def service_ids(selectable: DeviceTypeSelectable) -> list[str]:
    """Helper to list the selected service ids."""
    return [s.id for s in selectable.services]


class TestQueryV1:
    """Tests for any-match queries."""

    def test_any_criterion_selects(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test every service matching any criterion is reported."""
        result = engine.query(device_types, [TEMPERATURE_AIR, HUMIDITY_AIR])

        assert [s.device_type_id for s in result] == ["dt-climate", "dt-split", "dt-thermometer"]
        selected = by_id(result)
        assert service_ids(selected["dt-split"]) == ["s-split-temp", "s-split-hum"]
        assert service_ids(selected["dt-thermometer"]) == ["s-get-temp", "s-temp-event"]

    def test_options_annotated_with_matched_criteria(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test each path option names the criteria it satisfied."""
        result = by_id(engine.query(device_types, [TEMPERATURE_AIR, HUMIDITY_AIR]))

        options = result["dt-climate"].service_path_options["s-climate"]

        assert [(o.path, o.matched_criteria) for o in options] == [
            ("data.humidity", ("humidity_air__",)),
            ("data.temperature", ("temperature_air__",)),
        ]
        assert options[1].aspect_node is not None
        assert options[1].aspect_node.root_id == "air"
        assert options[1].characteristic_id == "celsius"

    def test_interactions_filter(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test an event filter also admits event+request services."""
        result = engine.query(
            device_types,
            [FilterCriteria(function_id="temperature")],
            interactions_filter=["event"],
        )

        selected = by_id(result)
        assert list(selected) == ["dt-climate", "dt-thermometer"]
        assert service_ids(selected["dt-thermometer"]) == ["s-temp-event"]

    def test_invalid_interactions_filter(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test unknown interaction names are a client error."""
        with pytest.raises(InvalidCriteria):
            engine.query(device_types, [TEMPERATURE_AIR], interactions_filter=["sometimes"])

    def test_criteria_interaction(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test a request criterion matches request and event+request services."""
        criterion = FilterCriteria(function_id="temperature", interaction=Interaction.REQUEST)

        result = by_id(engine.query(device_types, [criterion]))

        assert list(result) == ["dt-climate", "dt-split", "dt-thermometer"]
        assert service_ids(result["dt-thermometer"]) == ["s-get-temp"]

    def test_empty_criteria_matches_everything(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test an empty criteria list is one unconstrained criterion."""
        result = engine.query(device_types, [])

        assert [s.device_type_id for s in result] == [
            "dt-climate",
            "dt-lamp",
            "dt-split",
            "dt-thermometer",
        ]

    def test_path_prefix(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test the path prefix is prepended to options but not to configurables."""
        result = by_id(engine.query(device_types, [LAMP_ON], path_prefix="lamp."))

        (option,) = result["dt-lamp"].service_path_options["s-on"]
        assert option.path == "lamp.data.power"
        assert [c.path for c in option.configurables] == ["data.duration"]

    def test_include_device_type(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test the full device type is attached on request."""
        (plain,) = engine.query(device_types, [LAMP_ON])
        (full,) = engine.query(device_types, [LAMP_ON], include_device_type=True)

        assert plain.device_type is None
        assert full.device_type is not None
        assert full.device_type.id == "dt-lamp"
        assert "device_type" in full.to_dict()


class TestConfigurables:
    """Tests for configurable extraction."""

    def test_controlled_path_excluded(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test the controlled path is not offered as its own configurable."""
        color = FilterCriteria(function_id="set-color", device_class_id="lamp")

        (selectable,) = engine.query(device_types, [color])

        (option,) = selectable.service_path_options["s-color"]
        assert option.is_controlling_function
        assert [(c.path, c.value, c.characteristic_id) for c in option.configurables] == [
            ("data.transition", 500, "milliseconds")
        ]

    def test_measuring_option_lists_input_leaves(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test measuring options have no configurables when the service has no inputs."""
        result = by_id(engine.query(device_types, [TEMPERATURE_AIR]))

        for options in result["dt-thermometer"].service_path_options.values():
            for option in options:
                assert option.configurables == ()


class TestModifiedIds:
    """Tests for service-group variants in queries."""

    def test_variants_only_on_request(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test variants containing a matching service are added."""
        plain = engine.query(device_types, [LAMP_ON])
        modified = engine.query(device_types, [LAMP_ON], include_modified=True)

        assert [s.device_type_id for s in plain] == ["dt-lamp"]
        assert [s.device_type_id for s in modified] == [
            "dt-lamp",
            "dt-lamp$service_group_selection=main",
        ]

    def test_ungrouped_services_in_every_variant(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test services without group are part of every variant."""
        criterion = FilterCriteria(function_id="power-state", aspect_id="device")

        result = engine.query_v2(device_types, [criterion], include_modified=True)

        assert [s.device_type_id for s in result] == [
            "dt-lamp",
            "dt-lamp$service_group_selection=extra",
            "dt-lamp$service_group_selection=main",
        ]


class TestQueryV2:
    """Tests for v2 queries."""

    def test_v1_v2_scenario(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test split services match in v1 but not when all criteria must match."""
        criteria = [TEMPERATURE_AIR, HUMIDITY_AIR]

        v1 = by_id(engine.query(device_types, criteria))
        v2 = by_id(engine.query_v2(device_types, criteria, services_must_match_all_criteria=True))

        assert service_ids(v1["dt-split"]) == ["s-split-temp", "s-split-hum"]
        assert service_ids(v2["dt-split"]) == []
        assert v2["dt-split"].service_path_options == {}
        assert service_ids(v2["dt-climate"]) == ["s-climate"]

    def test_v2_without_flag_behaves_like_v1(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test v2 without the all-match flag is an any-match query."""
        criteria = [TEMPERATURE_AIR, HUMIDITY_AIR]

        v1 = engine.query(device_types, criteria)
        v2 = engine.query_v2(device_types, criteria)

        assert [s.to_dict() for s in v2] == [s.to_dict() for s in v1]

    def test_distinct_paths_required(
        self,
        catalog_forest: AspectForest,
        classifier: FunctionClassifier,
        device_types: list[DeviceType],
    ) -> None:
        """Test two criteria satisfied only by one path do not both count."""
        engine = SelectableQueryEngine(catalog_forest, classifier, filter_generic_duplicates=False)
        criteria = [TEMPERATURE_AIR, TEMPERATURE_INSIDE]

        result = by_id(
            engine.query_v2(device_types, criteria, services_must_match_all_criteria=True)
        )

        assert service_ids(result["dt-climate"]) == []

    def test_dedup_before_matching(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test generic duplicates are removed before the all-match check."""
        criteria = [TEMPERATURE_AIR, TEMPERATURE_INSIDE]

        result = by_id(
            engine.query_v2(device_types, criteria, services_must_match_all_criteria=True)
        )

        assert service_ids(result["dt-climate"]) == ["s-climate"]
        (option,) = result["dt-climate"].service_path_options["s-climate"]
        assert option.matched_criteria == ("temperature_inside-air__",)


class TestSharedPathNames:
    """Tests for services whose input and output trees share a path."""

    SET_TEMP = FilterCriteria(function_id="set-temp", device_class_id="thermostat")
    TEMP_AIR = FilterCriteria(function_id="temp", aspect_id="air")

    @pytest.fixture
    def thermostat_engine(
        self, catalog_forest: AspectForest, catalog: InMemoryCatalog
    ) -> SelectableQueryEngine:
        """Engine that also knows the thermostat functions."""
        functions = {f.id: f for f in catalog.load_all_functions()}
        functions["set-temp"] = Function(id="set-temp", rdf_type=CONTROLLING_FUNCTION_TYPE)
        functions["temp"] = Function(id="temp", rdf_type=MEASURING_FUNCTION_TYPE)
        return SelectableQueryEngine(catalog_forest, FunctionClassifier(functions))

    @pytest.fixture
    def thermostat(self) -> DeviceType:
        """Device type reading and writing a content variable named value."""
        service = Service(
            id="s-thermo",
            interaction=Interaction.REQUEST,
            inputs=(
                Content(ContentVariable(id="in-value", name="value", function_id="set-temp")),
            ),
            outputs=(
                Content(
                    ContentVariable(
                        id="out-value", name="value", function_id="temp", aspect_id="air"
                    )
                ),
            ),
        )
        return DeviceType(id="dt-thermostat", device_class_id="thermostat", services=(service,))

    def test_v1_reports_both_variables(
        self, thermostat_engine: SelectableQueryEngine, thermostat: DeviceType
    ) -> None:
        """Test an input and an output with the same path are separate options."""
        (result,) = thermostat_engine.query([thermostat], [self.SET_TEMP, self.TEMP_AIR])

        options = result.service_path_options["s-thermo"]
        assert [(o.path, o.function_id, o.matched_criteria) for o in options] == [
            ("value", "set-temp", ("set-temp__thermostat_",)),
            ("value", "temp", ("temp_air__",)),
        ]
        assert options[1].aspect_node is not None
        assert options[1].aspect_node.id == "air"

    def test_v2_match_all_accepts_same_path_name(
        self, thermostat_engine: SelectableQueryEngine, thermostat: DeviceType
    ) -> None:
        """Test all-match counts the input and the output as distinct variables."""
        (result,) = thermostat_engine.query_v2(
            [thermostat], [self.SET_TEMP, self.TEMP_AIR], services_must_match_all_criteria=True
        )

        assert service_ids(result) == ["s-thermo"]
        assert [o.function_id for o in result.service_path_options["s-thermo"]] == [
            "set-temp",
            "temp",
        ]


class TestCriteriaErrors:
    """Tests for invalid and unknown criteria."""

    def test_aspect_and_device_class(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test aspect and device class together are rejected."""
        criterion = FilterCriteria(
            function_id="temperature", aspect_id="air", device_class_id="thermometer"
        )

        with pytest.raises(InvalidCriteria):
            engine.query(device_types, [criterion])

    def test_aspect_with_controlling_function(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test an aspect paired with a controlling function is rejected."""
        criterion = FilterCriteria(function_id="set-on", aspect_id="device")

        with pytest.raises(InvalidCriteria, match="controlling"):
            engine.query_v2(device_types, [criterion])

    def test_unknown_aspect_degrades_single_criterion(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test an unknown aspect only disables its own criterion."""
        criteria = [
            FilterCriteria(function_id="temperature", aspect_id="no-such-aspect"),
            FilterCriteria(function_id="humidity"),
        ]

        result = engine.query(device_types, criteria)

        assert [s.device_type_id for s in result] == ["dt-climate", "dt-split"]

    def test_unknown_function_never_matches(
        self,
        engine: SelectableQueryEngine,
        device_types: list[DeviceType],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test an unknown function yields no results and a warning."""
        with caplog.at_level(logging.WARNING, logger="semantic_registry"):
            result = engine.query(device_types, [FilterCriteria(function_id="no-such-function")])

        assert result == []
        assert "no-such-function" in caplog.text

    def test_unknown_aspect_fails_all_match(
        self, engine: SelectableQueryEngine, device_types: list[DeviceType]
    ) -> None:
        """Test a dead criterion can never be satisfied in all-match mode."""
        criteria = [
            FilterCriteria(function_id="temperature", aspect_id="inside-air"),
            FilterCriteria(function_id="humidity", aspect_id="no-such-aspect"),
        ]

        result = by_id(
            engine.query_v2(device_types, criteria, services_must_match_all_criteria=True)
        )

        assert service_ids(result["dt-climate"]) == []


class TestParseInteractionsFilter:
    """Tests for parse_interactions_filter."""

    def test_request_admits_union(self) -> None:
        """Test request also admits event+request."""
        assert parse_interactions_filter(["request"]) == {
            Interaction.REQUEST,
            Interaction.EVENT_AND_REQUEST,
        }

    def test_union_only(self) -> None:
        """Test naming only the union admits only the union."""
        assert parse_interactions_filter(["event+request"]) == {Interaction.EVENT_AND_REQUEST}

    def test_empty(self) -> None:
        """Test an empty filter admits nothing explicitly."""
        assert parse_interactions_filter([]) == frozenset()
