"""Flattening of device-type services into matchable rows."""

import logging
from collections.abc import Iterator, Mapping

from semantic_registry.domain.models import (
    CONTROLLING_FUNCTION_PREFIX,
    URN_PREFIX,
    ContentVariable,
    DeviceType,
    Function,
    Service,
    ServiceTuple,
)
from semantic_registry.selection.idmodifier import service_group_variants, split_modified_id

logger = logging.getLogger(__name__)


class FunctionClassifier:
    """Tells measuring and controlling functions apart.

    Functions known to the catalog are classified by their type; unknown ids
    fall back to the controlling-function id prefix.
    """

    def __init__(
        self,
        functions: Mapping[str, Function] | None = None,
        controlling_prefix: str = CONTROLLING_FUNCTION_PREFIX,
    ):
        self.functions = dict(functions or {})
        self.controlling_prefix = controlling_prefix

    def is_known(self, function_id: str) -> bool:
        """True if the function is part of the catalog."""
        return function_id in self.functions

    def is_controlling(self, function_id: str) -> bool:
        """True if the function is a controlling function."""
        function = self.functions.get(function_id)
        if function is not None:
            return function.is_controlling
        return function_id.startswith(self.controlling_prefix)

    def fits_direction(self, function_id: str, is_input: bool) -> bool:
        """Controlling functions belong to inputs, measuring functions to outputs.

        Unknown ids outside the platform URN namespace fit either direction.
        """
        if not function_id:
            return False
        if not self.is_known(function_id) and not function_id.startswith(URN_PREFIX):
            return True
        return self.is_controlling(function_id) == is_input


def _flatten_variable(
    device_type: DeviceType,
    pure_device_type_id: str,
    service: Service,
    variable: ContentVariable,
    is_input: bool,
    classifier: FunctionClassifier,
    path_parts: tuple[str, ...],
) -> Iterator[ServiceTuple]:
    parts = (*path_parts, variable.name)
    is_leaf = variable.is_leaf
    usable_function = classifier.fits_direction(variable.function_id, is_input)
    configurable_candidate = is_leaf and is_input

    if usable_function or configurable_candidate:
        yield ServiceTuple(
            device_type_id=device_type.id,
            pure_device_type_id=pure_device_type_id,
            is_id_modified=device_type.id != pure_device_type_id,
            service_id=service.id,
            content_variable_id=variable.id,
            path=".".join(parts),
            interaction=service.interaction,
            # functions that do not fit the direction are not selectable here
            function_id=variable.function_id if usable_function else "",
            aspect_id=variable.aspect_id,
            device_class_id=device_type.device_class_id,
            characteristic_id=variable.characteristic_id,
            type=variable.type,
            value=variable.value,
            is_void=variable.is_void,
            is_leaf=is_leaf,
            is_input=is_input,
            is_controlling_function=(
                classifier.is_controlling(variable.function_id) if variable.function_id else False
            ),
        )
    elif variable.function_id:
        logger.debug(
            "Skipping %s on %s/%s: function %s does not fit the %s direction",
            ".".join(parts),
            device_type.id,
            service.id,
            variable.function_id,
            "input" if is_input else "output",
        )

    for sub in variable.sub_content_variables:
        yield from _flatten_variable(
            device_type, pure_device_type_id, service, sub, is_input, classifier, parts
        )


def flatten_service(
    device_type: DeviceType, service: Service, classifier: FunctionClassifier
) -> list[ServiceTuple]:
    """Flatten the input and output content trees of one service."""
    pure_id, _ = split_modified_id(device_type.id)
    rows: list[ServiceTuple] = []
    for content in service.inputs:
        rows.extend(
            _flatten_variable(
                device_type, pure_id, service, content.content_variable, True, classifier, ()
            )
        )
    for content in service.outputs:
        rows.extend(
            _flatten_variable(
                device_type, pure_id, service, content.content_variable, False, classifier, ()
            )
        )
    return rows


def flatten_device_type(
    device_type: DeviceType, classifier: FunctionClassifier
) -> list[ServiceTuple]:
    """Flatten all services of a device type."""
    rows: list[ServiceTuple] = []
    for service in device_type.services:
        rows.extend(flatten_service(device_type, service, classifier))
    return rows


def expand_candidates(
    device_types: list[DeviceType], include_modified: bool
) -> list[DeviceType]:
    """Add the service-group variants of each device type when requested."""
    if not include_modified:
        return list(device_types)
    result: list[DeviceType] = []
    for device_type in device_types:
        result.append(device_type)
        result.extend(service_group_variants(device_type))
    return result
