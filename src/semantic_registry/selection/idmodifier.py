"""Modified device-type ids.

A device type with service groups can be addressed through one variant per
group: ``<id>$service_group_selection=<key>``. The variant only contains the
services of that group plus the services that belong to no group.
"""

from dataclasses import replace
from urllib.parse import parse_qs, urlencode

from semantic_registry.domain.models import DeviceType

SEPARATOR = "$"
SERVICE_GROUP_SELECTION = "service_group_selection"


def encode_modifier_parameter(modifier: dict[str, list[str]]) -> str:
    """Encode modifier parameters in query-string form, keys sorted."""
    return urlencode(sorted(modifier.items()), doseq=True)


def split_modified_id(device_type_id: str) -> tuple[str, dict[str, list[str]]]:
    """Split an id into the pure id and its modifier parameters."""
    pure_id, sep, encoded = device_type_id.partition(SEPARATOR)
    if not sep:
        return device_type_id, {}
    return pure_id, parse_qs(encoded, keep_blank_values=True)


def is_modified_id(device_type_id: str) -> bool:
    """True if the id carries modifier parameters."""
    return SEPARATOR in device_type_id


def service_group_variant_id(device_type_id: str, service_group_key: str) -> str:
    """Id of the service-group variant of a device type."""
    return (
        device_type_id
        + SEPARATOR
        + encode_modifier_parameter({SERVICE_GROUP_SELECTION: [service_group_key]})
    )


def service_group_variants(device_type: DeviceType) -> list[DeviceType]:
    """Build the modified variants of a device type, one per service group."""
    variants = []
    for group in device_type.service_groups:
        services = tuple(
            s for s in device_type.services if s.service_group_key in (group.key, "")
        )
        variants.append(
            replace(
                device_type,
                id=service_group_variant_id(device_type.id, group.key),
                services=services,
            )
        )
    return variants
