"""Filter criteria and interaction kinds used by selectable queries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from semantic_registry.domain.errors import InvalidCriteria


class Interaction(Enum):
    """How a service exchanges data with the platform.

    EVENT_AND_REQUEST is the union of the other two kinds, not a third kind.
    """

    EVENT = "event"
    REQUEST = "request"
    EVENT_AND_REQUEST = "event+request"

    @classmethod
    def parse(cls, value: str | Interaction | None) -> Interaction | None:
        """Parse an interaction from its wire value.

        Accepts the wire values as well as the enum names in camelCase
        (``eventAndRequest``) and upper case (``EVENT_AND_REQUEST``).

        Raises:
            ValueError: If the value names no known interaction.
        """
        if value is None or isinstance(value, Interaction):
            return value
        if value == "":
            return None
        for member in cls:
            if value in (member.value, member.name, _camel(member.name)):
                return member
        raise ValueError(f"Unknown interaction: {value!r}")

    def matches(self, other: Interaction | None) -> bool:
        """Check whether two interactions are compatible.

        Equal values match, and EVENT_AND_REQUEST on either side matches
        anything. ``None`` stands for "unconstrained".
        """
        if other is None:
            return True
        if self is other:
            return True
        return Interaction.EVENT_AND_REQUEST in (self, other)


def _camel(name: str) -> str:
    head, *tail = name.lower().split("_")
    return head + "".join(part.capitalize() for part in tail)


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    """A single semantic query term.

    Criteria are value objects: equality compares all four fields exactly,
    without looking at the aspect hierarchy.
    """

    function_id: str = ""
    """Measuring or controlling function id. Empty matches any function."""

    aspect_id: str = ""
    """Aspect node id, used with measuring functions."""

    device_class_id: str = ""
    """Device class id, used with controlling functions."""

    interaction: Interaction | None = None
    """Required interaction. None leaves the interaction unconstrained."""

    @property
    def is_function_only(self) -> bool:
        """True if neither an aspect nor a device class constrains the criterion."""
        return not self.aspect_id and not self.device_class_id

    def validate(self) -> None:
        """Check the field combination.

        Raises:
            InvalidCriteria: If aspect and device class are both set.
        """
        if self.aspect_id and self.device_class_id:
            raise InvalidCriteria(self, "aspect_id and device_class_id are mutually exclusive")

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "function_id": self.function_id,
            "aspect_id": self.aspect_id,
            "device_class_id": self.device_class_id,
            "interaction": self.interaction.value if self.interaction else "",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterCriteria:
        """Create from dictionary.

        Raises:
            InvalidCriteria: If the interaction value is unknown.
        """
        try:
            interaction = Interaction.parse(data.get("interaction"))
        except ValueError as e:
            raise InvalidCriteria(data, str(e)) from e
        return cls(
            function_id=data.get("function_id") or "",
            aspect_id=data.get("aspect_id") or "",
            device_class_id=data.get("device_class_id") or "",
            interaction=interaction,
        )
