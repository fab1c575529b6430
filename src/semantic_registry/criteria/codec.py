"""Short string form of filter criteria.

The short form is ``{function}_{aspect}_{device_class}_{interaction}`` with
empty fields left empty, so positions stay stable (``f1_a1__event``,
``f2__dc1_request``, ``f3___``). Backslashes and underscores inside a field are
escaped with a backslash, which keeps the encoding injective for ids that
contain the separator themselves.
"""

from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import InvalidCriteria

SEPARATOR = "_"
ESCAPE = "\\"


def _escape(value: str) -> str:
    return value.replace(ESCAPE, ESCAPE + ESCAPE).replace(SEPARATOR, ESCAPE + SEPARATOR)


def _split(short: str) -> list[str]:
    fields: list[str] = []
    current: list[str] = []
    chars = iter(short)
    for char in chars:
        if char == ESCAPE:
            escaped = next(chars, None)
            if escaped is None:
                raise InvalidCriteria(short, "dangling escape character")
            current.append(escaped)
        elif char == SEPARATOR:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def encode_criteria(criteria: FilterCriteria) -> str:
    """Encode criteria into their short string form."""
    return SEPARATOR.join(
        [
            _escape(criteria.function_id),
            _escape(criteria.aspect_id),
            _escape(criteria.device_class_id),
            criteria.interaction.value if criteria.interaction else "",
        ]
    )


def encode_criteria_list(criteria: list[FilterCriteria]) -> list[str]:
    """Encode a criteria list, keeping order."""
    return [encode_criteria(c) for c in criteria]


def decode_criteria(short: str) -> FilterCriteria:
    """Parse the short string form back into criteria.

    Raises:
        InvalidCriteria: If the string does not have four fields or names an
            unknown interaction.
    """
    fields = _split(short)
    if len(fields) != 4:
        raise InvalidCriteria(short, f"expected 4 fields, found {len(fields)}")
    function_id, aspect_id, device_class_id, interaction = fields
    try:
        parsed = Interaction.parse(interaction)
    except ValueError as e:
        raise InvalidCriteria(short, str(e)) from e
    return FilterCriteria(
        function_id=function_id,
        aspect_id=aspect_id,
        device_class_id=device_class_id,
        interaction=parsed,
    )
