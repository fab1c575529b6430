"""Matching of filter criteria against flattened service rows."""

from semantic_registry.aspects.forest import AspectForest, AspectForestSnapshot
from semantic_registry.domain.criteria import FilterCriteria
from semantic_registry.domain.models import ServiceTuple


def aspect_matches(
    forest: AspectForestSnapshot,
    criteria_aspect_id: str,
    aspect_id: str,
    expand_ancestors: bool = False,
    expand_descendants: bool = False,
) -> bool:
    """Check a row aspect against a criteria aspect.

    Args:
        forest: Snapshot used for hierarchy expansion.
        criteria_aspect_id: Aspect requested by the query.
        aspect_id: Aspect of the candidate row.
        expand_ancestors: Also accept ancestors of the requested aspect.
        expand_descendants: Also accept descendants of the requested aspect.

    Returns:
        False whenever the requested aspect is not part of the forest.
    """
    if criteria_aspect_id not in forest:
        return False
    if aspect_id == criteria_aspect_id:
        return True
    if not aspect_id:
        return False
    if expand_descendants and aspect_id in forest.descendant_ids(criteria_aspect_id):
        return True
    if expand_ancestors and aspect_id in forest.ancestor_ids(criteria_aspect_id):
        return True
    return False


def criteria_matches(
    forest: AspectForestSnapshot,
    criteria: FilterCriteria,
    row: ServiceTuple,
    expand_ancestors: bool = False,
    expand_descendants: bool = False,
) -> bool:
    """Decide whether a service row satisfies a criterion.

    The function must be equal (an empty criteria function accepts any
    function, but rows without function never match). Aspects match
    hierarchically according to the expansion flags, device classes only by
    equality. Interactions match through :meth:`Interaction.matches`.
    """
    if not row.function_id:
        return False
    if criteria.function_id and criteria.function_id != row.function_id:
        return False
    if criteria.aspect_id and not aspect_matches(
        forest, criteria.aspect_id, row.aspect_id, expand_ancestors, expand_descendants
    ):
        return False
    if criteria.device_class_id and criteria.device_class_id != row.device_class_id:
        return False
    if criteria.interaction is not None and not criteria.interaction.matches(row.interaction):
        return False
    return True


class CriteriaMatcher:
    """Criteria matching bound to an aspect forest.

    Each call reads the forest's current snapshot; use :meth:`for_snapshot`
    to pin one snapshot for a whole query.
    """

    def __init__(self, forest: AspectForest | AspectForestSnapshot):
        self._forest = forest

    @property
    def snapshot(self) -> AspectForestSnapshot:
        """The snapshot matches are evaluated against."""
        if isinstance(self._forest, AspectForest):
            return self._forest.snapshot
        return self._forest

    def for_snapshot(self) -> "CriteriaMatcher":
        """Return a matcher pinned to the current snapshot."""
        return CriteriaMatcher(self.snapshot)

    def matches(
        self,
        criteria: FilterCriteria,
        row: ServiceTuple,
        expand_ancestors: bool = False,
        expand_descendants: bool = False,
    ) -> bool:
        """Decide whether a service row satisfies a criterion."""
        return criteria_matches(
            self.snapshot, criteria, row, expand_ancestors, expand_descendants
        )
