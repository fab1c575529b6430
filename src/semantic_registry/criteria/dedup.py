"""Removal of generic duplicate criteria.

A criterion is a generic duplicate when the same list also holds a more
specific variant of it: same function, device class and interaction, but an
aspect further down the aspect hierarchy. A criterion without aspect and
without device class counts as the most generic member of its group.

Only the most specific criteria of every ancestor chain survive. Criteria on
unrelated aspects (siblings, other trees) and exact duplicates are kept.
"""

import logging
from collections import defaultdict

from semantic_registry.aspects.forest import AspectForest, AspectForestSnapshot
from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.observability.metrics import METRICS

logger = logging.getLogger(__name__)

GroupKey = tuple[str, str, Interaction | None]


def _is_more_generic(
    candidate: FilterCriteria, other: FilterCriteria, forest: AspectForestSnapshot
) -> bool:
    """True if ``candidate`` is a strict generalization of ``other``."""
    if candidate.device_class_id or not other.aspect_id:
        return False
    if candidate.aspect_id == other.aspect_id:
        return False
    if candidate.is_function_only:
        return True
    return forest.is_ancestor(candidate.aspect_id, other.aspect_id)


def filter_generic_duplicate_criteria(
    criteria: list[FilterCriteria], forest: AspectForestSnapshot
) -> list[FilterCriteria]:
    """Drop every criterion that generalizes another criterion of the list.

    Args:
        criteria: Criteria in caller order.
        forest: Aspect forest snapshot used for ancestor checks.

    Returns:
        The surviving criteria in their original relative order.
    """
    if len(criteria) < 2:
        return list(criteria)

    groups: dict[GroupKey, list[int]] = defaultdict(list)
    for index, c in enumerate(criteria):
        groups[(c.function_id, c.device_class_id, c.interaction)].append(index)

    removed: set[int] = set()
    for members in groups.values():
        if len(members) < 2:
            continue
        for i in members:
            for j in members:
                if i != j and _is_more_generic(criteria[i], criteria[j], forest):
                    removed.add(i)
                    break

    if removed:
        METRICS.generic_duplicates_removed_total.inc(len(removed))
        logger.debug(
            "Removed %d generic duplicate criteria: %s",
            len(removed),
            [criteria[i] for i in sorted(removed)],
        )
    return [c for index, c in enumerate(criteria) if index not in removed]


class GenericDuplicateFilter:
    """Generic duplicate filtering bound to an aspect forest."""

    def __init__(self, forest: AspectForest):
        self.forest = forest

    def filter(self, criteria: list[FilterCriteria]) -> list[FilterCriteria]:
        """Filter against the forest's current snapshot."""
        return filter_generic_duplicate_criteria(criteria, self.forest.snapshot)
