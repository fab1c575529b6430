"""Criteria encoding, generic duplicate filtering and matching."""

from semantic_registry.criteria.codec import decode_criteria, encode_criteria
from semantic_registry.criteria.dedup import (
    GenericDuplicateFilter,
    filter_generic_duplicate_criteria,
)
from semantic_registry.criteria.matcher import CriteriaMatcher, criteria_matches

__all__ = [
    "CriteriaMatcher",
    "GenericDuplicateFilter",
    "criteria_matches",
    "decode_criteria",
    "encode_criteria",
    "filter_generic_duplicate_criteria",
]
