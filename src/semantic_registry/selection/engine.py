"""Selectable query engine.

Answers "which device types and services can serve this semantic query" for a
list of filter criteria. Every query is stateless: it pins the current aspect
forest snapshot, flattens the candidate device types, matches each service row
against each criterion and assembles the matches into results.

Two inclusion modes exist:

* v1 (any-match): a device type is selectable if at least one of its service
  rows matches at least one criterion. Services can be restricted by an
  interaction allow-list.
* v2: like v1, but with ``services_must_match_all_criteria`` a service only
  keeps its path options if every criterion is satisfied by a distinct
  content variable of that service.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from semantic_registry.aspects.forest import AspectForest, AspectForestSnapshot
from semantic_registry.criteria.codec import encode_criteria
from semantic_registry.criteria.dedup import filter_generic_duplicate_criteria
from semantic_registry.criteria.matcher import CriteriaMatcher
from semantic_registry.domain.criteria import FilterCriteria, Interaction
from semantic_registry.domain.errors import InvalidCriteria
from semantic_registry.domain.models import DeviceType, ServiceTuple
from semantic_registry.observability.metrics import METRICS
from semantic_registry.selection.flatten import (
    FunctionClassifier,
    expand_candidates,
    flatten_device_type,
)
from semantic_registry.selection.models import (
    Configurable,
    DeviceTypeSelectable,
    ServicePathOption,
)

logger = logging.getLogger(__name__)

RowKey = tuple[bool, str]
"""Identifies a content variable within a service: (is_input, path)."""


@dataclass(frozen=True, slots=True)
class PreparedCriteria:
    """A query criterion after validation and reference resolution."""

    criteria: FilterCriteria
    short: str
    live: bool
    """False if the criterion references unknown catalog entries and can never match."""


def parse_interactions_filter(values: Iterable[str | Interaction]) -> frozenset[Interaction]:
    """Parse an interaction allow-list.

    Naming ``event`` or ``request`` also admits ``event+request``.

    Raises:
        InvalidCriteria: If a value names no known interaction.
    """
    result: set[Interaction] = set()
    for value in values:
        try:
            parsed = Interaction.parse(value)
        except ValueError as e:
            raise InvalidCriteria(value, str(e)) from e
        if parsed is not None:
            result.add(parsed)
    if Interaction.EVENT in result or Interaction.REQUEST in result:
        result.add(Interaction.EVENT_AND_REQUEST)
    return frozenset(result)


def _assign_distinct_paths(paths_per_criteria: list[set[RowKey]]) -> bool:
    """Check whether every criterion can be given its own content path.

    Inputs and outputs with the same path are different content variables.
    Bipartite matching by augmenting paths; criteria lists are small.
    """
    owner: dict[RowKey, int] = {}

    def augment(index: int, visited: set[RowKey]) -> bool:
        for path in sorted(paths_per_criteria[index]):
            if path in visited:
                continue
            visited.add(path)
            if path not in owner or augment(owner[path], visited):
                owner[path] = index
                return True
        return False

    return all(augment(i, set()) for i in range(len(paths_per_criteria)))


class SelectableQueryEngine:
    """Matches criteria against device types using the aspect forest."""

    def __init__(
        self,
        forest: AspectForest,
        classifier: FunctionClassifier | None = None,
        filter_generic_duplicates: bool = True,
    ):
        """Initialize the engine.

        Args:
            forest: Aspect forest used for hierarchical aspect matching.
            classifier: Function catalog used to classify and resolve functions.
            filter_generic_duplicates: Remove generic duplicate criteria
                before matching.
        """
        self.forest = forest
        self.classifier = classifier or FunctionClassifier()
        self.filter_generic_duplicates = filter_generic_duplicates

    def prepare_criteria(
        self, criteria: list[FilterCriteria], snapshot: AspectForestSnapshot
    ) -> list[PreparedCriteria]:
        """Validate, deduplicate and resolve a criteria list.

        An empty list stands for one unconstrained criterion.

        Raises:
            InvalidCriteria: For malformed or contradictory criteria.
        """
        if not criteria:
            criteria = [FilterCriteria()]

        for c in criteria:
            try:
                c.validate()
                if (
                    c.aspect_id
                    and c.function_id
                    and self.classifier.is_known(c.function_id)
                    and self.classifier.is_controlling(c.function_id)
                ):
                    raise InvalidCriteria(
                        c, "aspects can not be combined with controlling functions"
                    )
            except InvalidCriteria:
                METRICS.invalid_criteria_total.inc()
                raise

        if self.filter_generic_duplicates:
            criteria = filter_generic_duplicate_criteria(criteria, snapshot)

        prepared = []
        for c in criteria:
            live = True
            if c.function_id and not self.classifier.is_known(c.function_id):
                logger.warning(
                    "Unknown function %s in criteria, criterion never matches", c.function_id
                )
                METRICS.unknown_references_total.labels(kind="function").inc()
                live = False
            if c.aspect_id and c.aspect_id not in snapshot:
                logger.warning(
                    "Unknown aspect %s in criteria, criterion never matches", c.aspect_id
                )
                METRICS.unknown_references_total.labels(kind="aspect").inc()
                live = False
            prepared.append(PreparedCriteria(criteria=c, short=encode_criteria(c), live=live))
        return prepared

    def query(
        self,
        device_types: list[DeviceType],
        criteria: list[FilterCriteria],
        path_prefix: str = "",
        interactions_filter: Iterable[str | Interaction] = (),
        include_modified: bool = False,
        include_device_type: bool = False,
    ) -> list[DeviceTypeSelectable]:
        """Run a v1 (any-match) selectable query.

        Args:
            device_types: Candidate device types visible to the caller.
            criteria: Query criteria.
            path_prefix: Prefix prepended to every path option.
            interactions_filter: Allowed service interactions; empty allows all.
            include_modified: Also consider service-group variants.
            include_device_type: Attach the full device type to each result.

        Raises:
            InvalidCriteria: For malformed criteria or interaction values.
        """
        allowed = parse_interactions_filter(interactions_filter)
        return self._run(
            "v1",
            device_types,
            criteria,
            path_prefix,
            allowed,
            include_modified,
            must_match_all=False,
            include_device_type=include_device_type,
        )

    def query_v2(
        self,
        device_types: list[DeviceType],
        criteria: list[FilterCriteria],
        path_prefix: str = "",
        include_modified: bool = False,
        services_must_match_all_criteria: bool = False,
        include_device_type: bool = False,
    ) -> list[DeviceTypeSelectable]:
        """Run a v2 selectable query.

        Args:
            device_types: Candidate device types visible to the caller.
            criteria: Query criteria.
            path_prefix: Prefix prepended to every path option.
            include_modified: Also consider service-group variants.
            services_must_match_all_criteria: Only keep services whose paths
                satisfy every criterion, each with a distinct path.
            include_device_type: Attach the full device type to each result.

        Raises:
            InvalidCriteria: For malformed criteria.
        """
        return self._run(
            "v2",
            device_types,
            criteria,
            path_prefix,
            frozenset(),
            include_modified,
            must_match_all=services_must_match_all_criteria,
            include_device_type=include_device_type,
        )

    def _run(
        self,
        version: str,
        device_types: list[DeviceType],
        criteria: list[FilterCriteria],
        path_prefix: str,
        allowed_interactions: frozenset[Interaction],
        include_modified: bool,
        must_match_all: bool,
        include_device_type: bool,
    ) -> list[DeviceTypeSelectable]:
        start = time.perf_counter()
        METRICS.selectable_queries_total.labels(version=version).inc()

        snapshot = self.forest.snapshot
        prepared = self.prepare_criteria(criteria, snapshot)

        result = []
        for device_type in expand_candidates(device_types, include_modified):
            selectable = self._select(
                device_type,
                prepared,
                snapshot,
                path_prefix,
                allowed_interactions,
                must_match_all,
            )
            if selectable is None:
                continue
            if include_device_type:
                selectable.device_type = device_type
            result.append(selectable)

        result.sort(key=lambda s: s.device_type_id)

        METRICS.selectables_returned_total.labels(version=version).inc(len(result))
        METRICS.query_duration_seconds.labels(version=version).observe(
            time.perf_counter() - start
        )
        logger.debug(
            "%s selectable query: %d criteria, %d candidates, %d results",
            version,
            len(prepared),
            len(device_types),
            len(result),
        )
        return result

    def _select(
        self,
        device_type: DeviceType,
        prepared: list[PreparedCriteria],
        snapshot: AspectForestSnapshot,
        path_prefix: str,
        allowed_interactions: frozenset[Interaction],
        must_match_all: bool,
    ) -> DeviceTypeSelectable | None:
        matcher = CriteriaMatcher(snapshot)
        rows = flatten_device_type(device_type, self.classifier)
        if allowed_interactions:
            rows = [r for r in rows if r.interaction in allowed_interactions]

        # service id -> (is_input, path) -> (matching row, indices of matched criteria)
        matches: dict[str, dict[RowKey, tuple[ServiceTuple, list[int]]]] = defaultdict(dict)
        for row in rows:
            for index, p in enumerate(prepared):
                if not p.live:
                    continue
                if not matcher.matches(p.criteria, row, expand_descendants=True):
                    continue
                entry = matches[row.service_id].setdefault((row.is_input, row.path), (row, []))
                if index not in entry[1]:
                    entry[1].append(index)

        if not matches:
            return None

        selectable = DeviceTypeSelectable(device_type_id=device_type.id)
        for service in device_type.services:
            service_matches = matches.get(service.id)
            if not service_matches:
                continue
            if must_match_all and not self._satisfies_all(service_matches, prepared):
                continue
            service_rows = [r for r in rows if r.service_id == service.id]
            options = [
                self._path_option(
                    row,
                    [prepared[i].short for i in indices],
                    service_rows,
                    snapshot,
                    path_prefix,
                )
                for row, indices in service_matches.values()
            ]
            options.sort(key=lambda o: o.path)
            selectable.services.append(service)
            selectable.service_path_options[service.id] = options
        return selectable

    @staticmethod
    def _satisfies_all(
        service_matches: dict[RowKey, tuple[ServiceTuple, list[int]]],
        prepared: list[PreparedCriteria],
    ) -> bool:
        paths_per_criteria: list[set[RowKey]] = [set() for _ in prepared]
        for key, (_, indices) in service_matches.items():
            for index in indices:
                paths_per_criteria[index].add(key)
        if any(not paths for paths in paths_per_criteria):
            return False
        return _assign_distinct_paths(paths_per_criteria)

    def _path_option(
        self,
        row: ServiceTuple,
        matched: list[str],
        service_rows: list[ServiceTuple],
        snapshot: AspectForestSnapshot,
        path_prefix: str,
    ) -> ServicePathOption:
        return ServicePathOption(
            service_id=row.service_id,
            path=path_prefix + row.path,
            interaction=row.interaction,
            function_id=row.function_id,
            characteristic_id=row.characteristic_id,
            aspect_node=snapshot.get(row.aspect_id) if row.aspect_id else None,
            is_void=row.is_void,
            value=row.value,
            type=row.type,
            is_controlling_function=row.is_controlling_function,
            configurables=self._configurables(row, service_rows, snapshot),
            matched_criteria=tuple(matched),
        )

    @staticmethod
    def _configurables(
        row: ServiceTuple,
        service_rows: list[ServiceTuple],
        snapshot: AspectForestSnapshot,
    ) -> tuple[Configurable, ...]:
        """Input leaves a caller may set next to the selected path.

        For controlling functions the controlled path itself and everything
        below it are excluded. Paths are relative to the service content and
        never carry the query path prefix.
        """
        result = []
        for candidate in service_rows:
            if not (candidate.is_input and candidate.is_leaf) or candidate.is_void:
                continue
            if row.is_controlling_function and (
                candidate.path == row.path or candidate.path.startswith(row.path + ".")
            ):
                continue
            result.append(
                Configurable(
                    path=candidate.path,
                    characteristic_id=candidate.characteristic_id,
                    aspect_node=snapshot.get(candidate.aspect_id) if candidate.aspect_id else None,
                    function_id=candidate.function_id,
                    value=candidate.value,
                    type=candidate.type,
                )
            )
        return tuple(result)
