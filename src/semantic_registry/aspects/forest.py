"""In-memory aspect forest with ancestor and descendant closures.

Nodes are kept in an id-indexed map with parent pointers and a child index
built once per snapshot. Closures are computed on first use and cached inside
the snapshot. A rebuild never touches an existing snapshot: it builds a new one
and swaps the reference, so concurrent readers see either the old or the new
forest in full.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterable

from semantic_registry.domain.errors import CycleDetected, UnknownReference
from semantic_registry.domain.models import Aspect, AspectNode
from semantic_registry.observability.metrics import METRICS

logger = logging.getLogger(__name__)


class AspectForestSnapshot:
    """Immutable view of one version of the aspect catalog.

    Thread-safe: the node and child indexes are never mutated after
    construction; the closure caches are filled under a lock and only ever
    grow.
    """

    def __init__(self, nodes: Iterable[AspectNode]):
        """Index the given nodes.

        Args:
            nodes: Stored aspect nodes. Only ``id``, ``name`` and
                ``parent_id`` are used; derived fields are recomputed.
        """
        self._nodes: dict[str, AspectNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                logger.warning("Duplicate aspect node id %s, keeping the last one", node.id)
            self._nodes[node.id] = node

        children: dict[str, list[str]] = {}
        for node in self._nodes.values():
            if node.parent_id:
                children.setdefault(node.parent_id, []).append(node.id)
        self._children: dict[str, tuple[str, ...]] = {
            parent: tuple(sorted(ids)) for parent, ids in children.items()
        }

        self._lock = threading.Lock()
        self._ancestors: dict[str, tuple[str, ...]] = {}
        self._descendants: dict[str, frozenset[str]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, aspect_id: object) -> bool:
        return aspect_id in self._nodes

    @property
    def ids(self) -> list[str]:
        """All node ids, sorted."""
        return sorted(self._nodes)

    @property
    def root_ids(self) -> list[str]:
        """Ids of all roots, sorted. Nodes with a missing parent count as roots."""
        return sorted(n.id for n in self._nodes.values() if n.parent_id not in self._nodes)

    def _require(self, aspect_id: str) -> AspectNode:
        node = self._nodes.get(aspect_id)
        if node is None:
            raise UnknownReference("aspect", aspect_id)
        return node

    def ancestor_ids(self, aspect_id: str) -> tuple[str, ...]:
        """Ancestor ids ordered from the immediate parent to the root.

        Raises:
            UnknownReference: If the id is not in the forest.
            CycleDetected: If the parent walk exceeds the node count.
        """
        cached = self._ancestors.get(aspect_id)
        if cached is not None:
            return cached

        node = self._require(aspect_id)
        result: list[str] = []
        limit = len(self._nodes)
        parent_id = node.parent_id
        while parent_id:
            if len(result) >= limit:
                raise CycleDetected(aspect_id, len(result))
            result.append(parent_id)
            parent = self._nodes.get(parent_id)
            if parent is None:
                # dangling parent reference: treat the missing node as the root
                logger.warning(
                    "Aspect node %s references unknown parent %s", aspect_id, parent_id
                )
                break
            parent_id = parent.parent_id

        ancestors = tuple(result)
        with self._lock:
            self._ancestors[aspect_id] = ancestors
        return ancestors

    def descendant_ids(self, aspect_id: str) -> frozenset[str]:
        """Ids of all nodes below the given node, on every level.

        Raises:
            UnknownReference: If the id is not in the forest.
        """
        cached = self._descendants.get(aspect_id)
        if cached is not None:
            return cached

        self._require(aspect_id)
        seen: set[str] = set()
        queue = deque(self._children.get(aspect_id, ()))
        while queue:
            current = queue.popleft()
            if current in seen or current == aspect_id:
                continue
            seen.add(current)
            queue.extend(self._children.get(current, ()))

        descendants = frozenset(seen)
        with self._lock:
            self._descendants[aspect_id] = descendants
        return descendants

    def get(self, aspect_id: str) -> AspectNode | None:
        """Return the node with all derived fields, or None if unknown."""
        if aspect_id not in self._nodes:
            return None
        return self.node(aspect_id)

    def node(self, aspect_id: str) -> AspectNode:
        """Return the node with its derived fields filled in.

        Raises:
            UnknownReference: If the id is not in the forest.
            CycleDetected: If the node sits on a parent cycle.
        """
        stored = self._require(aspect_id)
        ancestors = self.ancestor_ids(aspect_id)
        existing = [a for a in ancestors if a in self._nodes]
        return AspectNode(
            id=stored.id,
            name=stored.name,
            parent_id=stored.parent_id,
            child_ids=self._children.get(aspect_id, ()),
            root_id=existing[-1] if existing else stored.id,
            ancestor_ids=ancestors,
            descendant_ids=tuple(sorted(self.descendant_ids(aspect_id))),
        )

    def ancestors(self, aspect_id: str) -> list[AspectNode]:
        """Ancestor nodes from the immediate parent to the root."""
        return [self.node(a) for a in self.ancestor_ids(aspect_id) if a in self._nodes]

    def descendants(self, aspect_id: str) -> list[AspectNode]:
        """Descendant nodes, sorted by id."""
        return [self.node(d) for d in sorted(self.descendant_ids(aspect_id))]

    def root(self, aspect_id: str) -> AspectNode:
        """Topmost ancestor of a node (the node itself for roots)."""
        return self.node(self.node(aspect_id).root_id)

    def is_ancestor(self, candidate_id: str, aspect_id: str) -> bool:
        """True if ``candidate_id`` is a strict ancestor of ``aspect_id``.

        Unknown ids are never ancestors of anything.
        """
        if aspect_id not in self._nodes:
            return False
        return candidate_id in self.ancestor_ids(aspect_id)

    def is_descendant(self, candidate_id: str, aspect_id: str) -> bool:
        """True if ``candidate_id`` is a strict descendant of ``aspect_id``."""
        if aspect_id not in self._nodes:
            return False
        return candidate_id in self.descendant_ids(aspect_id)

    def nodes(self) -> list[AspectNode]:
        """All nodes with derived fields, sorted by id."""
        return [self.node(aspect_id) for aspect_id in self.ids]

    def subtree(self, aspect_id: str) -> Aspect:
        """Rebuild the authoring tree below a node."""
        stored = self._require(aspect_id)
        return Aspect(
            id=stored.id,
            name=stored.name,
            sub_aspects=tuple(self.subtree(c) for c in self._children.get(aspect_id, ())),
        )

    def validate(self) -> None:
        """Walk every node's ancestors once.

        Raises:
            CycleDetected: If any node sits on a parent cycle.
        """
        for aspect_id in self._nodes:
            self.ancestor_ids(aspect_id)


class AspectForest:
    """Holder of the current forest snapshot.

    Queries delegate to the active snapshot. :meth:`rebuild` replaces it as a
    whole; callers that need several consistent reads should take
    :attr:`snapshot` once and query it directly.
    """

    def __init__(self, nodes: Iterable[AspectNode] = ()):
        """Initialize the forest.

        Args:
            nodes: Initial stored aspect nodes.

        Raises:
            CycleDetected: If the initial nodes contain a parent cycle.
        """
        self._rebuild_lock = threading.Lock()
        self._snapshot = AspectForestSnapshot(())
        self.rebuild(nodes)

    @classmethod
    def from_aspects(cls, aspects: Iterable[Aspect]) -> AspectForest:
        """Build a forest from root aspect trees."""
        nodes: list[AspectNode] = []
        for aspect in aspects:
            nodes.extend(aspect.iter_nodes())
        return cls(nodes)

    @property
    def snapshot(self) -> AspectForestSnapshot:
        """The currently active snapshot."""
        return self._snapshot

    def rebuild(self, nodes: Iterable[AspectNode]) -> AspectForestSnapshot:
        """Replace the forest with a freshly built snapshot.

        The new snapshot is fully validated before it becomes visible; on
        failure the previous snapshot stays active.

        Raises:
            CycleDetected: If the nodes contain a parent cycle.
        """
        start = time.perf_counter()
        candidate = AspectForestSnapshot(nodes)
        try:
            candidate.validate()
        except CycleDetected:
            METRICS.forest_rebuilds_total.labels(result="cycle").inc()
            raise

        with self._rebuild_lock:
            self._snapshot = candidate

        METRICS.forest_rebuilds_total.labels(result="success").inc()
        METRICS.aspect_nodes.set(len(candidate))
        logger.info(
            "Aspect forest rebuilt: %d nodes, %d roots in %.3fs",
            len(candidate),
            len(candidate.root_ids),
            time.perf_counter() - start,
        )
        return candidate

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, aspect_id: object) -> bool:
        return aspect_id in self._snapshot

    def get(self, aspect_id: str) -> AspectNode | None:
        """Return the node with derived fields, or None if unknown."""
        return self._snapshot.get(aspect_id)

    def ancestors(self, aspect_id: str) -> list[AspectNode]:
        """Ancestor nodes from the immediate parent to the root."""
        return self._snapshot.ancestors(aspect_id)

    def descendants(self, aspect_id: str) -> list[AspectNode]:
        """Descendant nodes, sorted by id."""
        return self._snapshot.descendants(aspect_id)

    def root(self, aspect_id: str) -> AspectNode:
        """Topmost ancestor of a node."""
        return self._snapshot.root(aspect_id)

    def nodes(self) -> list[AspectNode]:
        """All nodes with derived fields, sorted by id."""
        return self._snapshot.nodes()
