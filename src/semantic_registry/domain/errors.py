"""Error types raised by the semantic registry."""


class SemanticRegistryError(Exception):
    """Base class for all registry errors."""

    pass


class InvalidCriteria(SemanticRegistryError):
    """Raised when a filter criterion is malformed or contradictory.

    Reported to the caller as a client-input error, never retried.
    """

    def __init__(self, criteria: object, reason: str):
        self.criteria = criteria
        self.reason = reason
        super().__init__(f"Invalid criteria {criteria!r}: {reason}")


class UnknownReference(SemanticRegistryError):
    """Raised when an id is not present in the loaded catalog."""

    def __init__(self, kind: str, reference_id: str):
        self.kind = kind
        self.reference_id = reference_id
        super().__init__(f"Unknown {kind}: {reference_id}")


class CycleDetected(SemanticRegistryError):
    """Raised when the aspect parent relation contains a cycle."""

    def __init__(self, node_id: str, walked: int):
        self.node_id = node_id
        self.walked = walked
        super().__init__(
            f"Cycle detected in aspect hierarchy at '{node_id}' after {walked} parent hops"
        )
