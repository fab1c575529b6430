"""Aspect hierarchy: the forest of aspect nodes and its closures."""

from semantic_registry.aspects.forest import AspectForest, AspectForestSnapshot

__all__ = ["AspectForest", "AspectForestSnapshot"]
