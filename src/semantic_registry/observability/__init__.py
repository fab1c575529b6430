"""Observability components: logging and metrics."""

from semantic_registry.observability.logging import bind_context, get_logger, setup_logging
from semantic_registry.observability.metrics import METRICS

__all__ = ["setup_logging", "get_logger", "bind_context", "METRICS"]
