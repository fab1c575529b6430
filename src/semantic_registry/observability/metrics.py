"""Prometheus metrics for the semantic registry."""

from prometheus_client import Counter, Gauge, Histogram


# Metric definitions
class RegistryMetrics:
    """Collection of Prometheus metrics for the registry."""

    def __init__(self) -> None:
        """Initialize metrics."""
        # Counters
        self.selectable_queries_total = Counter(
            "semantic_registry_selectable_queries_total",
            "Total number of device-type selectable queries",
            ["version"],  # 'v1' or 'v2'
        )

        self.selectables_returned_total = Counter(
            "semantic_registry_selectables_returned_total",
            "Total number of device-type selectables returned",
            ["version"],
        )

        self.generic_duplicates_removed_total = Counter(
            "semantic_registry_generic_duplicates_removed_total",
            "Total number of criteria removed as generic duplicates",
        )

        self.unknown_references_total = Counter(
            "semantic_registry_unknown_references_total",
            "Total number of criteria degraded because of unknown references",
            ["kind"],  # 'aspect' or 'function'
        )

        self.invalid_criteria_total = Counter(
            "semantic_registry_invalid_criteria_total",
            "Total number of rejected criteria",
        )

        self.forest_rebuilds_total = Counter(
            "semantic_registry_forest_rebuilds_total",
            "Total number of aspect forest rebuilds",
            ["result"],  # 'success' or 'cycle'
        )

        self.catalog_loads_total = Counter(
            "semantic_registry_catalog_loads_total",
            "Total number of catalog loads",
            ["source_type"],  # 'file' or 'repository'
        )

        # Gauges
        self.aspect_nodes = Gauge(
            "semantic_registry_aspect_nodes",
            "Number of aspect nodes in the active forest",
        )

        # Histograms
        self.query_duration_seconds = Histogram(
            "semantic_registry_query_duration_seconds",
            "Duration of selectable queries",
            ["version"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
        )


# Global metrics instance
METRICS = RegistryMetrics()
