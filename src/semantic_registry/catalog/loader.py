"""Catalog document loaders for YAML and JSON files."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from semantic_registry.catalog.store import InMemoryCatalog
from semantic_registry.domain.errors import SemanticRegistryError
from semantic_registry.observability.metrics import METRICS

logger = logging.getLogger(__name__)


class CatalogLoadError(SemanticRegistryError):
    """Raised when a catalog document cannot be loaded."""

    pass


def _build(data: Any, path: Path) -> InMemoryCatalog:
    if not isinstance(data, dict):
        raise CatalogLoadError(f"Unexpected catalog structure in {path}")
    try:
        catalog = InMemoryCatalog.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogLoadError(f"Invalid catalog entry in {path}: {e}") from e
    METRICS.catalog_loads_total.labels(source_type="file").inc()
    logger.info("Loaded catalog: %s (%r)", path.name, catalog)
    return catalog


def load_yaml(path: Path) -> InMemoryCatalog:
    """Load a YAML catalog document.

    Args:
        path: Path to the .yaml/.yml file.

    Returns:
        Catalog holding all aspects, functions and device types of the file.

    Raises:
        CatalogLoadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise CatalogLoadError(f"Catalog file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise CatalogLoadError(f"Failed to read {path}: {e}") from e
    return _build(data or {}, path)


def load_json(path: Path) -> InMemoryCatalog:
    """Load a JSON catalog document.

    Raises:
        CatalogLoadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise CatalogLoadError(f"Catalog file not found: {path}")

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise CatalogLoadError(f"Failed to read {path}: {e}") from e
    return _build(data, path)


def load_file(path: Path) -> InMemoryCatalog:
    """Load a catalog document (YAML or JSON) based on extension.

    Raises:
        CatalogLoadError: If the file type is unknown or loading fails.
    """
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml(path)
    elif suffix == ".json":
        return load_json(path)
    else:
        raise CatalogLoadError(f"Unknown file type: {suffix}")
