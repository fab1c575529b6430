"""Shared pytest fixtures for semantic registry tests."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from semantic_registry.aspects.forest import AspectForest
from semantic_registry.catalog.loader import load_file
from semantic_registry.catalog.store import InMemoryCatalog
from semantic_registry.domain.models import AspectNode
from semantic_registry.observability.logging import PACKAGE_LOGGER
from semantic_registry.registry import SemanticRegistry
from semantic_registry.selection.flatten import FunctionClassifier

# Test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers.

    Note: Markers are also defined in pyproject.toml [tool.pytest.ini_options].
    This function ensures they're registered even when running pytest directly.
    """
    config.addinivalue_line("markers", "slow: multi-threaded or slow-running tests")


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return FIXTURES_DIR


@pytest.fixture(scope="session")
def catalog_path() -> Path:
    """Return the path of the YAML test catalog."""
    return FIXTURES_DIR / "catalog.yaml"


@pytest.fixture
def catalog(catalog_path: Path) -> InMemoryCatalog:
    """Load a fresh copy of the test catalog."""
    return load_file(catalog_path)


@pytest.fixture
def chain_forest() -> AspectForest:
    """Forest root -> mid -> leaf with a sibling leaf under mid."""
    return AspectForest(
        [
            AspectNode(id="root", name="Root"),
            AspectNode(id="mid", name="Mid", parent_id="root"),
            AspectNode(id="leaf", name="Leaf", parent_id="mid"),
            AspectNode(id="leaf-b", name="Leaf B", parent_id="mid"),
        ]
    )


@pytest.fixture
def catalog_forest(catalog: InMemoryCatalog) -> AspectForest:
    """Aspect forest of the test catalog."""
    return AspectForest(catalog.load_all_aspect_nodes())


@pytest.fixture
def classifier(catalog: InMemoryCatalog) -> FunctionClassifier:
    """Function classifier over the test catalog."""
    return FunctionClassifier({f.id: f for f in catalog.load_all_functions()})


@pytest.fixture
def registry(catalog: InMemoryCatalog) -> SemanticRegistry:
    """Registry over the test catalog."""
    return SemanticRegistry(catalog)


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Undo setup_logging after the test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == "semantic-registry":
            root.removeHandler(handler)
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
