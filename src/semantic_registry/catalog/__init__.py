"""Catalog access: storage interface, file loader and repository client."""

from semantic_registry.catalog.loader import CatalogLoadError, load_file
from semantic_registry.catalog.repo_client import RepositoryClient, RepositoryClientError
from semantic_registry.catalog.store import CatalogStore, DeviceTypeQuery, InMemoryCatalog

__all__ = [
    "CatalogLoadError",
    "CatalogStore",
    "DeviceTypeQuery",
    "InMemoryCatalog",
    "RepositoryClient",
    "RepositoryClientError",
    "load_file",
]
