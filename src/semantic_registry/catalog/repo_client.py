"""REST client for a remote device repository."""

import logging
from typing import Any

import httpx

from semantic_registry.catalog.store import InMemoryCatalog
from semantic_registry.config import RepositoryConfig
from semantic_registry.domain.errors import SemanticRegistryError
from semantic_registry.domain.models import AspectNode, DeviceType, Function
from semantic_registry.observability.metrics import METRICS

logger = logging.getLogger(__name__)


class RepositoryClientError(SemanticRegistryError):
    """Raised when device repository operations fail."""

    pass


class RepositoryClient:
    """Client fetching catalog entities from a device repository."""

    def __init__(self, config: RepositoryConfig, transport: httpx.BaseTransport | None = None):
        """Initialize the repository client.

        Args:
            config: Repository client configuration.
            transport: Optional transport override, e.g. ``httpx.MockTransport``.
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")

        headers: dict[str, str] = {"Accept": "application/json"}
        if config.auth_token:
            headers["Authorization"] = f"Bearer {config.auth_token.get_secret_value()}"

        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "RepositoryClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _get_list(self, path: str, what: str) -> list[dict[str, Any]]:
        try:
            response = self._client.get(path)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise RepositoryClientError(f"Failed to list {what}: {e}") from e
        except ValueError as e:
            raise RepositoryClientError(f"Invalid JSON while listing {what}: {e}") from e
        # Handle paged response format
        if isinstance(data, dict) and "result" in data:
            data = data["result"]
        if not isinstance(data, list):
            raise RepositoryClientError(f"Unexpected response while listing {what}")
        return data

    def list_aspect_nodes(self) -> list[AspectNode]:
        """List all aspect nodes.

        Raises:
            RepositoryClientError: If the request fails.
        """
        return [AspectNode.from_dict(n) for n in self._get_list("/aspect-nodes", "aspect nodes")]

    def list_functions(self) -> list[Function]:
        """List all functions.

        Raises:
            RepositoryClientError: If the request fails.
        """
        return [Function.from_dict(f) for f in self._get_list("/functions", "functions")]

    def list_device_types(self) -> list[DeviceType]:
        """List all device types visible to the configured token.

        Raises:
            RepositoryClientError: If the request fails or an entry is malformed.
        """
        result = []
        for data in self._get_list("/device-types", "device types"):
            try:
                result.append(DeviceType.from_dict(data))
            except (KeyError, ValueError) as e:
                raise RepositoryClientError(f"Invalid device type {data.get('id')}: {e}") from e
        return result

    def fetch_all(self) -> InMemoryCatalog:
        """Fetch a full catalog snapshot from the repository.

        Raises:
            RepositoryClientError: If fetching fails.
        """
        catalog = InMemoryCatalog(
            aspect_nodes=self.list_aspect_nodes(),
            functions=self.list_functions(),
            device_types=self.list_device_types(),
        )
        METRICS.catalog_loads_total.labels(source_type="repository").inc()
        logger.info("Fetched from repository %s: %r", self.base_url, catalog)
        return catalog
