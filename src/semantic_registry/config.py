"""Configuration models for the semantic registry."""

from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from semantic_registry.domain.models import CONTROLLING_FUNCTION_PREFIX


class RepositoryConfig(BaseModel):
    """Device repository REST API client configuration."""

    base_url: str = "http://localhost:8080"
    timeout_seconds: float = 30.0
    auth_token: SecretStr | None = None


class CatalogConfig(BaseModel):
    """Where the aspect, function and device-type catalog comes from."""

    source: Literal["file", "repository"] = "file"
    """Load from a local catalog document or from a remote repository."""

    path: Path | None = None
    """Catalog document (YAML or JSON) for ``source: file``."""

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    """Client settings for ``source: repository``."""

    @model_validator(mode="after")
    def require_path_for_file_source(self) -> Self:
        """A file catalog needs a path."""
        if self.source == "file" and self.path is None:
            raise ValueError("catalog.path is required when catalog.source is 'file'")
        return self


class SelectionConfig(BaseModel):
    """Selectable query behaviour."""

    controlling_function_prefix: str = CONTROLLING_FUNCTION_PREFIX
    """Id prefix classifying functions missing from the catalog as controlling."""

    filter_generic_duplicates: bool = True
    """Remove generic duplicate criteria before matching."""

    default_path_prefix: str = ""
    """Path prefix used when a query does not name one."""


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


class RegistryConfig(BaseModel):
    """Root configuration for the semantic registry."""

    catalog: CatalogConfig = Field(default_factory=lambda: CatalogConfig(path=Path("catalog.yaml")))
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "RegistryConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})


class RegistrySettings(BaseSettings):
    """Environment-based settings that override config file values."""

    model_config = SettingsConfigDict(
        env_prefix="SEMANTIC_REGISTRY_",
        env_nested_delimiter="__",
    )

    config_file: Path = Path("config/registry.yaml")


def load_config(settings: RegistrySettings | None = None) -> RegistryConfig:
    """Load configuration from file, with environment overrides."""
    if settings is None:
        settings = RegistrySettings()

    if settings.config_file.exists():
        return RegistryConfig.from_yaml(settings.config_file)
    return RegistryConfig()
