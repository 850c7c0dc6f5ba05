"""
porter.core.config - Configuration Management
===============================================

Configuration can be loaded from multiple sources with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with PORTER_)
    3. YAML configuration file (porter.yaml)
    4. Default values defined in the models below

Architecture Context:
    Configuration flows DOWN through the system. The top-level PorterConfig
    is created once at the composition root and handed to the Navigator:

        PorterConfig
            ├── warehouses: {name → WarehouseReference}  → ManifestResolver
            ├── CacheConfig                              → create_cache()
            └── LoadingConfig                            → loaders, retry()

Usage:
    # Load from environment variables:
    config = PorterConfig()

    # Load from YAML file:
    config = load_config("porter.yaml")

    # Explicit overrides:
    config = PorterConfig(
        warehouses={"ui-kit": WarehouseReference(url="http://localhost:3001/")},
        cache=CacheConfig(strategy="none"),
    )

Environment Variables:
    PORTER_LOG_LEVEL=DEBUG
    PORTER_CACHE__STRATEGY=persistent
    PORTER_CACHE__PATH=/var/cache/porter.sqlite3
    PORTER_LOADING__TIMEOUT=10
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from porter.core.enums import CacheStrategy
from porter.core.exceptions import ConfigurationError
from porter.core.models import RetryPolicy


DEFAULT_CONFIG_FILE = "porter.yaml"

# Modules bundle code may reach through require() or an import statement
# inside the sandbox. Nothing here grants filesystem, process or network
# access, and none hands out attribute access by string name.
DEFAULT_ALLOWED_MODULES = [
    "math",
    "json",
    "re",
    "datetime",
    "decimal",
    "fractions",
    "functools",
    "itertools",
    "collections",
    "dataclasses",
    "enum",
    "textwrap",
]


# =============================================================================
# Warehouse Reference
# =============================================================================
# One configured remote source. Immutable once the host configuration is
# built; read by the ManifestResolver and the Navigator.
# =============================================================================
class WarehouseReference(BaseModel):
    """A configured warehouse the host may load cargo from.

    Attributes:
        url: Base URL the warehouse is served from. Both the manifest and
            every cargo entry are resolved relative to it.
        version: Accepted version range for the warehouse ("*", "1.2.3",
            "^1.2.0", "~1.2.0", ">=1.0.0", ...).
        alias: Optional second name the host may use for this warehouse.
        name: Published warehouse name, when it differs from the config
            key. The fetched manifest's embedded name must match the config
            key, the alias, or this value.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1, description="Warehouse base URL")
    version: str = Field(default="*", description="Accepted version range")
    alias: Optional[str] = Field(default=None, description="Alternate local name")
    name: Optional[str] = Field(default=None, description="Published warehouse name")


# =============================================================================
# Cache Configuration
# =============================================================================
class CacheConfig(BaseModel):
    """Configuration for the cache subsystem.

    Attributes:
        strategy: Backend tag; see porter.cache.create_cache.
        max_size: Entry bound for the memory backend (insertion-order eviction).
        ttl: Seconds a loaded cargo stays cached. 0 means no expiry.
        inventory_ttl: Seconds a fetched inventory stays fresh. 0 means no expiry.
        path: SQLite file used by the persistent backend.
        prefix: Namespace prefix for persisted keys.
    """

    strategy: CacheStrategy = Field(default=CacheStrategy.MEMORY)
    max_size: int = Field(default=1000, ge=1)
    ttl: float = Field(default=3600.0, ge=0)
    inventory_ttl: float = Field(default=3600.0, ge=0)
    path: str = Field(default=".porter-cache.sqlite3")
    prefix: str = Field(default="porter:")


# =============================================================================
# Loading Configuration
# =============================================================================
class LoadingConfig(BaseModel):
    """Default loading policy, overridable per call through LoadOptions.

    Attributes:
        timeout: Per-attempt deadline in seconds.
        overall_timeout: Deadline for a whole load_cargo() attempt sequence.
        retry: Default retry schedule for transport failures.
        environment: Loader strategy; "auto" probes the interpreter once.
        manifest_filename: Well-known manifest file under each warehouse URL.
        allowed_modules: Modules sandboxed bundles may import or require().
    """

    timeout: float = Field(default=30.0, gt=0)
    overall_timeout: float = Field(default=120.0, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    environment: Literal["auto", "ui", "headless"] = Field(default="auto")
    manifest_filename: str = Field(default="porter.inventory.json", min_length=1)
    allowed_modules: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MODULES)
    )


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   PORTER_LOG_LEVEL          → config.log_level
#   PORTER_CACHE__STRATEGY    → config.cache.strategy
#   PORTER_LOADING__TIMEOUT   → config.loading.timeout
# =============================================================================
class PorterConfig(BaseSettings):
    """Top-level host configuration consumed by the Navigator.

    Attributes:
        log_level: Logging level passed to configure_logging().
        warehouses: Warehouse name → WarehouseReference.
        cache: Cache subsystem configuration.
        loading: Default loading policy.

    Example:
        >>> config = PorterConfig(
        ...     warehouses={"ui-kit": {"url": "http://localhost:3001/"}},
        ...     log_level="DEBUG",
        ... )
    """

    log_level: str = Field(default="INFO")
    warehouses: dict[str, WarehouseReference] = Field(default_factory=dict)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    loading: LoadingConfig = Field(default_factory=LoadingConfig)

    model_config = {
        "env_prefix": "PORTER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    def find_warehouse(self, name: str) -> Optional[tuple[str, WarehouseReference]]:
        """Look a warehouse up by its config key or its alias.

        Returns:
            ``(config_key, reference)`` or None when nothing matches.
        """
        reference = self.warehouses.get(name)
        if reference is not None:
            return name, reference
        for key, candidate in self.warehouses.items():
            if candidate.alias == name:
                return key, candidate
        return None


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> PorterConfig:
    """Load porter configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'porter.yaml' in the current directory, and falls back to
            pure defaults + environment variables when it is absent.

    Returns:
        A fully validated PorterConfig instance.

    Raises:
        ConfigurationError: If the YAML is malformed or values are invalid.
        FileNotFoundError: If an explicit path is provided but doesn't exist.
    """
    if path is None:
        default_path = Path(DEFAULT_CONFIG_FILE)
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Malformed YAML in {path}: {exc}",
                    error_code="INVALID_CONFIG_FILE",
                    details={"path": str(path)},
                ) from exc
        if raw_data is not None and not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Top level of {path} must be a mapping",
                error_code="INVALID_CONFIG_FILE",
                details={"path": str(path)},
            )
        yaml_data = raw_data or {}

    try:
        return PorterConfig(**yaml_data)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(
            message=f"Invalid porter configuration: {exc.error_count()} error(s)",
            error_code="INVALID_CONFIG",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
