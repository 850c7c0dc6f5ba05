"""
porter.core - Foundation Layer
================================

The building blocks every other porter module depends on:

    - config:      Host configuration (PorterConfig, WarehouseReference, ...)
    - enums:       ModuleFormat, Environment, CacheStrategy, CargoLoadState
    - models:      Inventory, CargoDescriptor, LoadOptions, LoadedCargo, RetryPolicy
    - exceptions:  The PorterError hierarchy
    - urls:        URL resolution and cache-key helpers
    - versioning:  Semantic version range checks
    - logging:     structlog configuration helper

Dependency Rule:
    core/ depends on NOTHING else in the porter package.
"""

from porter.core.config import (
    CacheConfig,
    LoadingConfig,
    PorterConfig,
    WarehouseReference,
    load_config,
)
from porter.core.enums import CacheStrategy, CargoLoadState, Environment, ModuleFormat
from porter.core.exceptions import (
    CacheError,
    CargoNotFoundError,
    ConfigurationError,
    LoadTimeoutError,
    NetworkError,
    PorterError,
    SandboxRevokedError,
    SandboxViolationError,
    ValidationError,
    VersionMismatchError,
)
from porter.core.models import (
    CargoDescriptor,
    Inventory,
    LoadedCargo,
    LoadOptions,
    RetryPolicy,
    WarehouseInfo,
)

__all__ = [
    # Config
    "PorterConfig",
    "WarehouseReference",
    "CacheConfig",
    "LoadingConfig",
    "load_config",
    # Enums
    "ModuleFormat",
    "Environment",
    "CacheStrategy",
    "CargoLoadState",
    # Models
    "WarehouseInfo",
    "CargoDescriptor",
    "Inventory",
    "RetryPolicy",
    "LoadOptions",
    "LoadedCargo",
    # Exceptions
    "PorterError",
    "ConfigurationError",
    "ValidationError",
    "VersionMismatchError",
    "CargoNotFoundError",
    "NetworkError",
    "LoadTimeoutError",
    "CacheError",
    "SandboxRevokedError",
    "SandboxViolationError",
]
