"""
porter.core.models - Core Data Models
=======================================

The Pydantic models that flow through every layer of porter.

Model Hierarchy:
    Inventory          → A warehouse's published catalog (the manifest)
      ├── WarehouseInfo    → Who published it
      └── CargoDescriptor  → One loadable module listed in it
    RetryPolicy        → How often and how patiently to retry a load
    LoadOptions        → Per-call policy supplied by the caller
    LoadedCargo        → The result of a successful load

Data Flow:
    ┌──────────────┐   Inventory    ┌──────────────┐  CargoDescriptor  ┌──────────┐
    │  Manifest     │ ────────────→ │  Navigator    │ ───────────────→ │  Loader   │
    │  Resolver     │               │               │ ←─────────────── │           │
    └──────────────┘               └──────────────┘   module exports  └──────────┘
                                          │
                                          ↓ LoadedCargo
                                       caller

Design Principles:
    1. Manifest models are frozen: an Inventory is replaced wholesale on
       re-fetch, never mutated in place.
    2. Self-validating: a structurally invalid manifest fails at
       Inventory.model_validate() (wrapped into porter's ValidationError
       by the resolver).
    3. Serializable: inventories round-trip through model_dump(mode="json")
       so persistent cache backends can store them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from porter.core.enums import ModuleFormat


def _now() -> datetime:
    """Current UTC timestamp. Every timestamp in porter is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Manifest Models
# =============================================================================
# Mirror the manifest document published at <warehouse-url>/<manifest-file>:
#
#   {
#     "warehouse": {"name", "version", "url", "description"?, "author"?},
#     "cargo": {"<name>": {"name", "version", "entry", "exports"?,
#                          "dependencies", "metadata"}},
#     "dependencies": {...},
#     "timestamp": 1700000000000,
#     "checksum": "..."
#   }
# =============================================================================
class WarehouseInfo(BaseModel):
    """Identity block of an inventory.

    Attributes:
        name: The warehouse's published name. Must correspond to the
            warehouse the host asked for.
        version: Semantic version of the warehouse build.
        url: Base URL the warehouse claims to be served from.
        description: Optional human-readable description.
        author: Optional maintainer.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Published warehouse name")
    version: str = Field(default="0.0.0", description="Warehouse semantic version")
    url: str = Field(default="", description="Base URL declared by the warehouse")
    description: Optional[str] = Field(default=None)
    author: Optional[str] = Field(default=None)


class CargoDescriptor(BaseModel):
    """One loadable module listed in an inventory.

    ``entry`` is always resolved relative to the warehouse base URL (see
    porter.core.urls.module_url). ``format`` is not part of the published
    manifest: the Navigator sets it on a copy at resolution time.

    Attributes:
        name: Cargo name as published.
        version: Cargo semantic version.
        entry: Entry path, relative to the warehouse base URL.
        exports: Optional export names the publisher declares.
        dependencies: The cargo's own dependency map.
        metadata: Free-form publisher metadata. A ``"format"`` key is read
            as the publisher's declared module format.
        format: Negotiated wire format (set at resolution time).

    Example:
        >>> CargoDescriptor(name="./Button", version="1.0.0", entry="Button.mjs")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str = Field(default="0.0.0")
    entry: str = Field(min_length=1)
    exports: Optional[list[str]] = Field(default=None)
    dependencies: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    format: Optional[ModuleFormat] = Field(
        default=None,
        description="Negotiated format; set by the Navigator, never by publishers",
    )

    @property
    def declared_format(self) -> Optional[ModuleFormat]:
        """The format the publisher declared in ``metadata["format"]``, if valid."""
        raw = self.metadata.get("format")
        if not isinstance(raw, str):
            return None
        try:
            return ModuleFormat(raw.lower())
        except ValueError:
            return None


class Inventory(BaseModel):
    """A warehouse's published catalog.

    Attributes:
        warehouse: Identity of the publishing warehouse.
        cargo: Mapping of cargo name → CargoDescriptor.
        dependencies: External dependencies shared across all cargo.
        timestamp: Generation time as published (epoch milliseconds).
        checksum: Content checksum. Required: a manifest without it is
            rejected before any cargo lookup.
    """

    model_config = ConfigDict(frozen=True)

    warehouse: WarehouseInfo
    cargo: dict[str, CargoDescriptor]
    dependencies: dict[str, str] = Field(default_factory=dict)
    timestamp: float = Field(default=0)
    checksum: str = Field(min_length=1)


# =============================================================================
# RetryPolicy
# =============================================================================
# Schedule:
#   attempt 1:  runs immediately
#   attempt n:  waits delay * backoff ** (n - 2) first
#
# With backoff=1.0 (the default) every retry waits the same fixed delay.
# Unlike a jittered policy this schedule is deterministic, so callers can
# reason about the worst-case total wait.
# =============================================================================
class RetryPolicy(BaseModel):
    """Bounded retry schedule for transport failures.

    Attributes:
        attempts: Total number of attempts, including the first one.
        delay: Base delay in seconds before the second attempt.
        backoff: Multiplier applied to the delay after each failed attempt.

    Example:
        >>> policy = RetryPolicy(attempts=3, delay=0.1, backoff=2.0)
        >>> [policy.delay_before(n) for n in (1, 2, 3)]
        [0.0, 0.1, 0.2]
    """

    attempts: int = Field(default=3, ge=1, le=20)
    delay: float = Field(default=1.0, ge=0.0, le=300.0)
    backoff: float = Field(default=1.0, ge=1.0, le=10.0)

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the given 1-based attempt."""
        if attempt <= 1:
            return 0.0
        return self.delay * (self.backoff ** (attempt - 2))


# =============================================================================
# LoadOptions
# =============================================================================
# Per-call policy. Anything left as None falls back to PorterConfig.loading.
# =============================================================================
class LoadOptions(BaseModel):
    """Per-invocation loading policy.

    Attributes:
        format: Explicit wire format override. Skips negotiation.
        timeout: Per-attempt deadline in seconds.
        overall_timeout: Deadline for the whole attempt sequence, in seconds.
        retry: Retry schedule for transport failures.
        cache: When False, neither the Navigator cache nor the loader's
            completed-load cache is consulted or written.
        fallback: Producer invoked instead of raising once every attempt
            failed. May be a plain callable or a coroutine function.
        exports: Export names the loaded module must expose.
        fallback_formats: Formats to try, at their conventional file names,
            when the declared entry fails with a transport error. Tried in
            negotiation priority order; unsupported formats are skipped.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    format: Optional[ModuleFormat] = None
    timeout: Optional[float] = Field(default=None, gt=0)
    overall_timeout: Optional[float] = Field(default=None, gt=0)
    retry: Optional[RetryPolicy] = None
    cache: bool = True
    fallback: Optional[Callable[[], Any]] = None
    exports: Optional[list[str]] = None
    fallback_formats: Optional[list[ModuleFormat]] = None


# =============================================================================
# LoadedCargo
# =============================================================================
class LoadedCargo(BaseModel):
    """Result of a successful ``Navigator.load_cargo`` call.

    The same LoadedCargo instance is returned for every cached hit, so
    ``first.module is second.module`` holds while the entry lives.

    Attributes:
        module: The executed module's export surface.
        descriptor: The CargoDescriptor it came from, with ``format`` set.
        warehouse: Name of the warehouse the cargo was loaded from.
        url: Absolute URL the module was loaded from.
        loaded_at: When the load completed (UTC).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    module: Any
    descriptor: CargoDescriptor
    warehouse: str
    url: str
    loaded_at: datetime = Field(default_factory=_now)

    @property
    def format(self) -> Optional[ModuleFormat]:
        """The wire format the module was loaded with."""
        return self.descriptor.format
