"""
porter.core.enums - Type-Safe Enumerations
============================================

This module defines the enumeration types used throughout porter.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: ModuleFormat.ESM == "esm"
    - They round-trip through manifests and config files unchanged

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  NAVIGATOR                                                      │
    │    CargoLoadState: unloaded → loading → loaded | failed         │
    ├─────────────────────────────────────────────────────────────────┤
    │  FORMAT NEGOTIATION / LOADERS                                   │
    │    ModuleFormat: the six wire conventions, in priority order    │
    │    Environment: which loader strategy runs this process         │
    ├─────────────────────────────────────────────────────────────────┤
    │  CACHE                                                          │
    │    CacheStrategy: which backend the cache factory builds        │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Module Format Enumeration
# =============================================================================
# The closed set of wire conventions a warehouse can publish cargo in.
# Declaration order IS the negotiation priority order:
#
#   ESM > UMD > CJS > AMD > IIFE > SYSTEM
#
# FormatNegotiator.pick_best() walks ModuleFormat in declaration order, so
# adding a member here is the only change needed to extend negotiation;
# each loader maps every member to an executor in its EXECUTORS table,
# which ModuleLoader checks for completeness when the subclass is defined.
# =============================================================================
class ModuleFormat(str, Enum):
    """Wire formats a cargo module can be published in.

    Usage:
        >>> fmt = ModuleFormat.ESM
        >>> fmt.value  # "esm"
        >>> ModuleFormat("umd") is ModuleFormat.UMD  # True
    """

    ESM = "esm"         # Native module, executed through the import machinery
    UMD = "umd"         # Universal bundle guarded by exports/define/define.amd
    CJS = "cjs"         # module.exports / require() bundle
    AMD = "amd"         # define([...], factory) bundle
    IIFE = "iife"       # Self-invoking bundle that writes onto the global object
    SYSTEM = "system"   # System.register(...) bundle

    @classmethod
    def priority_order(cls) -> list["ModuleFormat"]:
        """Return all formats from most to least preferred."""
        return list(cls)


# =============================================================================
# Environment Enumeration
# =============================================================================
# Which execution environment the process runs in. Selected ONCE at the
# composition root (see porter.loaders.factory.probe_environment) and then
# passed down explicitly, never re-probed on the load path.
# =============================================================================
class Environment(str, Enum):
    """Execution environment of the host process.

    UI:       A browser-hosted interpreter (Pyodide/PyScript) with a
              document-like global available through the ``js`` module.
    HEADLESS: Any other interpreter (servers, workers, CLIs).
    """

    UI = "ui"
    HEADLESS = "headless"


# =============================================================================
# Cache Strategy Enumeration
# =============================================================================
class CacheStrategy(str, Enum):
    """Configuration tags understood by ``porter.cache.create_cache``."""

    MEMORY = "memory"           # In-process dict, insertion-order eviction
    PERSISTENT = "persistent"   # SQLite-backed key/value store, JSON values
    NONE = "none"               # Every write discarded, every read misses


# =============================================================================
# Cargo Load State Enumeration
# =============================================================================
# Per (warehouse, cargo, format) state machine owned by the Navigator:
#
#   UNLOADED → LOADING → LOADED        (terminal until reset())
#                      ↘ FAILED → LOADING (a later call retries)
# =============================================================================
class CargoLoadState(str, Enum):
    """Lifecycle states of a cargo key inside the Navigator."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"
