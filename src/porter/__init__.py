"""
porter - Runtime Resolution Client for Remote Cargo
=====================================================

porter lets a host application fetch and execute modules ("cargo")
published by separately deployed applications ("warehouses"):

    Navigator.load_cargo("ui-kit", "./Button")
        → manifest (cached) → cargo lookup → format negotiation
        → transport load (retry + timeout) → cached LoadedCargo

Layers:
    1. Navigator         - Public entry point (porter.navigator)
    2. Orchestration     - Format negotiation, retry/timeout, manifests, events
    3. Loaders           - UI and headless transport loaders, bundle sandbox
    4. Cache             - Memory, persistent (SQLite) and no-op backends
    5. Core              - Config, models, enums, exceptions, logging

Quick Start:
    >>> from porter import Navigator
    >>> from porter.core import PorterConfig
    >>> config = PorterConfig(warehouses={"ui-kit": {"url": "http://localhost:3001/"}})
    >>> async with Navigator(config) as navigator:
    ...     loaded = await navigator.load_cargo("ui-kit", "./Button")
"""

# =============================================================================
# Package Version
# =============================================================================
# Single source of truth for the package version, read by pyproject.toml:
#   from porter import __version__
# =============================================================================
__version__ = "0.1.0"

from porter.navigator import Navigator

__all__ = ["Navigator", "__version__"]
