"""
porter.loaders.factory - Environment Probe and Loader Factory
===============================================================

The only place porter inspects the interpreter it runs in. The probe runs
once at the composition root; its result is passed down explicitly.

    probe_environment()            → EnvironmentCapabilities
    create_module_loader(caps, ..) → UIModuleLoader | HeadlessModuleLoader

Usage:
    >>> caps = probe_environment()
    >>> loader = create_module_loader(caps, httpx.AsyncClient())
    >>> type(loader)  # HeadlessModuleLoader outside a browser
"""

from __future__ import annotations

import importlib
import sys
from typing import Optional

import httpx
import structlog

from porter.core.config import LoadingConfig
from porter.core.enums import Environment
from porter.loaders.base import ModuleLoader
from porter.loaders.headless import HeadlessModuleLoader
from porter.loaders.ui import UIModuleLoader
from porter.orchestration.formats import EnvironmentCapabilities


logger = structlog.get_logger()


def _has_ui_document() -> bool:
    """True inside a browser-hosted interpreter exposing ``js.document``."""
    if sys.platform != "emscripten":
        return False
    try:
        js = importlib.import_module("js")
    except ImportError:
        return False
    return getattr(js, "document", None) is not None


def probe_environment(setting: str = "auto") -> EnvironmentCapabilities:
    """Probe (or force) the execution environment.

    Args:
        setting: "auto" to probe, or "ui" / "headless" to force one.
    """
    if setting == "auto":
        environment = Environment.UI if _has_ui_document() else Environment.HEADLESS
    else:
        environment = Environment(setting)
    capabilities = EnvironmentCapabilities.for_environment(environment)
    logger.info(
        "environment_probed",
        setting=setting,
        environment=environment.value,
        native_modules=capabilities.native_modules,
    )
    return capabilities


def create_module_loader(
    capabilities: EnvironmentCapabilities,
    client: httpx.AsyncClient,
    config: Optional[LoadingConfig] = None,
) -> ModuleLoader:
    """Create the loader strategy for ``capabilities.environment``."""
    config = config or LoadingConfig()
    loader_class = (
        UIModuleLoader
        if capabilities.environment is Environment.UI
        else HeadlessModuleLoader
    )
    return loader_class(
        capabilities,
        client,
        timeout=config.timeout,
        retry_policy=config.retry,
        allowed_modules=config.allowed_modules,
    )
