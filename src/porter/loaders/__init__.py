"""
porter.loaders - Transport Loaders
====================================

Environment-specific executors that fetch and evaluate cargo.

Components:
    - ModuleLoader (ABC):     load / is_loaded / preload / clear_cache / supported_formats
    - UIModuleLoader:         browser-hosted interpreters
    - HeadlessModuleLoader:   everything else
    - BundleSandbox:          revocable namespace for global-script bundles
    - probe_environment():    one-time environment probe
    - create_module_loader(): capabilities → loader strategy
"""

from porter.loaders.base import ModuleLoader
from porter.loaders.factory import create_module_loader, probe_environment
from porter.loaders.headless import HeadlessModuleLoader
from porter.loaders.sandbox import BundleSandbox
from porter.loaders.ui import UIModuleLoader

__all__ = [
    "ModuleLoader",
    "UIModuleLoader",
    "HeadlessModuleLoader",
    "BundleSandbox",
    "probe_environment",
    "create_module_loader",
]
