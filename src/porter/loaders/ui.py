"""
porter.loaders.ui - UI (Browser-hosted) Loader
================================================

Loader for interpreters running inside a page (Pyodide / PyScript).

    ESM       native execution through the import machinery
    JSON      plain fetch, parsed as data
    UMD/IIFE  evaluated against one global object shared by every bundle
              this loader runs, the way script tags share ``window``
    CJS/AMD/System
              unsupported: no synchronous require or AMD/System loader
"""

from __future__ import annotations

from typing import ClassVar, Optional

from porter.core.enums import Environment, ModuleFormat
from porter.loaders.base import ModuleLoader


class UIModuleLoader(ModuleLoader):
    """Module loader for browser-hosted interpreters."""

    ENVIRONMENT: ClassVar[Environment] = Environment.UI
    SHARES_GLOBAL_OBJECT: ClassVar[bool] = True
    EXECUTORS: ClassVar[dict[ModuleFormat, Optional[str]]] = {
        ModuleFormat.ESM: "_load_native",
        ModuleFormat.UMD: "_load_bundle",
        ModuleFormat.CJS: None,
        ModuleFormat.AMD: None,
        ModuleFormat.IIFE: "_load_bundle",
        ModuleFormat.SYSTEM: None,
    }
