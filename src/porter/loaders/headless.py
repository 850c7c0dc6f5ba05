"""
porter.loaders.headless - Headless (Server-side) Loader
=========================================================

Loader for interpreters without a UI document.

    ESM         native execution; a bare specifier (no URL scheme) falls
                back to the allow-listed synchronous require
    UMD/CJS/AMD/IIFE/System
                fetched as text and evaluated in a fresh BundleSandbox
                per bundle, with inert UI stand-ins
"""

from __future__ import annotations

from typing import Any, ClassVar, Optional

from porter.core.enums import Environment, ModuleFormat
from porter.core.urls import has_scheme
from porter.loaders.base import ModuleLoader
from porter.loaders.native import make_require


class HeadlessModuleLoader(ModuleLoader):
    """Module loader for headless interpreters."""

    ENVIRONMENT: ClassVar[Environment] = Environment.HEADLESS
    EXECUTORS: ClassVar[dict[ModuleFormat, Optional[str]]] = {
        ModuleFormat.ESM: "_load_native_or_require",
        ModuleFormat.UMD: "_load_bundle",
        ModuleFormat.CJS: "_load_bundle",
        ModuleFormat.AMD: "_load_bundle",
        ModuleFormat.IIFE: "_load_bundle",
        ModuleFormat.SYSTEM: "_load_bundle",
    }

    async def _load_native_or_require(self, url: str) -> Any:
        try:
            return await self._load_native(url)
        except Exception as exc:
            if has_scheme(url):
                raise
            self._logger.info(
                "native_load_failed_using_require", specifier=url, error=str(exc)
            )
            return make_require(self.allowed_modules)(url)
