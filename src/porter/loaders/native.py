"""
porter.loaders.native - Native Module Execution
=================================================

Executes fetched Python source through the import machinery, the
interpreter's own dynamic-module-execution primitive:

    source ──> spec_from_loader(name, SourceLoader) ──> module_from_spec
           ──> SourceLoader.exec_module(module) ──> module (export surface)

Also provides ``make_require``: a synchronous, allow-listed module
resolver used as the headless fallback for bare specifiers and injected
into sandboxed bundles as ``require``.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.abc
import importlib.util
import sys
from types import ModuleType
from typing import Any, Callable, Iterable


class SourceLoader(importlib.abc.Loader):
    """importlib loader for source text that did not come from a file."""

    def __init__(self, source: str, origin: str) -> None:
        self._source = source
        self._origin = origin

    def create_module(self, spec: Any) -> None:
        return None

    def exec_module(self, module: ModuleType) -> None:
        code = compile(self._source, self._origin, "exec")
        exec(code, module.__dict__)


def module_name_for(url: str) -> str:
    """Stable, import-safe module name derived from a URL."""
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
    return f"porter_cargo_{digest}"


def execute_module(source: str, url: str) -> ModuleType:
    """Execute ``source`` as a fresh module whose origin is ``url``.

    The module is registered in ``sys.modules`` only while it executes,
    so class bodies and dataclasses can resolve their own module.

    Raises:
        SyntaxError: The source does not compile.
        Exception: Whatever the module body raises.
    """
    name = module_name_for(url)
    spec = importlib.util.spec_from_loader(name, SourceLoader(source, url), origin=url)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    module.__file__ = url

    previous = sys.modules.get(name)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        if previous is None:
            sys.modules.pop(name, None)
        else:
            sys.modules[name] = previous
    return module


def is_allowed(name: str, allowed: Iterable[str]) -> bool:
    """True when ``name`` or one of its parent packages is allow-listed."""
    return any(name == entry or name.startswith(f"{entry}.") for entry in allowed)


def make_require(allowed: Iterable[str]) -> Callable[[str], ModuleType]:
    """Build a synchronous ``require(name)`` restricted to ``allowed``.

    Raises (from the returned function):
        ImportError: ``name`` is not allow-listed or cannot be imported.
    """
    allow_list = frozenset(allowed)

    def require(name: str) -> ModuleType:
        if not is_allowed(name, allow_list):
            raise ImportError(f"require({name!r}) is not permitted")
        return importlib.import_module(name)

    return require


def export_names(surface: Any) -> list[str]:
    """Public names exposed by a loaded module's export surface."""
    if isinstance(surface, dict):
        return [str(key) for key in surface]
    declared = getattr(surface, "__all__", None)
    if isinstance(declared, (list, tuple)):
        return [str(name) for name in declared]
    return [name for name in dir(surface) if not name.startswith("_")]


def has_export(surface: Any, name: str) -> bool:
    if isinstance(surface, dict):
        return name in surface
    return hasattr(surface, name)
