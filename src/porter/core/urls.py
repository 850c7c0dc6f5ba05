"""
porter.core.urls - URL Resolution and Cache Keys
==================================================

Small pure helpers shared by the resolver, the loaders and the Navigator.

Key Schema:
    inventory:{warehouse}                 → Inventory (JSON)
    cargo:{warehouse}:{cargo}:{format}    → LoadedCargo

Cargo keys always include the negotiated format, so the same cargo
loaded as ``esm`` and as ``umd`` never collide.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from porter.core.enums import ModuleFormat


# Marker publishers and consumers may or may not put in front of a cargo name.
RELATIVE_PREFIX = "./"


def normalize_base_url(url: str) -> str:
    """Strip trailing slashes from a base URL."""
    return url.rstrip("/")


def join_url(base: str, path: str) -> str:
    """Join ``path`` onto ``base`` with exactly one slash between them."""
    return f"{normalize_base_url(base)}/{path.lstrip('/')}"


def has_scheme(reference: str) -> bool:
    """True when ``reference`` carries a URL scheme (http:, file:, ...)."""
    return bool(urlsplit(reference).scheme) and "://" in reference


def inventory_url(warehouse_url: str, manifest_filename: str) -> str:
    """URL of a warehouse's manifest document."""
    return join_url(warehouse_url, manifest_filename)


def module_url(warehouse_url: str, entry: str) -> str:
    """Resolve a cargo entry against its warehouse's base URL.

    The entry is never treated as an absolute filesystem path: leading
    slashes and ``./`` markers are dropped before joining. Entries that
    already carry a URL scheme are returned as-is.

    Example:
        >>> module_url("http://h/", "Button.mjs")
        'http://h/Button.mjs'
        >>> module_url("http://h", "/assets/./x.js")
        'http://h/assets/./x.js'
    """
    if has_scheme(entry):
        return entry
    relative = entry
    while relative.startswith(RELATIVE_PREFIX) or relative.startswith("/"):
        relative = relative[2:] if relative.startswith(RELATIVE_PREFIX) else relative[1:]
    return join_url(warehouse_url, relative)


# Conventional file names a warehouse may publish each format under.
FORMAT_FILE_SUFFIXES: dict[ModuleFormat, tuple[str, ...]] = {
    ModuleFormat.ESM: (".mjs", ".esm.js", ".module.js"),
    ModuleFormat.UMD: (".umd.js", ".js"),
    ModuleFormat.CJS: (".cjs", ".common.js"),
    ModuleFormat.AMD: (".amd.js",),
    ModuleFormat.IIFE: (".iife.js",),
    ModuleFormat.SYSTEM: (".system.js",),
}

_FORMAT_SUFFIX = re.compile(
    r"(\.(esm|module|umd|common|amd|iife|system))?\.[^./]+$", re.IGNORECASE
)


def entry_stem(entry: str) -> str:
    """``entry`` without its extension or format marker.

    Example:
        >>> entry_stem("dist/Card.umd.js")
        'dist/Card'
        >>> entry_stem("./Button")
        './Button'
    """
    return _FORMAT_SUFFIX.sub("", entry, count=1)


def format_variant_urls(
    warehouse_url: str, entry: str, module_format: ModuleFormat
) -> list[str]:
    """URLs the same cargo would live at if published as ``module_format``.

    Example:
        >>> format_variant_urls("http://h/", "Card.umd.js", ModuleFormat.CJS)
        ['http://h/Card.cjs', 'http://h/Card.common.js']
    """
    stem = entry_stem(entry)
    return [
        module_url(warehouse_url, f"{stem}{suffix}")
        for suffix in FORMAT_FILE_SUFFIXES[module_format]
    ]


def strip_relative_prefix(name: str) -> str:
    """Drop a leading ``./`` marker from a cargo name."""
    while name.startswith(RELATIVE_PREFIX):
        name = name[len(RELATIVE_PREFIX):]
    return name


def inventory_cache_key(warehouse: str) -> str:
    return f"inventory:{warehouse}"


def cargo_cache_key(
    warehouse: str, cargo: str, module_format: Optional[ModuleFormat]
) -> str:
    """Deterministic cache key for a (warehouse, cargo, format) triple."""
    fmt = module_format.value if module_format is not None else "auto"
    return f"cargo:{warehouse}:{strip_relative_prefix(cargo)}:{fmt}"
