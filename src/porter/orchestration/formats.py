"""
porter.orchestration.formats - Format Negotiation
===================================================

Decides which wire format (ESM/UMD/CJS/AMD/IIFE/System) to use for a
module reference.

Decision Order (FormatNegotiator.negotiate):

    explicit override ──> publisher's declared format ──> URL shape
            │                                               │ unknown
            └──────────────> environment preference <───────┘

    detect() additionally inspects payload text when it is handed content
    rather than a URL. Loaders use that to refine an ambiguous URL once
    the source has been fetched.

Priority Order (pick_best):
    ESM > UMD > CJS > AMD > IIFE > SYSTEM  (ModuleFormat declaration order)

Content Markers:
    ESM   top-level ``import x`` / ``from x import y`` / ``__all__ = ...``
    UMD   all three of: exports-shaped object, define function, ``define.amd``
          (checked before AMD: a UMD bundle also contains ``define(``)
    CJS   ``module.exports = ``, ``exports.name = ``, ``exports["name"] = ``,
          or a ``require(...)`` call
    AMD   a bare ``define(...)`` call without the UMD guard
    IIFE  a self-invoking function at the top of the payload
    SYSTEM ``System.register(``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit

import structlog

from porter.core.enums import Environment, ModuleFormat
from porter.core.urls import has_scheme


logger = structlog.get_logger()


# =============================================================================
# Environment Capabilities
# =============================================================================
# Probed once at the composition root (porter.loaders.factory) and then
# passed around explicitly. Nothing on the load path re-probes the process.
# =============================================================================
@dataclass(frozen=True)
class EnvironmentCapabilities:
    """What the current interpreter can execute.

    Attributes:
        environment: UI (browser-hosted) or HEADLESS.
        native_modules: Modules can be executed through the import machinery.
        global_object: A shared global object exists for global-script bundles.
        sync_require: A synchronous module-require mechanism is available.
        amd_loader: An AMD ``define`` loader is installed.
        system_loader: A ``System.register`` loader is installed.
    """

    environment: Environment
    native_modules: bool = True
    global_object: bool = False
    sync_require: bool = False
    amd_loader: bool = False
    system_loader: bool = False

    @classmethod
    def for_environment(
        cls, environment: Environment, *, native_modules: bool = True
    ) -> "EnvironmentCapabilities":
        """Default capabilities of a UI or headless interpreter."""
        ui = environment is Environment.UI
        return cls(
            environment=environment,
            native_modules=native_modules,
            global_object=ui,
            sync_require=not ui,
        )


# =============================================================================
# Detection Patterns
# =============================================================================
# URL patterns are substring checks on the lower-cased URL path, evaluated
# in priority order. Content patterns accept both the Python spelling of
# each convention and the JavaScript spelling emitted by JS toolchains.
# =============================================================================
_URL_PATTERNS: list[tuple[ModuleFormat, tuple[str, ...]]] = [
    (ModuleFormat.ESM, (".mjs", ".esm.")),
    (ModuleFormat.UMD, (".umd.", "umd")),
    (ModuleFormat.CJS, (".cjs", "commonjs")),
    (ModuleFormat.AMD, (".amd.", "amd")),
    (ModuleFormat.IIFE, (".iife.", "iife")),
    (ModuleFormat.SYSTEM, (".system.", "system")),
]

_ESM_PATTERNS = [
    re.compile(r"^\s*(?:import|export)\s", re.MULTILINE),
    re.compile(r"^\s*from\s+[\w.]+\s+import\s", re.MULTILINE),
    re.compile(r"^__all__\s*=", re.MULTILINE),
    re.compile(r"export\s+default\s"),
    re.compile(r"export\s*\{"),
]

_UMD_EXPORTS_GUARD = re.compile(
    r"isinstance\(\s*exports\s*,|typeof\s+exports\s*===?\s*['\"]object['\"]"
)
_UMD_DEFINE_GUARD = re.compile(
    r"callable\(\s*define\s*\)|typeof\s+define\s*===?\s*['\"]function['\"]"
)
_UMD_AMD_MARKER = re.compile(r"define\.amd")

_CJS_PATTERNS = [
    re.compile(r"module\.exports\s*="),
    re.compile(r"\bexports\.\w+\s*="),
    re.compile(r"\bexports\[\s*['\"][^'\"]+['\"]\s*\]\s*="),
    re.compile(r"\brequire\s*\("),
]

_AMD_PATTERN = re.compile(r"\bdefine\s*\(")

_IIFE_PATTERNS = [
    re.compile(r"^\s*\(\s*lambda\b"),
    re.compile(r"^\s*@\s*\(?\s*lambda\s+\w+\s*:\s*\w+\s*\(\s*\)"),
    re.compile(r"^\s*\(\s*function\s*\("),
    re.compile(r"^\s*[!+]\s*function\s*\("),
]

_SYSTEM_PATTERN = re.compile(r"\bSystem\.register\s*\(")

_SOURCE_MARKERS = frozenset("(={;")


def _looks_like_reference(value: str) -> bool:
    """True for a URL or path; False for module source text."""
    stripped = value.strip()
    if not stripped:
        return False
    if has_scheme(stripped):
        return True
    return not any(ch.isspace() or ch in _SOURCE_MARKERS for ch in stripped)


# =============================================================================
# FormatNegotiator
# =============================================================================
class FormatNegotiator:
    """Chooses the wire format for a module reference.

    Example:
        >>> caps = EnvironmentCapabilities.for_environment(Environment.HEADLESS)
        >>> negotiator = FormatNegotiator(caps)
        >>> negotiator.detect("http://h/Button.mjs")
        <ModuleFormat.ESM: 'esm'>
        >>> negotiator.pick_best([ModuleFormat.UMD, ModuleFormat.ESM])
        <ModuleFormat.ESM: 'esm'>
    """

    def __init__(self, capabilities: EnvironmentCapabilities) -> None:
        self._capabilities = capabilities
        self._logger = logger.bind(
            component="format_negotiator",
            environment=capabilities.environment.value,
        )

    @property
    def capabilities(self) -> EnvironmentCapabilities:
        return self._capabilities

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------
    def detect(self, url_or_content: str) -> Optional[ModuleFormat]:
        """Detect a format from a URL, or from payload text.

        URL shape is checked for references; content markers are checked
        for anything that reads like source text.

        Returns:
            The detected format, or None when nothing matches.
        """
        if _looks_like_reference(url_or_content):
            return self.detect_from_url(url_or_content)
        return self.detect_from_content(url_or_content)

    def detect_from_url(self, url: str) -> Optional[ModuleFormat]:
        """Match file-name conventions in the URL path (the host is ignored)."""
        lowered = (urlsplit(url).path or url).lower()
        for module_format, needles in _URL_PATTERNS:
            if any(needle in lowered for needle in needles):
                return module_format
        return None

    def detect_from_content(self, content: str) -> Optional[ModuleFormat]:
        if any(pattern.search(content) for pattern in _ESM_PATTERNS):
            return ModuleFormat.ESM
        if self._has_umd_guard(content):
            return ModuleFormat.UMD
        if any(pattern.search(content) for pattern in _CJS_PATTERNS):
            return ModuleFormat.CJS
        if _AMD_PATTERN.search(content):
            return ModuleFormat.AMD
        if any(pattern.search(content) for pattern in _IIFE_PATTERNS):
            return ModuleFormat.IIFE
        if _SYSTEM_PATTERN.search(content):
            return ModuleFormat.SYSTEM
        return None

    @staticmethod
    def _has_umd_guard(content: str) -> bool:
        return bool(
            _UMD_EXPORTS_GUARD.search(content)
            and _UMD_DEFINE_GUARD.search(content)
            and _UMD_AMD_MARKER.search(content)
        )

    # -------------------------------------------------------------------------
    # Capability checks
    # -------------------------------------------------------------------------
    def is_supported(self, module_format: ModuleFormat) -> bool:
        """Whether the current environment can execute ``module_format``."""
        caps = self._capabilities
        support = {
            ModuleFormat.ESM: caps.native_modules,
            ModuleFormat.UMD: caps.global_object,
            ModuleFormat.CJS: caps.sync_require,
            ModuleFormat.AMD: caps.amd_loader,
            ModuleFormat.IIFE: caps.global_object,
            ModuleFormat.SYSTEM: caps.system_loader,
        }
        return support[module_format]

    def preferred(self) -> Optional[ModuleFormat]:
        """The environment's own preference when nothing else decides."""
        caps = self._capabilities
        if caps.native_modules:
            return ModuleFormat.ESM
        if caps.environment is Environment.UI and caps.global_object:
            return ModuleFormat.UMD
        if caps.sync_require:
            return ModuleFormat.CJS
        return None

    def pick_best(self, candidates: Iterable[ModuleFormat]) -> ModuleFormat:
        """Highest-priority candidate the environment supports.

        Falls back to the first offered candidate (ESM when none are
        offered) instead of raising; surfacing an unsupported format is
        the caller's job.
        """
        offered = list(candidates)
        for module_format in ModuleFormat.priority_order():
            if module_format in offered and self.is_supported(module_format):
                return module_format
        return offered[0] if offered else ModuleFormat.ESM

    # -------------------------------------------------------------------------
    # Negotiation
    # -------------------------------------------------------------------------
    def negotiate(
        self,
        url: str,
        *,
        override: Optional[ModuleFormat] = None,
        declared: Optional[ModuleFormat] = None,
    ) -> ModuleFormat:
        """Pick the format for one module reference.

        Args:
            url: The absolute module URL.
            override: Caller's explicit choice; always wins.
            declared: The publisher's declared format from the manifest.

        Returns:
            The negotiated format. Defaults to ESM when neither the URL nor
            the environment expresses a preference.
        """
        if override is not None:
            if declared is not None and declared is not override:
                self._logger.warning(
                    "format_override_conflicts_with_manifest",
                    url=url,
                    declared=declared.value,
                    requested=override.value,
                )
            return override
        if declared is not None:
            return declared

        detected = self.detect_from_url(url)
        if detected is not None:
            return detected

        return self.preferred() or ModuleFormat.ESM
