"""
porter.loaders.base - Transport Loader Interface
==================================================

Defines the abstract ModuleLoader that the UI and headless loaders
implement, and the attempt pipeline they share.

Load Pipeline (ModuleLoader.load):

    completed-load cache hit? ──yes──> cached export surface
            │ no
            v
    retry_with_policy(                       per-attempt deadline
        with_timeout(_attempt(url, fmt))  <── options.timeout / default
    )
            │ attempts exhausted
            v
    options.fallback? ──yes──> fallback()  (not cached)
            │ no
            v
    raise NetworkError / LoadTimeoutError

Failure Mapping (_attempt):
    NetworkError, LoadTimeoutError   → unchanged
    any other exception              → NetworkError(url, cause=exc)

Dispatch:
    Each loader declares an exhaustive ``EXECUTORS`` table mapping every
    ModuleFormat to a method name (or None when unsupported). The table
    is checked against the enum when the subclass is defined.
"""

from __future__ import annotations

import inspect
import json
from abc import ABC
from typing import Any, ClassVar, Iterable, Optional
from urllib.parse import urlsplit

import httpx
import structlog

from porter.core.config import DEFAULT_ALLOWED_MODULES
from porter.core.enums import Environment, ModuleFormat
from porter.core.exceptions import (
    LoadTimeoutError,
    NetworkError,
    SandboxViolationError,
    ValidationError,
)
from porter.core.models import LoadOptions, RetryPolicy
from porter.core.urls import has_scheme
from porter.loaders.native import execute_module
from porter.loaders.sandbox import BundleSandbox, WindowStub
from porter.orchestration.formats import EnvironmentCapabilities, FormatNegotiator
from porter.orchestration.resilience import retry_with_policy, with_timeout


logger = structlog.get_logger()


# =============================================================================
# Entry-name conventions
# =============================================================================
_ENTRY_SUFFIXES: list[tuple[str, ModuleFormat]] = [
    (".mjs", ModuleFormat.ESM),
    (".umd.js", ModuleFormat.UMD),
    (".umd.py", ModuleFormat.UMD),
    (".cjs", ModuleFormat.CJS),
]


def is_json_entry(url: str) -> bool:
    return urlsplit(url).path.lower().endswith(".json")


def format_from_entry(url: str) -> Optional[ModuleFormat]:
    """Format implied by an entry's file name, if any."""
    path = urlsplit(url).path.lower()
    for suffix, module_format in _ENTRY_SUFFIXES:
        if path.endswith(suffix):
            return module_format
    return None


def ensure_exhaustive(table: dict[ModuleFormat, Optional[str]], owner: str) -> None:
    """Fail at class-definition time if ``table`` misses a ModuleFormat."""
    missing = [fmt.value for fmt in ModuleFormat if fmt not in table]
    if missing:
        raise TypeError(f"{owner}.EXECUTORS does not handle formats: {missing}")


# =============================================================================
# ModuleLoader
# =============================================================================
class ModuleLoader(ABC):
    """Environment-specific executor that fetches and evaluates modules.

    Subclasses set ``ENVIRONMENT`` and an exhaustive ``EXECUTORS`` table.
    Executor methods take the URL and return the module's export surface.

    Attributes:
        capabilities: Probed capabilities of the interpreter.
        client: Shared ``httpx.AsyncClient`` used for fetches.
        timeout: Default per-attempt deadline in seconds.
        retry_policy: Default retry schedule.
        allowed_modules: Allow-list for ``require`` and sandboxed imports.
    """

    ENVIRONMENT: ClassVar[Environment]
    EXECUTORS: ClassVar[dict[ModuleFormat, Optional[str]]]
    SHARES_GLOBAL_OBJECT: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "EXECUTORS" in cls.__dict__:
            ensure_exhaustive(cls.EXECUTORS, cls.__name__)

    def __init__(
        self,
        capabilities: EnvironmentCapabilities,
        client: httpx.AsyncClient,
        *,
        timeout: Optional[float] = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        allowed_modules: Iterable[str] = DEFAULT_ALLOWED_MODULES,
    ) -> None:
        self.capabilities = capabilities
        self.client = client
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.allowed_modules = tuple(allowed_modules)
        self.negotiator = FormatNegotiator(capabilities)
        self._loaded: dict[str, Any] = {}
        self._window: Optional[WindowStub] = None
        self._logger = logger.bind(
            component="module_loader", environment=self.ENVIRONMENT.value
        )

    # -------------------------------------------------------------------------
    # Public contract
    # -------------------------------------------------------------------------
    async def load(self, url: str, options: Optional[LoadOptions] = None) -> Any:
        """Fetch and evaluate ``url``, returning its export surface.

        Raises:
            ValidationError: The requested format cannot run here.
            SandboxViolationError: A bundle reached for interpreter internals.
            NetworkError: Every attempt failed and no fallback was given.
            LoadTimeoutError: The last attempt timed out and no fallback was given.
        """
        options = options or LoadOptions()
        if options.cache and url in self._loaded:
            self._logger.debug("load_cache_hit", url=url)
            return self._loaded[url]

        module_format = self._resolve_format(url, options.format)
        policy = options.retry or self.retry_policy
        timeout = options.timeout or self.timeout

        try:
            surface = await retry_with_policy(
                lambda: with_timeout(
                    lambda: self._attempt(url, module_format), timeout, url=url
                ),
                policy,
                context={"url": url},
            )
        except (NetworkError, LoadTimeoutError) as exc:
            if options.fallback is None:
                raise
            self._logger.warning("load_fallback_used", url=url, error=str(exc))
            result = options.fallback()
            if inspect.isawaitable(result):
                result = await result
            return result

        if options.cache:
            self._loaded[url] = surface
        self._logger.info("module_loaded", url=url, format=module_format.value)
        return surface

    def is_loaded(self, url: str) -> bool:
        return url in self._loaded

    async def preload(self, url: str, options: Optional[LoadOptions] = None) -> None:
        await self.load(url, options)

    def clear_cache(self) -> None:
        self._loaded.clear()

    def forget(self, url: str) -> None:
        """Drop one completed load so the next request fetches it again."""
        self._loaded.pop(url, None)

    def supported_formats(self) -> list[ModuleFormat]:
        return [fmt for fmt in ModuleFormat.priority_order() if self.EXECUTORS[fmt]]

    # -------------------------------------------------------------------------
    # Attempt pipeline
    # -------------------------------------------------------------------------
    def _resolve_format(
        self, url: str, requested: Optional[ModuleFormat]
    ) -> ModuleFormat:
        module_format = (
            requested or format_from_entry(url) or self.negotiator.negotiate(url)
        )
        if self.EXECUTORS[module_format] is None:
            raise ValidationError(
                message=(
                    f'Format "{module_format.value}" is not supported by the '
                    f"{self.ENVIRONMENT.value} loader"
                ),
                error_code="UNSUPPORTED_FORMAT",
                details={
                    "url": url,
                    "format": module_format.value,
                    "supported": [fmt.value for fmt in self.supported_formats()],
                },
            )
        return module_format

    async def _attempt(self, url: str, module_format: ModuleFormat) -> Any:
        try:
            if is_json_entry(url):
                return await self._load_json(url)
            executor = getattr(self, self.EXECUTORS[module_format])
            return await executor(url)
        except (NetworkError, LoadTimeoutError, SandboxViolationError):
            raise
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                url, cause=exc, details={"status": exc.response.status_code}
            ) from exc
        except Exception as exc:
            raise NetworkError(url, cause=exc) from exc

    async def _fetch_text(self, url: str) -> str:
        if not has_scheme(url):
            raise ValueError(f"{url!r} is not an absolute URL")
        response = await self.client.get(url)
        response.raise_for_status()
        return response.text

    # -------------------------------------------------------------------------
    # Shared executors
    # -------------------------------------------------------------------------
    async def _load_json(self, url: str) -> Any:
        return json.loads(await self._fetch_text(url))

    async def _load_native(self, url: str) -> Any:
        source = await self._fetch_text(url)
        detected = self.negotiator.detect_from_content(source)
        if (
            detected not in (None, ModuleFormat.ESM)
            and self.EXECUTORS[detected] is not None
        ):
            self._logger.info(
                "format_refined_from_content", url=url, detected=detected.value
            )
            return self._run_bundle(url, source)
        return execute_module(source, url)

    async def _load_bundle(self, url: str) -> Any:
        return self._run_bundle(url, await self._fetch_text(url))

    def _run_bundle(self, url: str, source: str) -> Any:
        window = self._window if self.SHARES_GLOBAL_OBJECT else None
        with BundleSandbox(
            url, allowed_modules=self.allowed_modules, window=window
        ) as sandbox:
            if self.SHARES_GLOBAL_OBJECT:
                self._window = sandbox.window
            return sandbox.run(source)
