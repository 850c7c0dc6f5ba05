"""
porter.navigator - The Navigator (public entry point)
=======================================================

The Navigator composes the cache, the manifest resolver, the format
negotiator and the transport loader to answer one question: "load cargo X
from warehouse Y".

Architecture Context:

    ┌───────────────────────────────────────────────────────────┐
    │                      Navigator                             │
    │                                                            │
    │  load_cargo(warehouse, cargo, options)                     │
    │    1. PorterConfig.find_warehouse      → ConfigurationError│
    │    2. cache "inventory:{w}" / ManifestResolver             │
    │       (+ name and version checks)      → ValidationError   │
    │    3. ManifestResolver.find_cargo      → CargoNotFoundError│
    │    4. FormatNegotiator.negotiate                           │
    │    5. module_url(warehouse.url, entry)                     │
    │    6. ModuleLoader.load  (retry + per-attempt timeout)     │
    │       then fallback-format URLs on failure                 │
    │       bounded by one overall timeout                       │
    │    7. cache "cargo:{w}:{c}:{fmt}", registry, state         │
    └───────────────────────────────────────────────────────────┘

Load State Machine (per cargo cache key):
    UNLOADED ──> LOADING ──> LOADED   (terminal until reset)
                    └──────> FAILED   (a later call re-enters LOADING)

Concurrency:
    Overlapping calls for the same key share one in-flight task, so they
    resolve or fail together with a single transport load. Failures are
    never cached.

Usage:
    >>> async with Navigator(config) as navigator:
    ...     loaded = await navigator.load_cargo("ui-kit", "./Button")
    ...     loaded.module.Button
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx
import pydantic
import structlog

from porter.cache.base import CacheManager
from porter.cache.factory import create_cache
from porter.core.config import PorterConfig, WarehouseReference, load_config
from porter.core.enums import CargoLoadState, ModuleFormat
from porter.core.exceptions import (
    CacheError,
    CargoNotFoundError,
    ConfigurationError,
    LoadTimeoutError,
    NetworkError,
    ValidationError,
    VersionMismatchError,
)
from porter.core.logging import configure_logging
from porter.core.models import CargoDescriptor, Inventory, LoadedCargo, LoadOptions
from porter.core.urls import (
    cargo_cache_key,
    format_variant_urls,
    inventory_cache_key,
    inventory_url,
    module_url,
    strip_relative_prefix,
)
from porter.core.versioning import satisfies
from porter.loaders.base import ModuleLoader
from porter.loaders.factory import create_module_loader, probe_environment
from porter.loaders.native import export_names, has_export
from porter.orchestration import events
from porter.orchestration.events import EventEmitter, Listener
from porter.orchestration.formats import EnvironmentCapabilities, FormatNegotiator
from porter.orchestration.manifest import ManifestResolver
from porter.orchestration.resilience import retry_with_policy, with_timeout


logger = structlog.get_logger()


class Navigator:
    """Runtime resolution client for remote cargo.

    Every collaborator is injectable; anything left out is built from the
    configuration. There is no module-level instance: the host owns its
    Navigator.

    Attributes:
        config: Host configuration (warehouses, cache, loading policy).
        capabilities: Environment capabilities, probed once if not given.

    Example:
        >>> config = PorterConfig(warehouses={"ui-kit": {"url": "http://h/"}})
        >>> navigator = Navigator(config)
        >>> loaded = await navigator.load_cargo("ui-kit", "./Button")
        >>> await navigator.aclose()
    """

    def __init__(
        self,
        config: Optional[PorterConfig] = None,
        *,
        cache: Optional[CacheManager] = None,
        loader: Optional[ModuleLoader] = None,
        resolver: Optional[ManifestResolver] = None,
        client: Optional[httpx.AsyncClient] = None,
        capabilities: Optional[EnvironmentCapabilities] = None,
    ) -> None:
        self._config = config or PorterConfig()

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)

        if capabilities is None:
            capabilities = (
                loader.capabilities
                if loader is not None
                else probe_environment(self._config.loading.environment)
            )
        self._capabilities = capabilities

        self._cache = cache or create_cache(
            self._config.cache.strategy, self._config.cache
        )
        self._loader = loader or create_module_loader(
            capabilities, self._client, self._config.loading
        )
        self._resolver = resolver or ManifestResolver(
            self._client, self._config.loading.manifest_filename
        )
        self._negotiator = FormatNegotiator(capabilities)
        self._events = EventEmitter()

        # --- Registries ---
        self._inventories: dict[str, Inventory] = {}
        self._loaded_cargo: dict[str, LoadedCargo] = {}
        self._states: dict[str, CargoLoadState] = {}
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        # Bumped by reset(); loads started earlier do not commit.
        self._generation = 0

        self._logger = logger.bind(component="navigator")

    @classmethod
    def from_config_file(cls, path: Optional[str] = None, **kwargs: Any) -> "Navigator":
        """Load ``porter.yaml`` (or ``path``), configure logging, build a Navigator."""
        config = load_config(path)
        configure_logging(config.log_level)
        return cls(config, **kwargs)

    # =========================================================================
    # Properties
    # =========================================================================
    @property
    def config(self) -> PorterConfig:
        return self._config

    @property
    def capabilities(self) -> EnvironmentCapabilities:
        return self._capabilities

    @property
    def loader(self) -> ModuleLoader:
        return self._loader

    @property
    def resolver(self) -> ManifestResolver:
        return self._resolver

    # =========================================================================
    # Lifecycle
    # =========================================================================
    async def aclose(self) -> None:
        """Close the HTTP client if this Navigator created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Navigator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Events
    # =========================================================================
    def on(self, event: str, listener: Listener) -> None:
        """Subscribe to a lifecycle event (see porter.orchestration.events)."""
        self._events.on(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self._events.off(event, listener)

    # =========================================================================
    # Loading
    # =========================================================================
    async def load_cargo(
        self,
        warehouse: str,
        cargo: str,
        options: Optional[LoadOptions] = None,
    ) -> LoadedCargo:
        """Load ``cargo`` from ``warehouse``.

        Args:
            warehouse: Configured warehouse name or alias.
            cargo: Cargo name, with or without a leading ``./``.
            options: Per-call policy; unset fields fall back to config.

        Returns:
            The LoadedCargo. Cached hits return the identical object.

        Raises:
            ConfigurationError: The warehouse is not configured.
            ValidationError: The manifest is invalid, names another
                warehouse, or the module lacks a requested export.
            VersionMismatchError: The warehouse version is out of range.
            CargoNotFoundError: The inventory does not list ``cargo``.
            NetworkError / LoadTimeoutError: Every attempt failed and no
                fallback was supplied.
        """
        options = options or LoadOptions()
        name, reference = self._resolve_warehouse(warehouse)
        inventory = await self._resolve_inventory(name, reference, use_cache=options.cache)

        descriptor = self._resolver.find_cargo(inventory, cargo)
        if descriptor is None:
            raise CargoNotFoundError(
                cargo, name, details={"available": sorted(inventory.cargo)}
            )

        url = module_url(reference.url, descriptor.entry)
        module_format = self._negotiator.negotiate(
            url, override=options.format, declared=descriptor.declared_format
        )
        descriptor = descriptor.model_copy(update={"format": module_format})
        key = cargo_cache_key(name, cargo, module_format)
        candidates = self._candidates(
            reference.url, descriptor.entry, url, module_format, options.fallback_formats
        )
        context = {
            "warehouse": name,
            "cargo": cargo,
            "format": module_format.value,
            "url": url,
            "key": key,
        }

        if options.cache:
            cached = await self._cache_get(key)
            if isinstance(cached, LoadedCargo):
                self._logger.debug("cargo_cache_hit", **context)
                await self._events.emit(events.CACHE_HIT, {**context, "loaded": cached})
                return self._check_exports(cached, options.exports, context)
            await self._events.emit(events.CACHE_MISS, context)

        try:
            loaded = await self._shared(
                key,
                lambda: self._load(key, name, descriptor, candidates, options, context),
            )
        except (NetworkError, LoadTimeoutError) as exc:
            if options.fallback is None:
                raise
            self._logger.warning("cargo_fallback_used", error=str(exc), **context)
            return LoadedCargo(
                module=await _call(options.fallback),
                descriptor=descriptor,
                warehouse=name,
                url=url,
            )
        return self._check_exports(loaded, options.exports, context)

    def _candidates(
        self,
        warehouse_url: str,
        entry: str,
        url: str,
        module_format: ModuleFormat,
        fallback_formats: Optional[list[ModuleFormat]],
    ) -> list[tuple[ModuleFormat, str]]:
        """The declared entry, then each fallback format's conventional URLs.

        Fallback formats are visited in negotiation priority order and only
        when the loader can execute them.
        """
        candidates = [(module_format, url)]
        if not fallback_formats:
            return candidates
        seen = {url}
        for fallback_format in self._loader.supported_formats():
            if fallback_format is module_format or fallback_format not in fallback_formats:
                continue
            for variant in format_variant_urls(warehouse_url, entry, fallback_format):
                if variant not in seen:
                    seen.add(variant)
                    candidates.append((fallback_format, variant))
        return candidates

    async def _load(
        self,
        key: str,
        warehouse: str,
        descriptor: CargoDescriptor,
        candidates: list[tuple[ModuleFormat, str]],
        options: LoadOptions,
        context: dict[str, Any],
    ) -> LoadedCargo:
        generation = self._generation
        self._states[key] = CargoLoadState.LOADING
        self._logger.info("cargo_loading", **context)
        await self._events.emit(events.CARGO_LOADING, context)

        overall = options.overall_timeout or self._config.loading.overall_timeout
        try:
            module_format, url, module = await with_timeout(
                lambda: self._load_first_available(candidates, options, context),
                overall,
                url=context["url"],
            )
        except Exception as exc:
            if generation == self._generation:
                self._states[key] = CargoLoadState.FAILED
            self._logger.error(
                "cargo_load_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                **context,
            )
            await self._events.emit(events.CARGO_ERROR, {**context, "error": exc})
            raise

        if url != context["url"]:
            self._logger.info(
                "format_fallback_used",
                resolved_url=url,
                resolved_format=module_format.value,
                **context,
            )
            descriptor = descriptor.model_copy(update={"format": module_format})
            context = {**context, "url": url, "format": module_format.value}

        if descriptor.exports:
            missing = [n for n in descriptor.exports if not has_export(module, n)]
            if missing:
                self._logger.warning(
                    "declared_exports_missing", missing=missing, **context
                )

        loaded = LoadedCargo(
            module=module, descriptor=descriptor, warehouse=warehouse, url=url
        )
        if generation != self._generation:
            # Finished after reset(): hand the result to its callers only.
            self._logger.info("stale_load_discarded", **context)
            self._loader.forget(url)
            return loaded

        if options.cache:
            await self._cache_set(key, loaded, self._config.cache.ttl)
        self._loaded_cargo[key] = loaded
        self._states[key] = CargoLoadState.LOADED
        self._logger.info("cargo_loaded", **context)
        await self._events.emit(events.CARGO_LOADED, {**context, "loaded": loaded})
        return loaded

    async def _load_first_available(
        self,
        candidates: list[tuple[ModuleFormat, str]],
        options: LoadOptions,
        context: dict[str, Any],
    ) -> tuple[ModuleFormat, str, Any]:
        """Load the first candidate that survives its retries."""
        for module_format, url in candidates[:-1]:
            try:
                module = await self._loader.load(
                    url, _loader_options(options, module_format)
                )
            except (NetworkError, LoadTimeoutError) as exc:
                self._logger.warning(
                    "format_candidate_failed",
                    candidate_url=url,
                    candidate_format=module_format.value,
                    error=str(exc),
                    **context,
                )
                continue
            return module_format, url, module

        module_format, url = candidates[-1]
        module = await self._loader.load(url, _loader_options(options, module_format))
        return module_format, url, module

    def _check_exports(
        self,
        loaded: LoadedCargo,
        expected: Optional[list[str]],
        context: dict[str, Any],
    ) -> LoadedCargo:
        if not expected:
            return loaded
        missing = [n for n in expected if not has_export(loaded.module, n)]
        if missing:
            raise ValidationError(
                message=f"Cargo is missing expected exports: {', '.join(missing)}",
                error_code="MISSING_EXPORTS",
                details={
                    **context,
                    "missing": missing,
                    "available": export_names(loaded.module),
                },
            )
        return loaded

    async def preload(
        self, warehouse: str, cargo_names: Optional[Iterable[str]] = None
    ) -> None:
        """Load several cargo concurrently; failures are logged, not raised.

        Args:
            warehouse: Configured warehouse name or alias.
            cargo_names: Cargo to load; every listed cargo when omitted.
        """
        if cargo_names is None:
            inventory = await self.get_inventory(warehouse)
            names = list(inventory.cargo)
        else:
            names = list(cargo_names)

        results = await asyncio.gather(
            *(self.load_cargo(warehouse, name) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                self._logger.warning(
                    "preload_failed",
                    warehouse=warehouse,
                    cargo=name,
                    error=str(result),
                    error_type=type(result).__name__,
                )
        self._logger.info("preload_complete", warehouse=warehouse, count=len(names))

    # =========================================================================
    # Inventories
    # =========================================================================
    async def get_inventory(self, warehouse: str) -> Inventory:
        """Inventory of ``warehouse``, from cache or freshly fetched."""
        name, reference = self._resolve_warehouse(warehouse)
        return await self._resolve_inventory(name, reference)

    def _resolve_warehouse(self, warehouse: str) -> tuple[str, WarehouseReference]:
        found = self._config.find_warehouse(warehouse)
        if found is None:
            raise ConfigurationError(
                message=f'Warehouse "{warehouse}" is not configured',
                error_code="WAREHOUSE_NOT_FOUND",
                details={"warehouse": warehouse, "known": sorted(self._config.warehouses)},
            )
        return found

    async def _resolve_inventory(
        self, name: str, reference: WarehouseReference, *, use_cache: bool = True
    ) -> Inventory:
        key = inventory_cache_key(name)
        if use_cache:
            cached = await self._cache_get(key)
            if cached is not None:
                try:
                    inventory = Inventory.model_validate(cached)
                except pydantic.ValidationError:
                    self._logger.warning("cached_inventory_invalid", warehouse=name)
                else:
                    self._inventories[name] = inventory
                    return inventory

        return await self._shared(key, lambda: self._fetch_inventory(name, reference))

    async def _fetch_inventory(
        self, name: str, reference: WarehouseReference
    ) -> Inventory:
        generation = self._generation
        loading = self._config.loading
        inventory = await retry_with_policy(
            lambda: with_timeout(
                lambda: self._resolver.fetch_inventory(name, reference),
                loading.timeout,
                url=inventory_url(reference.url, self._resolver.manifest_filename),
            ),
            loading.retry,
            context={"warehouse": name},
        )
        self._validate_inventory(name, reference, inventory)
        if generation != self._generation:
            return inventory

        await self._cache_set(
            inventory_cache_key(name),
            inventory.model_dump(mode="json"),
            self._config.cache.inventory_ttl,
        )
        self._inventories[name] = inventory
        return inventory

    @staticmethod
    def _validate_inventory(
        name: str, reference: WarehouseReference, inventory: Inventory
    ) -> None:
        published = inventory.warehouse.name
        accepted = {name, reference.alias, reference.name} - {None}
        if published not in accepted:
            raise ValidationError(
                message=(
                    f'Manifest fetched for "{name}" belongs to warehouse "{published}"'
                ),
                error_code="WAREHOUSE_MISMATCH",
                details={"warehouse": name, "published": published, "url": reference.url},
            )

        version = inventory.warehouse.version
        try:
            accepted_version = satisfies(version, reference.version)
        except ValueError:
            accepted_version = False
        if not accepted_version:
            raise VersionMismatchError(
                reference.version, version, details={"warehouse": name}
            )

    # =========================================================================
    # In-flight de-duplication
    # =========================================================================
    async def _shared(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Join the in-flight task for ``key``, or start one."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            self._logger.debug("joined_in_flight_load", key=key)
        return await asyncio.shield(task)

    def _forget(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Every waiter may have been cancelled; mark the outcome as observed.
        if not task.cancelled():
            task.exception()

    # =========================================================================
    # Registry Queries
    # =========================================================================
    def get_cache(self) -> CacheManager:
        return self._cache

    def get_loaded_warehouses(self) -> list[str]:
        return list(self._inventories)

    def get_loaded_cargo(self) -> dict[str, LoadedCargo]:
        """Successfully loaded cargo, keyed by cache key."""
        return dict(self._loaded_cargo)

    def get_load_state(
        self,
        warehouse: str,
        cargo: str,
        module_format: Optional[ModuleFormat] = None,
    ) -> CargoLoadState:
        """Load state of a cargo.

        Without ``module_format`` the most advanced state across every
        format the cargo was requested in is reported.
        """
        found = self._config.find_warehouse(warehouse)
        name = found[0] if found is not None else warehouse
        if module_format is not None:
            key = cargo_cache_key(name, cargo, module_format)
            return self._states.get(key, CargoLoadState.UNLOADED)

        prefix = f"cargo:{name}:{strip_relative_prefix(cargo)}:"
        states = {state for key, state in self._states.items() if key.startswith(prefix)}
        for state in (CargoLoadState.LOADING, CargoLoadState.LOADED, CargoLoadState.FAILED):
            if state in states:
                return state
        return CargoLoadState.UNLOADED

    async def reset(self) -> None:
        """Clear the cache, registries and the loader's completed loads.

        Loads still in flight finish for their current callers but do not
        write to the cache or registries; later calls start fresh loads.
        Already-executed module code is not un-executed.
        """
        self._generation += 1
        self._in_flight.clear()
        try:
            await self._cache.clear()
        except CacheError as exc:
            self._logger.warning("cache_error_ignored", operation="clear", error=str(exc))
        self._inventories.clear()
        self._loaded_cargo.clear()
        self._states.clear()
        self._loader.clear_cache()
        self._logger.info("navigator_reset")
        await self._events.emit(events.NAVIGATOR_RESET, {})

    # =========================================================================
    # Cache access (failures degrade to miss / no-op)
    # =========================================================================
    async def _cache_get(self, key: str) -> Any:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            self._logger.warning(
                "cache_error_ignored", operation="get", key=key, error=str(exc)
            )
            return None

    async def _cache_set(self, key: str, value: Any, ttl: float) -> None:
        try:
            await self._cache.set(key, value, ttl)
        except CacheError as exc:
            self._logger.warning(
                "cache_error_ignored", operation="set", key=key, error=str(exc)
            )


async def _call(producer: Callable[[], Any]) -> Any:
    result = producer()
    if inspect.isawaitable(result):
        result = await result
    return result


def _loader_options(options: LoadOptions, module_format: ModuleFormat) -> LoadOptions:
    # Fallbacks belong to each caller, not to the shared attempt.
    return options.model_copy(update={"format": module_format, "fallback": None})
