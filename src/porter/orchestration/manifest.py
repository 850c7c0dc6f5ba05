"""
porter.orchestration.manifest - Manifest Resolver
===================================================

Fetches and validates a warehouse's inventory manifest and answers cargo
lookups against it.

Fetch Flow:
    GET {warehouse.url}/{manifest_filename}
        │
        ├── transport failure / non-2xx ──> NetworkError (retryable upstream)
        ├── body is not JSON            ──> ValidationError
        ├── missing name/cargo/checksum ──> ValidationError
        └── Inventory

The resolver holds no cache. Manifest freshness is the Navigator's policy
(``inventory:{warehouse}`` keys with ``cache.inventory_ttl``).
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pydantic
import structlog

from porter.core.config import WarehouseReference
from porter.core.exceptions import NetworkError, ValidationError
from porter.core.models import CargoDescriptor, Inventory
from porter.core.urls import inventory_url, strip_relative_prefix


logger = structlog.get_logger()

DEFAULT_MANIFEST_FILENAME = "porter.inventory.json"


class ManifestResolver:
    """Fetches inventories over HTTP and looks up cargo in them.

    Attributes:
        client: Shared ``httpx.AsyncClient``; owned by the caller.
        manifest_filename: Well-known manifest path under each warehouse URL.

    Example:
        >>> resolver = ManifestResolver(httpx.AsyncClient())
        >>> inventory = await resolver.fetch_inventory("ui-kit", reference)
        >>> resolver.find_cargo(inventory, "./Button")
        CargoDescriptor(name='./Button', ...)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
    ) -> None:
        self._client = client
        self._manifest_filename = manifest_filename
        self._logger = logger.bind(component="manifest_resolver")

    @property
    def manifest_filename(self) -> str:
        return self._manifest_filename

    async def fetch_inventory(
        self, warehouse: str, reference: WarehouseReference
    ) -> Inventory:
        """Fetch and validate the inventory published by ``warehouse``.

        Args:
            warehouse: Configured warehouse name (for error context).
            reference: The configured reference carrying the base URL.

        Raises:
            NetworkError: The manifest could not be fetched.
            ValidationError: The manifest is not a structurally valid inventory.
        """
        url = inventory_url(reference.url, self._manifest_filename)
        context = {"warehouse": warehouse, "url": url}

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                url,
                cause=exc,
                details={"warehouse": warehouse, "status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(url, cause=exc, details={"warehouse": warehouse}) from exc

        try:
            document = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError(
                message=f'Manifest for "{warehouse}" is not valid JSON',
                error_code="INVALID_MANIFEST",
                details={**context, "reason": str(exc)},
            ) from exc

        inventory = self.parse_inventory(document, context)
        self._logger.info(
            "manifest_fetched",
            warehouse=warehouse,
            url=url,
            cargo_count=len(inventory.cargo),
            version=inventory.warehouse.version,
        )
        return inventory

    @staticmethod
    def parse_inventory(
        document: Any, context: Optional[dict[str, Any]] = None
    ) -> Inventory:
        """Validate a decoded manifest document.

        Raises:
            ValidationError: On any structural problem, including a missing
                ``checksum``.
        """
        context = context or {}
        if not isinstance(document, dict):
            raise ValidationError(
                message="Manifest must be a JSON object",
                error_code="INVALID_MANIFEST",
                details={**context, "type": type(document).__name__},
            )
        try:
            return Inventory.model_validate(document)
        except pydantic.ValidationError as exc:
            problems = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ValidationError(
                message=f"Manifest failed validation: {'; '.join(problems)}",
                error_code="INVALID_MANIFEST",
                details={**context, "errors": problems},
            ) from exc

    @staticmethod
    def find_cargo(inventory: Inventory, name: str) -> Optional[CargoDescriptor]:
        """Look up cargo ``name``, with or without a leading ``./``."""
        wanted = strip_relative_prefix(name)
        direct = inventory.cargo.get(name)
        if direct is not None:
            return direct
        for key, descriptor in inventory.cargo.items():
            if strip_relative_prefix(key) == wanted:
                return descriptor
        return None
