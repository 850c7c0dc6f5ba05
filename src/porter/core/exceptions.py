"""
porter.core.exceptions - Custom Exception Hierarchy
=====================================================

Components raise and catch specific exception types that carry contextual
information (warehouse, cargo, URL) instead of bare strings.

Exception Hierarchy:
    PorterError (base)
        ├── ConfigurationError     - Unknown warehouse, invalid host config
        ├── ValidationError        - Malformed manifest, missing exports
        │     └── VersionMismatchError - Warehouse outside the accepted range
        ├── CargoNotFoundError     - Cargo name absent from the inventory
        ├── NetworkError           - Fetch or evaluation failure (retryable)
        ├── LoadTimeoutError       - Per-attempt or overall deadline exceeded (retryable)
        ├── CacheError             - Cache backend failure (never fatal to a load)
        ├── SandboxRevokedError    - Use of a sandbox capability after revoke()
        └── SandboxViolationError  - Bundle source reaches for interpreter internals

Error Handling Flow:
    Loader attempt raises NetworkError / LoadTimeoutError
        → retry() sleeps with backoff and tries again
        → attempts exhausted: the last error reaches Navigator.load_cargo()
    ConfigurationError / ValidationError / CargoNotFoundError / SandboxViolationError
        → propagate on first occurrence, never retried
    CacheError
        → logged by the Navigator and treated as a miss / no-op

Usage:
    >>> from porter.core.exceptions import NetworkError
    >>> raise NetworkError(
    ...     url="http://h/Button.mjs",
    ...     cause=exc,
    ...     details={"warehouse": "ui-kit", "cargo": "./Button"},
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All porter exceptions inherit from this base class so callers can catch
# every library failure with a single except clause:
#
#   try:
#       loaded = await navigator.load_cargo("ui-kit", "./Button")
#   except PorterError as e:
#       logger.error(e.message, error_code=e.error_code, **e.details)
# =============================================================================
class PorterError(Exception):
    """Base exception for all porter errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code (UPPER_SNAKE_CASE).
        details: Arbitrary dict with additional debugging context such as
            the warehouse name, cargo name and URL involved.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
# Fatal, never retried. Raised at startup for invalid config and at load
# time for an unknown warehouse name.
# =============================================================================
class ConfigurationError(PorterError):
    """Raised when host configuration is invalid or incomplete.

    Common Causes:
        - load_cargo() names a warehouse that is not configured
        - An unknown cache strategy tag
        - A malformed porter.yaml

    Example:
        >>> raise ConfigurationError(
        ...     message='Warehouse "billing" is not configured',
        ...     error_code="WAREHOUSE_NOT_FOUND",
        ...     details={"warehouse": "billing", "known": ["ui-kit"]},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Validation Error
# =============================================================================
class ValidationError(PorterError):
    """Raised when fetched data is structurally invalid.

    A manifest that parses but lacks required fields, names a different
    warehouse, or a loaded module missing a required export. Never retried:
    fetching the same document again yields the same document.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class VersionMismatchError(ValidationError):
    """Raised when a warehouse's published version is outside the accepted range."""

    def __init__(
        self,
        required: str,
        found: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["required"] = required
        enriched_details["found"] = found

        super().__init__(
            message=f'Version mismatch: required "{required}", found "{found}"',
            error_code="VERSION_MISMATCH",
            details=enriched_details,
        )

        self.required = required
        self.found = found


# =============================================================================
# Cargo Not Found Error
# =============================================================================
class CargoNotFoundError(PorterError):
    """Raised when the requested cargo is absent from a warehouse's inventory.

    Attributes:
        cargo: The cargo name as requested by the caller.
        warehouse: The warehouse whose inventory was searched.
    """

    def __init__(
        self,
        cargo: str,
        warehouse: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["cargo"] = cargo
        enriched_details["warehouse"] = warehouse

        super().__init__(
            message=f'Cargo "{cargo}" not found in warehouse "{warehouse}"',
            error_code="CARGO_NOT_FOUND",
            details=enriched_details,
        )

        self.cargo = cargo
        self.warehouse = warehouse


# =============================================================================
# Transport Errors (retryable)
# =============================================================================
# NetworkError and LoadTimeoutError are the only exceptions retry() will
# retry. Everything else propagates on first occurrence.
# =============================================================================
class NetworkError(PorterError):
    """Raised when fetching or evaluating a remote resource fails.

    Attributes:
        url: The URL that could not be loaded.
        cause: The underlying exception (HTTP error, syntax error, ...).
    """

    def __init__(
        self,
        url: str,
        cause: Optional[BaseException] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["url"] = url
        if cause is not None:
            enriched_details["cause"] = f"{type(cause).__name__}: {cause}"

        reason = str(cause) if cause is not None else "Unknown error"
        super().__init__(
            message=f'Network error loading "{url}": {reason}',
            error_code="NETWORK_ERROR",
            details=enriched_details,
        )

        self.url = url
        self.cause = cause


class LoadTimeoutError(PorterError):
    """Raised when loading a resource exceeds its deadline.

    Attributes:
        url: The URL whose load timed out.
        timeout_seconds: The deadline that was exceeded.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["url"] = url
        enriched_details["timeout_seconds"] = timeout_seconds

        super().__init__(
            message=f'Loading "{url}" timed out after {timeout_seconds}s',
            error_code="LOAD_TIMEOUT",
            details=enriched_details,
        )

        self.url = url
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Cache Error
# =============================================================================
# Never fatal to a load: the Navigator logs it and degrades to a cache
# miss (get/has) or a no-op (set/delete).
# =============================================================================
class CacheError(PorterError):
    """Raised when a cache backend operation fails.

    Attributes:
        operation: The cache operation that failed ("get", "set", "create", ...).
        detail: Backend-specific reason, if any.
    """

    def __init__(
        self,
        operation: str,
        detail: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["operation"] = operation

        suffix = f": {detail}" if detail else ""
        super().__init__(
            message=f"Cache {operation} failed{suffix}",
            error_code="CACHE_ERROR",
            details=enriched_details,
        )

        self.operation = operation
        self.detail = detail


class SandboxRevokedError(PorterError):
    """Raised when bundle code uses a sandbox capability after revocation."""

    def __init__(self, capability: str) -> None:
        super().__init__(
            message=f'Sandbox capability "{capability}" has been revoked',
            error_code="SANDBOX_REVOKED",
            details={"capability": capability},
        )


class SandboxViolationError(PorterError):
    """Raised when bundle source reaches for interpreter internals.

    Bundles may not name dunder identifiers, read underscore-prefixed
    attributes, or touch frame and generator internals. The check runs on
    the parsed source before any of it executes.
    """

    def __init__(self, url: str, identifier: str, line: Optional[int] = None) -> None:
        super().__init__(
            message=f'Bundle "{url}" uses forbidden identifier "{identifier}"',
            error_code="SANDBOX_VIOLATION",
            details={"url": url, "identifier": identifier, "line": line},
        )
        self.url = url
        self.identifier = identifier
