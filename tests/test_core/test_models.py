"""
Tests for porter.core.models
==============================

What's Being Tested:
    - Inventory validation (required checksum, frozen models)
    - CargoDescriptor declared formats from metadata
    - RetryPolicy delay schedule and bounds
    - LoadOptions and LoadedCargo
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from porter.core.enums import ModuleFormat
from porter.core.models import (
    CargoDescriptor,
    Inventory,
    LoadedCargo,
    LoadOptions,
    RetryPolicy,
)
from tests.conftest import make_manifest


class TestInventory:
    """Tests for the Inventory manifest model."""

    def test_valid_manifest(self) -> None:
        inventory = Inventory.model_validate(make_manifest())
        assert inventory.warehouse.name == "ui-kit"
        assert inventory.checksum == "9f2c1e"
        assert inventory.cargo["./Button"].entry == "Button.mjs"
        assert inventory.cargo["./Button"].exports == ["Button"]

    def test_checksum_required(self) -> None:
        document = make_manifest()
        del document["checksum"]
        with pytest.raises(PydanticValidationError):
            Inventory.model_validate(document)

    def test_inventory_is_frozen(self) -> None:
        inventory = Inventory.model_validate(make_manifest())
        with pytest.raises(PydanticValidationError):
            inventory.checksum = "other"  # type: ignore[misc]

    def test_json_round_trip_for_persistent_caches(self) -> None:
        inventory = Inventory.model_validate(make_manifest())
        assert Inventory.model_validate(inventory.model_dump(mode="json")) == inventory


class TestCargoDescriptor:
    """Tests for CargoDescriptor."""

    def test_declared_format_from_metadata(self) -> None:
        descriptor = CargoDescriptor(
            name="utils", entry="utils.cjs", metadata={"format": "CJS"}
        )
        assert descriptor.declared_format == ModuleFormat.CJS

    def test_unknown_declared_format_is_ignored(self) -> None:
        descriptor = CargoDescriptor(
            name="utils", entry="utils.js", metadata={"format": "webpack"}
        )
        assert descriptor.declared_format is None

    def test_format_set_on_copy(self) -> None:
        descriptor = CargoDescriptor(name="Button", entry="Button.mjs")
        resolved = descriptor.model_copy(update={"format": ModuleFormat.ESM})
        assert descriptor.format is None
        assert resolved.format == ModuleFormat.ESM


class TestRetryPolicy:
    """Tests for the deterministic retry schedule."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert (policy.attempts, policy.delay, policy.backoff) == (3, 1.0, 1.0)

    def test_first_attempt_runs_immediately(self) -> None:
        assert RetryPolicy(delay=5.0).delay_before(1) == 0.0

    def test_exponential_schedule(self) -> None:
        policy = RetryPolicy(attempts=4, delay=0.1, backoff=2.0)
        assert [policy.delay_before(n) for n in (2, 3, 4)] == pytest.approx(
            [0.1, 0.2, 0.4]
        )

    def test_fixed_schedule_by_default(self) -> None:
        policy = RetryPolicy(delay=0.5)
        assert policy.delay_before(2) == policy.delay_before(3) == 0.5

    def test_attempts_must_be_positive(self) -> None:
        with pytest.raises(PydanticValidationError):
            RetryPolicy(attempts=0)


class TestLoadOptions:
    """Tests for per-call LoadOptions."""

    def test_defaults(self) -> None:
        options = LoadOptions()
        assert options.cache is True
        assert options.format is None
        assert options.fallback is None

    def test_accepts_callable_fallback(self) -> None:
        options = LoadOptions(fallback=lambda: {"Button": None})
        assert options.fallback() == {"Button": None}

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(PydanticValidationError):
            LoadOptions(timeout=0)


class TestLoadedCargo:
    def test_format_comes_from_descriptor(self) -> None:
        descriptor = CargoDescriptor(
            name="Button", entry="Button.mjs", format=ModuleFormat.ESM
        )
        loaded = LoadedCargo(
            module=object(), descriptor=descriptor, warehouse="ui-kit", url="http://h/Button.mjs"
        )
        assert loaded.format == ModuleFormat.ESM
        assert loaded.loaded_at.tzinfo is not None
