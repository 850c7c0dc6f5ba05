"""
Shared Test Fixtures for porter
=================================

Reusable pytest fixtures, organized by layer:

    1. Sample payloads (manifest documents, module sources)
    2. Fake warehouse (httpx.MockTransport with request counting)
    3. Configuration
    4. Components (capabilities, cache, loader, resolver)
    5. Navigator

No test touches the network: every HTTP request goes through a
``FakeWarehouse`` mounted on an ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import Any, Optional

import httpx
import pytest

from porter.cache.memory import MemoryCache
from porter.core.config import LoadingConfig, PorterConfig
from porter.core.enums import Environment
from porter.core.models import RetryPolicy
from porter.loaders.headless import HeadlessModuleLoader
from porter.navigator import Navigator
from porter.orchestration.formats import EnvironmentCapabilities
from porter.orchestration.manifest import ManifestResolver


# =============================================================================
# Sample Payloads
# =============================================================================
BASE_URL = "http://h/"
MANIFEST_URL = "http://h/porter.inventory.json"

BUTTON_SOURCE = '''
from dataclasses import dataclass

__all__ = ["Button"]


@dataclass
class Button:
    label: str = "OK"

    def render(self) -> str:
        return f"<button>{self.label}</button>"
'''

CJS_SOURCE = '''
def greet(name):
    return "hello " + name

module.exports = {"greet": greet, "version": 1}
'''

UMD_SOURCE = '''
def _factory():
    return {"Card": "card-component"}

if isinstance(exports, dict):
    module.exports = _factory()
elif callable(define) and define.amd:
    define([], _factory)
else:
    window.Card = _factory()["Card"]
'''


def make_manifest(**overrides: Any) -> dict[str, Any]:
    """A valid manifest document for the "ui-kit" warehouse."""
    document: dict[str, Any] = {
        "warehouse": {
            "name": "ui-kit",
            "version": "1.2.0",
            "url": BASE_URL,
            "description": "Shared UI components",
        },
        "cargo": {
            "./Button": {
                "name": "./Button",
                "version": "1.0.0",
                "entry": "Button.mjs",
                "exports": ["Button"],
                "dependencies": {},
                "metadata": {},
            },
            "./utils": {
                "name": "./utils",
                "version": "1.0.0",
                "entry": "./utils.cjs",
                "dependencies": {},
                "metadata": {"format": "cjs"},
            },
            "Card": {
                "name": "Card",
                "version": "0.3.0",
                "entry": "/Card.umd.js",
                "dependencies": {},
                "metadata": {},
            },
        },
        "dependencies": {},
        "timestamp": 1700000000000,
        "checksum": "9f2c1e",
    }
    document.update(overrides)
    return document


# =============================================================================
# Fake Warehouse
# =============================================================================
class FakeWarehouse:
    """Serves canned responses by URL and counts every request."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, str]] = {}
        self.requests: Counter[str] = Counter()

    def serve(self, url: str, body: Any, status: int = 200) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self.routes[url] = (status, text)

    def count(self, url: str) -> int:
        return self.requests[url]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        status, text = self.routes.get(url, (404, "not found"))
        return httpx.Response(status, text=text)


@pytest.fixture
def warehouse() -> FakeWarehouse:
    """Fake "ui-kit" warehouse with a manifest and three cargo payloads."""
    fake = FakeWarehouse()
    fake.serve(MANIFEST_URL, make_manifest())
    fake.serve("http://h/Button.mjs", BUTTON_SOURCE)
    fake.serve("http://h/utils.cjs", CJS_SOURCE)
    fake.serve("http://h/Card.umd.js", UMD_SOURCE)
    return fake


@pytest.fixture
async def client(warehouse: FakeWarehouse):
    """httpx.AsyncClient routed to the fake warehouse."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(warehouse.handler)) as c:
        yield c


# =============================================================================
# Configuration
# =============================================================================
@pytest.fixture
def config() -> PorterConfig:
    """Config with one warehouse and fast retries."""
    return PorterConfig(
        warehouses={"ui-kit": {"url": BASE_URL, "version": "^1.0.0", "alias": "ui"}},
        loading=LoadingConfig(
            timeout=2.0,
            overall_timeout=5.0,
            retry=RetryPolicy(attempts=2, delay=0.01),
        ),
    )


# =============================================================================
# Components
# =============================================================================
@pytest.fixture
def headless_capabilities() -> EnvironmentCapabilities:
    return EnvironmentCapabilities.for_environment(Environment.HEADLESS)


@pytest.fixture
def ui_capabilities() -> EnvironmentCapabilities:
    return EnvironmentCapabilities.for_environment(Environment.UI)


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache(max_size=100)


@pytest.fixture
def headless_loader(
    headless_capabilities: EnvironmentCapabilities, client: httpx.AsyncClient
) -> HeadlessModuleLoader:
    return HeadlessModuleLoader(
        headless_capabilities,
        client,
        timeout=2.0,
        retry_policy=RetryPolicy(attempts=2, delay=0.01),
    )


@pytest.fixture
def resolver(client: httpx.AsyncClient) -> ManifestResolver:
    return ManifestResolver(client)


# =============================================================================
# Navigator
# =============================================================================
def build_navigator(
    config: PorterConfig,
    client: httpx.AsyncClient,
    capabilities: Optional[EnvironmentCapabilities] = None,
    **kwargs: Any,
) -> Navigator:
    return Navigator(
        config,
        client=client,
        capabilities=capabilities
        or EnvironmentCapabilities.for_environment(Environment.HEADLESS),
        **kwargs,
    )


@pytest.fixture
def navigator(config: PorterConfig, client: httpx.AsyncClient) -> Navigator:
    """Headless Navigator over the fake warehouse with an in-memory cache."""
    return build_navigator(config, client)
