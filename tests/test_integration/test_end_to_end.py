"""
End-to-End Integration Tests for porter
=========================================

These tests run the full resolution path with real components: YAML
config, probe, Navigator, resolver, negotiator, loader, sandbox and cache.
Only the network is faked.

Test Scenarios:
    1. Headless host loads a native module cargo by its "./" name
    2. UI host loads a global-script cargo onto the shared window
    3. Host preloads a warehouse and reads everything back from cache
"""

from __future__ import annotations

import pytest

from porter import Navigator
from porter.core.enums import CargoLoadState, Environment, ModuleFormat
from porter.orchestration import events
from porter.orchestration.formats import EnvironmentCapabilities
from tests.conftest import BASE_URL, build_navigator


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "porter.yaml"
    path.write_text(
        "log_level: INFO\n"
        "warehouses:\n"
        "  ui-kit:\n"
        f"    url: {BASE_URL}\n"
        "    version: '>=1.0.0'\n"
        "    alias: ui\n"
        "cache:\n"
        "  strategy: memory\n"
        "  max_size: 10\n"
        "loading:\n"
        "  environment: headless\n"
        "  timeout: 2\n"
        "  retry:\n"
        "    attempts: 2\n"
        "    delay: 0.01\n"
    )
    return str(path)


async def test_headless_host_loads_native_cargo(config_file, client, warehouse) -> None:
    async with Navigator.from_config_file(config_file, client=client) as navigator:
        loaded = await navigator.load_cargo("ui-kit", "./Button")

        assert loaded.url == "http://h/Button.mjs"
        assert loaded.format is ModuleFormat.ESM
        button = loaded.module.Button(label="Ship")
        assert button.render() == "<button>Ship</button>"
        assert navigator.get_load_state("ui", "./Button") is CargoLoadState.LOADED


async def test_ui_host_loads_global_script_cargo(config, client, warehouse) -> None:
    warehouse.serve(
        "http://h/porter.inventory.json",
        {
            "warehouse": {"name": "ui-kit", "version": "1.4.0", "url": BASE_URL},
            "cargo": {
                "./Theme": {"name": "./Theme", "entry": "theme.iife.js"},
                "./Banner": {"name": "./Banner", "entry": "banner.iife.js"},
            },
            "checksum": "c0ffee",
        },
    )
    warehouse.serve("http://h/theme.iife.js", "window.Theme = {'accent': 'teal'}\n")
    warehouse.serve(
        "http://h/banner.iife.js",
        "document.addEventListener('DOMContentLoaded', lambda event: None)\n"
        "window.Banner = 'banner:' + window.Theme['accent']\n",
    )
    navigator = build_navigator(
        config, client, EnvironmentCapabilities.for_environment(Environment.UI)
    )

    theme = await navigator.load_cargo("ui-kit", "./Theme")
    banner = await navigator.load_cargo("ui-kit", "./Banner")

    assert theme.format is ModuleFormat.IIFE
    assert theme.module == {"Theme": {"accent": "teal"}}
    assert banner.module == {"Banner": "banner:teal"}


async def test_preload_then_serve_from_cache(navigator, warehouse) -> None:
    hits: list[str] = []
    navigator.on(events.CACHE_HIT, lambda payload: hits.append(payload["cargo"]))

    await navigator.preload("ui")
    for name in ("./Button", "./utils", "Card"):
        await navigator.load_cargo("ui-kit", name)

    assert sorted(hits) == ["./Button", "./utils", "Card"]
    assert warehouse.count("http://h/porter.inventory.json") == 1
    assert await navigator.get_cache().size() == 4
