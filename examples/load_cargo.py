"""
Load Cargo Example - Resolve One Module From a Warehouse
==========================================================

This example demonstrates the simplest way to use porter: configure one
warehouse, ask the Navigator for a cargo by name, and use what it exports.

The warehouse is served from memory through ``httpx.MockTransport`` so the
example runs offline. Point ``url`` at a real warehouse and drop the
``client=`` argument to load over the network instead.

Usage:
    python examples/load_cargo.py
"""

from __future__ import annotations

import asyncio
import json

import httpx

from porter import Navigator
from porter.core.config import PorterConfig
from porter.core.logging import configure_logging
from porter.core.models import LoadOptions


WAREHOUSE_URL = "http://warehouse.local/"

INVENTORY = {
    "warehouse": {"name": "ui-kit", "version": "1.2.0", "url": WAREHOUSE_URL},
    "cargo": {
        "./Button": {
            "name": "./Button",
            "version": "1.0.0",
            "entry": "Button.mjs",
            "exports": ["Button"],
        },
        "./format": {
            "name": "./format",
            "version": "1.0.0",
            "entry": "format.cjs",
        },
    },
    "checksum": "3b1f9a",
}

BUTTON = '''
__all__ = ["Button"]


class Button:
    def __init__(self, label):
        self.label = label

    def render(self):
        return f"<button>{self.label}</button>"
'''

FORMAT = '''
def money(amount):
    return "$" + format(amount, ",.2f")

module.exports = {"money": money}
'''

FILES = {
    "porter.inventory.json": json.dumps(INVENTORY),
    "Button.mjs": BUTTON,
    "format.cjs": FORMAT,
}


def serve(request: httpx.Request) -> httpx.Response:
    """Answer requests from the in-memory warehouse."""
    name = request.url.path.lstrip("/")
    if name not in FILES:
        return httpx.Response(404, text="not found")
    return httpx.Response(200, text=FILES[name])


async def main() -> None:
    """Load two cargo and print what they produce."""
    configure_logging("WARNING")
    config = PorterConfig(
        warehouses={"ui-kit": {"url": WAREHOUSE_URL, "version": "^1.0.0"}},
    )

    async with httpx.AsyncClient(transport=httpx.MockTransport(serve)) as client:
        navigator = Navigator(config, client=client)
        navigator.on("cargo:loaded", lambda event: print(f"loaded {event['url']}"))

        button = await navigator.load_cargo(
            "ui-kit", "./Button", LoadOptions(exports=["Button"])
        )
        print(button.module.Button("Checkout").render())

        fmt = await navigator.load_cargo("ui-kit", "format")
        print(fmt.module["money"](1234.5))

        # Served from cache: no second fetch.
        again = await navigator.load_cargo("ui-kit", "./Button")
        print(f"same object from cache: {again is button}")

        # Load everything else the warehouse lists.
        await navigator.preload("ui-kit")
        print(f"loaded cargo: {sorted(navigator.get_loaded_cargo())}")


if __name__ == "__main__":
    asyncio.run(main())
