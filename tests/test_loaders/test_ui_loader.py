"""
Tests for porter.loaders.ui
=============================
"""

import pytest

from porter.core.enums import ModuleFormat
from porter.core.exceptions import ValidationError
from porter.core.models import LoadOptions
from porter.loaders.ui import UIModuleLoader


@pytest.fixture
def ui_loader(ui_capabilities, client) -> UIModuleLoader:
    return UIModuleLoader(ui_capabilities, client, timeout=2.0)


class TestUIModuleLoader:
    def test_supported_formats(self, ui_loader) -> None:
        assert ui_loader.supported_formats() == [
            ModuleFormat.ESM,
            ModuleFormat.UMD,
            ModuleFormat.IIFE,
        ]

    async def test_native_module(self, ui_loader) -> None:
        module = await ui_loader.load("http://h/Button.mjs")
        assert module.Button(label="Go").render() == "<button>Go</button>"

    async def test_umd_bundle(self, ui_loader) -> None:
        assert await ui_loader.load("http://h/Card.umd.js") == {"Card": "card-component"}

    @pytest.mark.parametrize("module_format", [ModuleFormat.CJS, ModuleFormat.SYSTEM])
    async def test_unsupported_format_fails_fast(
        self, ui_loader, warehouse, module_format
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await ui_loader.load("http://h/utils.cjs", LoadOptions(format=module_format))

        assert exc_info.value.error_code == "UNSUPPORTED_FORMAT"
        assert warehouse.count("http://h/utils.cjs") == 0

    async def test_cjs_entry_is_rejected(self, ui_loader) -> None:
        with pytest.raises(ValidationError):
            await ui_loader.load("http://h/utils.cjs")

    async def test_bundles_share_one_global_object(self, ui_loader, warehouse) -> None:
        warehouse.serve("http://h/theme.iife.js", "window.Theme = {'accent': 'teal'}\n")
        warehouse.serve(
            "http://h/banner.iife.js",
            "window.Banner = 'banner:' + window.Theme['accent']\n",
        )

        theme = await ui_loader.load("http://h/theme.iife.js")
        banner = await ui_loader.load("http://h/banner.iife.js")

        assert theme == {"Theme": {"accent": "teal"}}
        assert banner == {"Banner": "banner:teal"}
