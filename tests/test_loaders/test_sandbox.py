"""
Tests for porter.loaders.sandbox
==================================

What's Being Tested:
    - Each global-script shape: CommonJS, AMD, System.register, window globals
    - UI-only failures swallowed, every other failure raised
    - Restricted builtins and the import allow-list
    - Rejection of interpreter internals before a bundle runs
    - Revocation
"""

import pytest

from porter.core.exceptions import SandboxRevokedError, SandboxViolationError
from porter.loaders.sandbox import BundleSandbox


URL = "http://h/lib.umd.js"


def sandbox(**kwargs) -> BundleSandbox:
    return BundleSandbox(URL, allowed_modules=["math"], **kwargs)


# =============================================================================
# Test: Module Shapes
# =============================================================================
class TestModuleShapes:
    def test_module_exports_reassignment(self) -> None:
        assert sandbox().run("module.exports = {'answer': 42}") == {"answer": 42}

    def test_exports_mutation(self) -> None:
        assert sandbox().run("exports['answer'] = 42") == {"answer": 42}

    def test_amd_define_with_dependencies(self) -> None:
        exported = sandbox().run("define(['math'], lambda m: {'pi': m.pi})")
        assert exported["pi"] == pytest.approx(3.14159, abs=1e-4)

    def test_amd_exports_dependency(self) -> None:
        source = (
            "def factory(exports):\n"
            "    exports['ready'] = True\n"
            "define(['exports'], factory)\n"
        )
        assert sandbox().run(source) == {"ready": True}

    def test_define_advertises_amd(self) -> None:
        assert sandbox().run("module.exports = bool(define.amd)") is True

    def test_system_register(self) -> None:
        source = (
            "def declare(_export, context):\n"
            "    def execute():\n"
            "        _export('answer', 42)\n"
            "        _export('origin', context['id'])\n"
            "    return {'setters': [], 'execute': execute}\n"
            "System.register([], declare)\n"
        )
        assert sandbox().run(source) == {"answer": 42, "origin": URL}

    def test_window_globals_become_exports(self) -> None:
        assert sandbox().run("window.Widget = 'w'") == {"Widget": "w"}

    def test_location_reflects_bundle_url(self) -> None:
        exported = sandbox().run(
            "module.exports = {'host': location.hostname, 'path': location.pathname}"
        )
        assert exported == {"host": "h", "path": "/lib.umd.js"}

    def test_dom_stubs_are_inert(self) -> None:
        source = (
            "el = document.createElement('div')\n"
            "document.body.appendChild(el)\n"
            "window.addEventListener('load', lambda e: None)\n"
            "module.exports = {'tag': el.tagName}\n"
        )
        assert sandbox().run(source) == {"tag": "DIV"}


# =============================================================================
# Test: Error Handling
# =============================================================================
class TestErrors:
    def test_ui_only_error_is_swallowed(self) -> None:
        source = (
            "exports['before'] = 1\n"
            "raise RuntimeError('window.matchMedia is not a function')\n"
        )
        assert sandbox().run(source) == {"before": 1}

    def test_other_errors_propagate(self) -> None:
        with pytest.raises(KeyError):
            sandbox().run("raise KeyError('boom')")

    def test_forbidden_builtins(self) -> None:
        with pytest.raises(NameError):
            sandbox().run("open('/etc/passwd')")

    def test_import_allow_list(self) -> None:
        assert sandbox().run("import math\nmodule.exports = math.floor(2.5)") == 2
        with pytest.raises(ImportError):
            sandbox().run("import os")

    def test_require_allow_list(self) -> None:
        with pytest.raises(ImportError):
            sandbox().run("require('subprocess')")


# =============================================================================
# Test: Isolation
# =============================================================================
class TestIsolation:
    def test_capability_globals_unreachable(self) -> None:
        source = (
            "g = require.__func__.__globals__\n"
            "module.exports = {\n"
            "    'os': g['importlib'].import_module('os').getpid(),\n"
            "    'open': g['builtins'].open,\n"
            "}\n"
        )
        box = BundleSandbox(URL, allowed_modules=[])
        with pytest.raises(SandboxViolationError) as exc_info:
            box.run(source)

        assert exc_info.value.identifier in ("__func__", "__globals__")
        assert box.exports == {}

    @pytest.mark.parametrize(
        "source",
        [
            "module.exports = define.__closure__",
            "module.exports = System.register.__globals__",
            "module.exports = window._sandbox",
            "module.exports = __loader__",
            "module.exports = __builtins__",
            "gen = (x for x in [1])\nmodule.exports = gen.gi_frame",
            "module.exports = type(require).mro()",
            "from math import __loader__",
        ],
    )
    def test_internals_rejected_before_running(self, source) -> None:
        box = sandbox()
        with pytest.raises(SandboxViolationError):
            box.run(source + "\nwindow.Ran = True")
        assert box.window.assigned() == {}

    def test_string_attribute_access_is_guarded(self) -> None:
        source = (
            "module.exports = {\n"
            "    'globals': getattr(require, '__globals__', None),\n"
            "    'has': hasattr(require, '__closure__'),\n"
            "    'pi': getattr(require('math'), 'pi'),\n"
            "}\n"
        )
        exported = sandbox().run(source)
        assert exported["globals"] is None
        assert exported["has"] is False
        assert exported["pi"] == pytest.approx(3.14159, abs=1e-4)

    def test_getattr_without_default_raises(self) -> None:
        with pytest.raises(AttributeError):
            sandbox().run("getattr(window, '_assigned')")

    def test_unlisted_submodules_hidden(self) -> None:
        box = BundleSandbox(URL, allowed_modules=["dataclasses"])
        with pytest.raises(AttributeError):
            box.run("import dataclasses\nmodule.exports = dataclasses.sys")

    def test_listed_submodules_reachable(self) -> None:
        box = BundleSandbox(URL, allowed_modules=["collections"])
        exported = box.run(
            "import collections.abc\n"
            "module.exports = isinstance({}, collections.abc.Mapping)\n"
        )
        assert exported is True

    def test_modules_are_read_only(self) -> None:
        with pytest.raises(AttributeError):
            sandbox().run("import math\nmath.pi = 3")

    def test_ordinary_classes_still_work(self) -> None:
        source = (
            "from math import sqrt\n"
            "def _factory():\n"
            "    class Point:\n"
            "        def __init__(self, x, y):\n"
            "            self.x = x\n"
            "            self.y = y\n"
            "        def norm(self):\n"
            "            return sqrt(self.x * self.x + self.y * self.y)\n"
            "    return Point\n"
            "module.exports = {'Point': _factory()}\n"
        )
        point = sandbox().run(source)["Point"](3, 4)
        assert point.norm() == 5.0


# =============================================================================
# Test: Revocation
# =============================================================================
class TestRevocation:
    def test_capabilities_revoked_after_context_exit(self) -> None:
        source = (
            "def pi():\n"
            "    return require('math').pi\n"
            "def add(a, b):\n"
            "    return a + b\n"
            "module.exports = {'pi': pi, 'add': add}\n"
        )
        with sandbox() as box:
            exported = box.run(source)
            assert exported["pi"]() == pytest.approx(3.14159, abs=1e-4)

        assert box.revoked
        assert exported["add"](2, 3) == 5
        with pytest.raises(SandboxRevokedError):
            exported["pi"]()

    def test_run_after_revoke(self) -> None:
        box = sandbox()
        box.revoke()
        box.revoke()
        with pytest.raises(SandboxRevokedError):
            box.run("module.exports = 1")


# =============================================================================
# Test: Shared Global Object
# =============================================================================
class TestSharedWindow:
    def test_second_bundle_sees_first_bundle_globals(self) -> None:
        with sandbox() as first:
            assert first.run("window.Shared = 'one'") == {"Shared": "one"}

        with BundleSandbox("http://h/two.iife.js", window=first.window) as second:
            exported = second.run("window.Other = window.Shared + '-two'")

        assert exported == {"Other": "one-two"}
        assert first.window.assigned() == {"Shared": "one", "Other": "one-two"}
