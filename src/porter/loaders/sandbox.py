"""
porter.loaders.sandbox - Revocable Bundle Sandbox
===================================================

Evaluates a fetched global-script bundle (UMD/CJS/AMD/IIFE/System) in an
isolated namespace instead of the caller's own globals.

Namespace Layout:
    __builtins__   restricted copy: no open/eval/exec/compile/input/
                   breakpoint/globals/locals/vars, guarded __import__ and
                   getattr/hasattr/setattr/delattr
    module         record whose ``exports`` starts as the ``exports`` dict
    exports        the CommonJS exports dict
    require        allow-listed synchronous require (plain function)
    define         AMD function (``define.amd`` is set)
    System         namespace holding ``System.register``
    window / self  inert global object (assigned names become exports)
    document       inert DOM stand-in (no-op methods)
    location       derived from the bundle URL
    navigator      inert user-agent stand-in

Source Check:
    The bundle is parsed before it runs. Dunder names, underscore-prefixed
    attributes and frame/generator internals are rejected with
    SandboxViolationError, so nothing injected can be walked back to the
    loader's own globals. Imported modules are handed out as read-only
    views that hide submodules outside the allow-list.

Lifecycle:
    with BundleSandbox(url, allowed_modules=...) as sandbox:
        exports = sandbox.run(source)
    # on exit every injected capability raises SandboxRevokedError

Bundle-defined names stay in the namespace after revocation: exported
functions resolve their globals through it.

Errors whose message mentions addEventListener, document or window come
from UI-only code paths; they are logged and swallowed. Every other
error propagates.
"""

from __future__ import annotations

import ast
import builtins
import importlib
from types import ModuleType, SimpleNamespace
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

import structlog

from porter.core.exceptions import SandboxRevokedError, SandboxViolationError
from porter.loaders.native import is_allowed


logger = structlog.get_logger()

FORBIDDEN_BUILTINS = frozenset(
    {
        "open",
        "eval",
        "exec",
        "compile",
        "input",
        "breakpoint",
        "globals",
        "locals",
        "vars",
        "help",
        "exit",
        "quit",
    }
)

# Builtins whose names start with an underscore but that bundle code needs.
KEPT_PRIVATE_BUILTINS = frozenset({"__build_class__"})

# Attribute names that expose frames, code objects or the class hierarchy.
FORBIDDEN_ATTRIBUTES = frozenset(
    {
        "gi_frame",
        "gi_code",
        "gi_yieldfrom",
        "cr_frame",
        "cr_code",
        "cr_await",
        "ag_frame",
        "ag_code",
        "ag_await",
        "f_back",
        "f_builtins",
        "f_code",
        "f_globals",
        "f_locals",
        "tb_frame",
        "tb_next",
        "mro",
    }
)

UI_ERROR_MARKERS = ("addEventListener", "document", "window")

_MISSING = object()


# =============================================================================
# Source Check
# =============================================================================
def is_forbidden_attribute(name: str) -> bool:
    return name.startswith("_") or name in FORBIDDEN_ATTRIBUTES


def check_source(source: str, url: str) -> ast.Module:
    """Parse ``source`` and reject any reach for interpreter internals.

    Raises:
        SyntaxError: The source does not parse.
        SandboxViolationError: A forbidden name or attribute is used.
    """
    tree = ast.parse(source, filename=url, mode="exec")
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and is_forbidden_attribute(node.attr):
            raise SandboxViolationError(url, node.attr, node.lineno)
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise SandboxViolationError(url, node.id, node.lineno)
        if isinstance(node, ast.alias) and any(
            part.startswith("_") for part in node.name.split(".")
        ):
            raise SandboxViolationError(url, node.name, getattr(node, "lineno", None))
    return tree


def safe_getattr(obj: Any, name: str, *default: Any) -> Any:
    if isinstance(name, str) and is_forbidden_attribute(name):
        if default:
            return default[0]
        raise AttributeError(f"attribute {name!r} is not reachable from the sandbox")
    return getattr(obj, name, *default)


def safe_hasattr(obj: Any, name: str) -> bool:
    if isinstance(name, str) and is_forbidden_attribute(name):
        return False
    return hasattr(obj, name)


def safe_setattr(obj: Any, name: str, value: Any) -> None:
    if isinstance(name, str) and is_forbidden_attribute(name):
        raise AttributeError(f"attribute {name!r} is not writable from the sandbox")
    setattr(obj, name, value)


def safe_delattr(obj: Any, name: str) -> None:
    if isinstance(name, str) and is_forbidden_attribute(name):
        raise AttributeError(f"attribute {name!r} is not writable from the sandbox")
    delattr(obj, name)


class ModuleView:
    """Read-only view of an allow-listed module.

    Public attributes pass through. Submodules are wrapped again when they
    are allow-listed and hidden otherwise.
    """

    def __init__(self, module: ModuleType, allowed: frozenset[str]) -> None:
        object.__setattr__(self, "_module", module)
        object.__setattr__(self, "_allowed", allowed)

    def __getattr__(self, name: str) -> Any:
        if is_forbidden_attribute(name):
            raise AttributeError(name)
        value = getattr(self._module, name)
        if isinstance(value, ModuleType):
            if not is_allowed(value.__name__, self._allowed):
                raise AttributeError(
                    f"module {value.__name__!r} is not permitted in the sandbox"
                )
            return ModuleView(value, self._allowed)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"module {self._module.__name__!r} is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"module {self._module.__name__!r} is read-only")

    def __dir__(self) -> list[str]:
        return [name for name in dir(self._module) if not is_forbidden_attribute(name)]

    def __repr__(self) -> str:
        return f"<sandboxed module {self._module.__name__!r}>"


# =============================================================================
# Inert UI Stand-ins
# =============================================================================
class _Revocable:
    """Base for stand-ins that stop working once the sandbox is revoked."""

    def __init__(self, sandbox: "BundleSandbox") -> None:
        object.__setattr__(self, "_sandbox", sandbox)

    def _check(self, capability: str) -> None:
        self._sandbox._ensure_active(capability)


class EventTargetStub(_Revocable):
    def addEventListener(self, *args: Any, **kwargs: Any) -> None:
        self._check("addEventListener")

    def removeEventListener(self, *args: Any, **kwargs: Any) -> None:
        self._check("removeEventListener")

    def dispatchEvent(self, event: Any) -> bool:
        self._check("dispatchEvent")
        return True


class ElementStub(EventTargetStub):
    def __init__(self, sandbox: "BundleSandbox", tag: str = "div") -> None:
        super().__init__(sandbox)
        self.tagName = tag.upper()
        self.style: dict[str, Any] = {}
        self.children: list[Any] = []
        self.attributes: dict[str, Any] = {}

    def appendChild(self, child: Any) -> Any:
        self._check("appendChild")
        self.children.append(child)
        return child

    def removeChild(self, child: Any) -> Any:
        self._check("removeChild")
        if child in self.children:
            self.children.remove(child)
        return child

    def setAttribute(self, name: str, value: Any) -> None:
        self._check("setAttribute")
        self.attributes[name] = value

    def getAttribute(self, name: str) -> Any:
        return self.attributes.get(name)


class DocumentStub(EventTargetStub):
    def __init__(self, sandbox: "BundleSandbox") -> None:
        super().__init__(sandbox)
        self.readyState = "complete"
        self.head = ElementStub(sandbox, "head")
        self.body = ElementStub(sandbox, "body")

    def createElement(self, tag: str) -> ElementStub:
        self._check("createElement")
        return ElementStub(self._sandbox, tag)

    def getElementById(self, element_id: str) -> None:
        self._check("getElementById")
        return None

    def querySelector(self, selector: str) -> None:
        self._check("querySelector")
        return None

    def querySelectorAll(self, selector: str) -> list[Any]:
        self._check("querySelectorAll")
        return []


class LocationStub:
    """Location-shaped object derived from the bundle URL."""

    def __init__(self, url: str) -> None:
        parts = urlsplit(url)
        self.href = url
        self.protocol = f"{parts.scheme}:" if parts.scheme else ""
        self.host = parts.netloc
        self.hostname = parts.hostname or ""
        self.port = str(parts.port) if parts.port else ""
        self.pathname = parts.path or "/"
        self.search = f"?{parts.query}" if parts.query else ""
        self.hash = f"#{parts.fragment}" if parts.fragment else ""
        self.origin = f"{parts.scheme}://{parts.netloc}" if parts.scheme else ""


class NavigatorStub:
    userAgent = "porter-headless"
    language = "en-US"
    onLine = True


class WindowStub(EventTargetStub):
    """Inert global object. Names a bundle assigns onto it become exports."""

    def __init__(
        self, sandbox: "BundleSandbox", document: DocumentStub, location: LocationStub
    ) -> None:
        super().__init__(sandbox)
        object.__setattr__(self, "_assigned", {})
        object.__setattr__(self, "document", document)
        object.__setattr__(self, "location", location)
        object.__setattr__(self, "navigator", NavigatorStub())

    def __setattr__(self, name: str, value: Any) -> None:
        self._check(f"window.{name}")
        self._assigned[name] = value

    def __getattr__(self, name: str) -> Any:
        assigned = object.__getattribute__(self, "_assigned")
        if name in assigned:
            return assigned[name]
        raise AttributeError(f"window has no attribute {name!r}")

    def rebind(self, sandbox: "BundleSandbox", location: LocationStub) -> None:
        """Attach a shared window to a new sandbox (UI global object)."""
        object.__setattr__(self, "_sandbox", sandbox)
        object.__setattr__(self, "location", location)
        for stub in (self.document, self.document.head, self.document.body):
            object.__setattr__(stub, "_sandbox", sandbox)

    def assigned(self) -> dict[str, Any]:
        return dict(self._assigned)


# =============================================================================
# Module-system Collectors
# =============================================================================
class ModuleRecord:
    """CommonJS ``module`` object."""

    def __init__(self, exports: dict[str, Any]) -> None:
        self.exports: Any = exports


class DefineCollector(_Revocable):
    """AMD ``define([deps], factory)`` executed synchronously."""

    def __init__(self, sandbox: "BundleSandbox") -> None:
        super().__init__(sandbox)
        self.amd: dict[str, Any] = {"porter": True}
        self.called = False

    def __call__(self, *args: Any) -> None:
        self._check("define")
        parts = list(args)
        if parts and isinstance(parts[0], str):
            parts.pop(0)
        factory = parts.pop() if parts else None
        dependencies = parts[0] if parts else []

        self.called = True
        if not callable(factory):
            self._sandbox.module.exports = factory
            return
        resolved = [self._sandbox.resolve_dependency(dep) for dep in dependencies]
        result = factory(*resolved)
        if result is not None:
            self._sandbox.module.exports = result


class SystemCollector(_Revocable):
    """``System.register(deps, declare)`` executed synchronously."""

    def __init__(self, sandbox: "BundleSandbox") -> None:
        super().__init__(sandbox)
        self.registered = False

    def register(self, *args: Any) -> None:
        self._check("System.register")
        parts = list(args)
        if parts and isinstance(parts[0], str):
            parts.pop(0)
        declare = parts.pop()
        dependencies = parts[0] if parts else []

        exported: dict[str, Any] = {}

        def _export(name: Any, value: Any = None) -> Any:
            if isinstance(name, dict):
                exported.update(name)
                return name
            exported[name] = value
            return value

        declaration = declare(_export, {"id": self._sandbox.url})
        setters = _field(declaration, "setters") or []
        for setter, dependency in zip(setters, dependencies):
            if callable(setter):
                setter(self._sandbox.resolve_dependency(dependency))
        execute = _field(declaration, "execute")
        if callable(execute):
            execute()

        self.registered = True
        self._sandbox.module.exports = exported


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


# =============================================================================
# BundleSandbox
# =============================================================================
class BundleSandbox:
    """Isolated, revocable namespace for evaluating one bundle.

    Attributes:
        url: Where the bundle was fetched from (drives ``location``).
        allowed_modules: Module names ``require``/``import`` may resolve.

    Example:
        >>> with BundleSandbox("http://h/lib.umd.py", allowed_modules=["math"]) as box:
        ...     exports = box.run("module.exports = {'answer': 42}")
        >>> exports["answer"]
        42
    """

    def __init__(
        self,
        url: str,
        *,
        allowed_modules: Iterable[str] = (),
        window: Optional[WindowStub] = None,
    ) -> None:
        self.url = url
        self.allowed_modules = frozenset(allowed_modules)
        self._revoked = False
        self._logger = logger.bind(component="bundle_sandbox", url=url)

        location = LocationStub(url)
        if window is None:
            window = WindowStub(self, DocumentStub(self), location)
        else:
            window.rebind(self, location)
        self.window = window
        self._window_baseline = window.assigned()

        self.exports: dict[str, Any] = {}
        self.module = ModuleRecord(self.exports)
        self.define = DefineCollector(self)
        self.system = SystemCollector(self)
        self.namespace = self._build_namespace()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def __enter__(self) -> "BundleSandbox":
        self._ensure_active("enter")
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.revoke()

    @property
    def revoked(self) -> bool:
        return self._revoked

    def revoke(self) -> None:
        """Disable every injected capability. Idempotent."""
        if not self._revoked:
            self._revoked = True
            self._logger.debug("sandbox_revoked")

    def _ensure_active(self, capability: str) -> None:
        if self._revoked:
            raise SandboxRevokedError(capability)

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------
    def require(self, name: str) -> ModuleView:
        self._ensure_active("require")
        if not is_allowed(name, self.allowed_modules):
            raise ImportError(f"require({name!r}) is not permitted in the sandbox")
        return ModuleView(importlib.import_module(name), self.allowed_modules)

    def _guarded_import(
        self,
        name: str,
        globals: Optional[dict[str, Any]] = None,
        locals: Optional[dict[str, Any]] = None,
        fromlist: Any = (),
        level: int = 0,
    ) -> ModuleView:
        self._ensure_active("import")
        if level != 0:
            raise ImportError("relative imports are not permitted in the sandbox")
        if not is_allowed(name, self.allowed_modules):
            raise ImportError(f"import of {name!r} is not permitted in the sandbox")
        module = builtins.__import__(name, None, None, fromlist, level)
        return ModuleView(module, self.allowed_modules)

    def resolve_dependency(self, name: str) -> Any:
        """Resolve an AMD/System dependency name."""
        if name == "exports":
            return self.exports
        if name == "module":
            return self.module
        if name == "require":
            return self.namespace["require"]
        return self.require(name)

    def _build_namespace(self) -> dict[str, Any]:
        safe_builtins = {
            key: value
            for key, value in vars(builtins).items()
            if key not in FORBIDDEN_BUILTINS
            and (not key.startswith("_") or key in KEPT_PRIVATE_BUILTINS)
        }
        safe_builtins.update(
            __import__=self._guarded_import,
            getattr=safe_getattr,
            hasattr=safe_hasattr,
            setattr=safe_setattr,
            delattr=safe_delattr,
        )

        def require(name: str) -> ModuleView:
            return self.require(name)

        def define(*args: Any) -> None:
            self.define(*args)

        def register(*args: Any) -> None:
            self.system.register(*args)

        define.amd = self.define.amd
        return {
            "__builtins__": safe_builtins,
            "__name__": "porter_bundle",
            "module": self.module,
            "exports": self.exports,
            "require": require,
            "define": define,
            "System": SimpleNamespace(register=register),
            "window": self.window,
            "self": self.window,
            "globalThis": self.window,
            "document": self.window.document,
            "location": self.window.location,
            "navigator": self.window.navigator,
        }

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------
    def run(self, source: str) -> Any:
        """Evaluate ``source`` and return the bundle's export surface.

        Raises:
            SandboxRevokedError: The sandbox was already revoked.
            SandboxViolationError: The source reaches for interpreter internals.
            Exception: Any evaluation error not caused by a UI-only API.
        """
        self._ensure_active("run")
        code = compile(check_source(source, self.url), self.url, "exec")
        try:
            exec(code, self.namespace)
        except Exception as exc:
            message = str(exc)
            if not any(marker in message for marker in UI_ERROR_MARKERS):
                raise
            self._logger.warning(
                "bundle_ui_error_ignored",
                error=message,
                error_type=type(exc).__name__,
            )
        return self.extract_exports()

    def extract_exports(self) -> Any:
        """The module-exports object, else names assigned onto ``window``."""
        exported = self.module.exports
        if exported is not self.exports:
            return exported
        if self.exports:
            return self.exports
        assigned = {
            name: value
            for name, value in self.window.assigned().items()
            if self._window_baseline.get(name, _MISSING) is not value
        }
        if assigned:
            return assigned
        return self.exports
