"""Route table of loaded handler callables.

The registry is built once from a staged copy of the functions folder. Reloads
build a fresh registry and swap it in; nothing is re-imported per request.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from hubspot_cli.serverless.manifest import FunctionManifest, FunctionRoute

logger = logging.getLogger(__name__)

HandlerFn = Callable[[dict[str, Any], Callable[[Any], None]], Any]


@dataclass
class RouteHandler:
    """A route plus its loaded ``main`` callable, or the reason it failed to load."""

    route: FunctionRoute
    handler: HandlerFn | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.handler is not None


def load_handler(path: Path, *, namespace: str) -> HandlerFn:
    if not path.is_file():
        raise FileNotFoundError(f"Handler file {path.name} does not exist")
    module_name = f"_hs_function_{namespace}_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Unable to load {path}")
    mod = importlib.util.module_from_spec(spec)
    # Handlers may import sibling helper modules from their folder.
    sys.path.insert(0, str(path.parent))
    try:
        spec.loader.exec_module(mod)
    finally:
        try:
            sys.path.remove(str(path.parent))
        except ValueError:
            pass
    fn = getattr(mod, "main", None)
    if not callable(fn):
        raise AttributeError(f"{path.name} does not export a main(context, send_response) function")
    return fn


class HandlerRegistry:
    def __init__(self, manifest: FunctionManifest, entries: dict[str, RouteHandler]) -> None:
        self.manifest = manifest
        self._entries = entries

    @classmethod
    def build(cls, manifest: FunctionManifest, staged_dir: Path) -> "HandlerRegistry":
        namespace = hashlib.sha1(str(staged_dir).encode("utf-8")).hexdigest()[:10]
        entries: dict[str, RouteHandler] = {}
        for name, route in manifest.routes.items():
            try:
                fn = load_handler(staged_dir / route.file, namespace=namespace)
                entries[name] = RouteHandler(route=route, handler=fn)
                logger.debug("Loaded handler for /%s from %s", name, route.file)
            except Exception as e:  # noqa: BLE001 - surfaced per request
                logger.warning("Failed to load handler for /%s: %s", name, e)
                entries[name] = RouteHandler(route=route, error=f"{type(e).__name__}: {e}")
        return cls(manifest, entries)

    def get(self, route: str) -> RouteHandler | None:
        return self._entries.get(route.strip("/"))


class RegistryHolder:
    """Holds the current registry; ``swap`` replaces it atomically for reloads."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._lock = threading.Lock()
        self._registry = registry

    @property
    def current(self) -> HandlerRegistry:
        with self._lock:
            return self._registry

    def swap(self, registry: HandlerRegistry) -> HandlerRegistry:
        with self._lock:
            old, self._registry = self._registry, registry
        return old
