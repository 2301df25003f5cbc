"""FastAPI server that exposes each declared route of a functions folder."""

from __future__ import annotations

import json
import logging
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from hubspot_cli.constants import DEFAULT_FUNCTION_PORT, MAX_RUNTIME
from hubspot_cli.serverless.context import MOCK_KEYS, build_context, read_dotenv
from hubspot_cli.serverless.logs import format_log
from hubspot_cli.serverless.manifest import FunctionManifest, load_manifest
from hubspot_cli.serverless.registry import HandlerRegistry, RegistryHolder
from hubspot_cli.serverless.runtime import (
    LogCollector,
    install_stdout_capture,
    invoke,
    uninstall_stdout_capture,
)

logger = logging.getLogger(__name__)

ROUTE_PATH_PREFIX = "_hcms/api/"
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def _accepts(methods: tuple[str, ...], method: str) -> bool:
    # HEAD is answered by the GET handler, as express does.
    return method in methods or (method == "HEAD" and "GET" in methods)


def stage_folder(folder: Path) -> Path:
    """Copy the functions folder into a fresh temp dir and return the copy."""
    tmp = Path(tempfile.mkdtemp(prefix="hs-functions-"))
    dest = tmp / folder.name
    shutil.copytree(folder, dest)
    logger.debug("Staged %s at %s", folder, dest)
    return dest


def cleanup_staging(staged: Path | None) -> None:
    if staged is None:
        return
    shutil.rmtree(staged.parent, ignore_errors=True)
    logger.debug("Removed staging dir %s", staged.parent)


def snapshot(folder: Path) -> dict[str, float]:
    out: dict[str, float] = {}
    for p in folder.rglob("*"):
        if p.is_file() and "__pycache__" not in p.parts:
            out[str(p)] = p.stat().st_mtime
    return out


class PollingWatcher(threading.Thread):
    """Calls ``on_change`` when any file under ``folder`` is added, removed or modified."""

    def __init__(self, folder: Path, on_change, *, interval: float = 1.0) -> None:
        super().__init__(daemon=True, name="hs-functions-watcher")
        self.folder = folder
        self.on_change = on_change
        self.interval = interval
        self._stop = threading.Event()
        self._last = snapshot(folder)

    def run(self) -> None:
        while not self._stop.wait(self.interval):
            current = snapshot(self.folder)
            if current != self._last:
                changed = sorted(set(current) ^ set(self._last) | {k for k in current if self._last.get(k) != current[k]})
                self._last = current
                try:
                    self.on_change(changed)
                except Exception:  # noqa: BLE001 - keep watching after a bad reload
                    logger.exception("Reload failed")

    def stop(self) -> None:
        self._stop.set()


class FunctionServer:
    def __init__(
        self,
        path: str | Path,
        *,
        account_id: int | None = None,
        port: int = DEFAULT_FUNCTION_PORT,
        contact: bool = True,
        watch: bool = False,
        log_output: bool = False,
        watch_interval: float = 1.0,
        max_runtime: int = MAX_RUNTIME,
    ) -> None:
        self.manifest: FunctionManifest = load_manifest(path)
        self.account_id = account_id
        self.port = port
        self.contact = contact
        self.watch = watch
        self.log_output = log_output
        self.watch_interval = watch_interval
        self.max_runtime = max_runtime
        self._staged: Path | None = None
        self._holder: RegistryHolder | None = None
        self._watcher: PollingWatcher | None = None
        self._reload_lock = threading.Lock()

    @property
    def registry(self) -> HandlerRegistry:
        if self._holder is None:
            raise RuntimeError("FunctionServer.start() has not been called")
        return self._holder.current

    def start(self) -> None:
        self._staged = stage_folder(self.manifest.folder)
        self._holder = RegistryHolder(HandlerRegistry.build(self.manifest, self._staged))
        install_stdout_capture()
        if self.watch:
            self._watcher = PollingWatcher(self.manifest.folder, self._on_change, interval=self.watch_interval)
            self._watcher.start()

    def _on_change(self, changed: list[str]) -> None:
        logger.info("Restarting server: changes detected to %s", ", ".join(changed[:3]))
        self.reload()

    def reload(self) -> None:
        with self._reload_lock:
            manifest = load_manifest(self.manifest.folder)
            staged = stage_folder(manifest.folder)
            registry = HandlerRegistry.build(manifest, staged)
            self.manifest = manifest
            old_staged, self._staged = self._staged, staged
            self._holder.swap(registry)
            cleanup_staging(old_staged)

    def close(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        uninstall_stdout_capture()
        cleanup_staging(self._staged)
        self._staged = None
        logger.info("Local function test server closed.")

    def endpoint_table(self) -> str:
        base = f"http://localhost:{self.port}"
        rows = [("Endpoint", "Methods", "Secrets", "Environment Variables")]
        for route in self.manifest.routes.values():
            env_names = [
                f"{k}*" if k in MOCK_KEYS else k
                for k in {**self.manifest.environment, **route.local_environment}
            ]
            rows.append((f"{base}/{route.route}", ", ".join(route.methods), ", ".join(route.secret_names), ", ".join(env_names)))
        widths = [max(len(r[i]) for r in rows) for i in range(4)]
        return "\n".join("  ".join(c.ljust(w) for c, w in zip(r, widths)).rstrip() for r in rows)

    async def _read_body(self, request: Request) -> Any:
        raw = await request.body()
        if not raw:
            return None
        ctype = request.headers.get("content-type", "")
        if "application/json" in ctype:
            try:
                return json.loads(raw)
            except ValueError:
                return raw.decode("utf-8", errors="replace")
        if "application/x-www-form-urlencoded" in ctype:
            form = await request.form()
            return {k: v for k, v in form.items()}
        return raw.decode("utf-8", errors="replace")

    def create_app(self) -> FastAPI:
        app = FastAPI(title="HubSpot local functions")

        @app.api_route("/{full_path:path}", methods=ALL_METHODS)
        async def dispatch(full_path: str, request: Request) -> Response:
            route_path = full_path
            if route_path.startswith(ROUTE_PATH_PREFIX):
                route_path = route_path[len(ROUTE_PATH_PREFIX) :]
            registry = self.registry
            entry = registry.get(route_path)
            if entry is None or not _accepts(entry.route.methods, request.method):
                return JSONResponse(status_code=404, content={"message": f"No function for {request.method} /{route_path}"})
            if not entry.ok:
                return JSONResponse(status_code=500, content={"message": entry.error})

            context = build_context(
                manifest=registry.manifest,
                route=entry.route,
                method=request.method,
                headers=dict(request.headers),
                query=list(request.query_params.multi_items()),
                body=await self._read_body(request),
                dotenv=read_dotenv(registry.manifest.folder),
                account_id=self.account_id,
                contact=self.contact,
            )
            collector = LogCollector(echo=sys.__stdout__ if self.log_output else None)
            result = await invoke(entry.handler, context, collector=collector, ceiling_ms=self.max_runtime)
            self.log_record(result.record.to_dict(), route=entry.route.route)

            if isinstance(result.body, (dict, list)) or result.body is None:
                return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)
            if isinstance(result.body, (bytes, bytearray)):
                return Response(status_code=result.status_code, content=bytes(result.body), headers=result.headers)
            return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)

        return app

    def log_record(self, record: dict[str, Any], *, route: str) -> None:
        logger.info(format_log(record, header=f"/{route}"))
        if record.get("executionTime", 0) > self.max_runtime:
            logger.warning(
                "Function runtime %sms exceeded maximum runtime of %sms.", record["executionTime"], self.max_runtime
            )

    def serve(self) -> None:
        """Run until SIGINT; staging is always removed on the way out."""
        import uvicorn

        self.start()
        try:
            logger.info("Local test server running at http://localhost:%d", self.port)
            logger.info(self.endpoint_table())
            server = uvicorn.Server(
                uvicorn.Config(self.create_app(), host="127.0.0.1", port=self.port, log_level="warning")
            )
            # uvicorn turns SIGINT/SIGTERM into a graceful exit of run().
            server.run()
        finally:
            self.close()
