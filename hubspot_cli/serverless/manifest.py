from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hubspot_cli.constants import FUNCTIONS_FOLDER_SUFFIX, MAX_SECRETS, SERVERLESS_CONFIG_FILE
from hubspot_cli.errors import ServerlessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionRoute:
    route: str
    methods: tuple[str, ...]
    file: str
    secret_names: tuple[str, ...] = ()
    local_environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FunctionManifest:
    folder: Path
    runtime: str | None
    environment: dict[str, str]
    secrets: tuple[str, ...]
    routes: dict[str, FunctionRoute]


def resolve_functions_folder(path: str | Path) -> Path:
    """Accept the folder with or without its ``.functions`` suffix."""
    p = Path(path).expanduser()
    if not p.name.endswith(FUNCTIONS_FOLDER_SUFFIX):
        p = p.with_name(p.name + FUNCTIONS_FOLDER_SUFFIX)
    p = p.resolve()
    if not p.exists():
        raise ServerlessError(f"The path {p} does not exist.")
    if not p.is_dir():
        raise ServerlessError(f"{p} is not a valid functions directory.")
    return p


def _methods(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ("GET",)
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise ServerlessError(f"Invalid endpoint method: {raw!r}")
    return tuple(str(m).upper() for m in raw)


def _str_map(raw: Any, what: str) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ServerlessError(f"'{what}' in {SERVERLESS_CONFIG_FILE} must be an object")
    return {str(k): str(v) for k, v in raw.items()}


def parse_manifest(folder: Path, data: Any) -> FunctionManifest:
    if not isinstance(data, dict):
        raise ServerlessError(f"{folder / SERVERLESS_CONFIG_FILE} must contain a JSON object")
    endpoints = data.get("endpoints") or {}
    if not isinstance(endpoints, dict) or not endpoints:
        raise ServerlessError(f"No endpoints found in {folder / SERVERLESS_CONFIG_FILE}.")
    secrets = tuple(str(s) for s in (data.get("secrets") or []))
    if len(secrets) > MAX_SECRETS:
        logger.warning("This function currently exceeds the limit of %d secrets.", MAX_SECRETS)

    routes: dict[str, FunctionRoute] = {}
    for route, entry in endpoints.items():
        if not isinstance(entry, dict) or not entry.get("file"):
            raise ServerlessError(f"Endpoint '{route}' must declare a 'file'")
        name = str(route).strip("/")
        routes[name] = FunctionRoute(
            route=name,
            methods=_methods(entry.get("method")),
            file=str(entry["file"]),
            secret_names=secrets,
            local_environment=_str_map(entry.get("environment"), f"endpoints.{route}.environment"),
        )
    return FunctionManifest(
        folder=folder,
        runtime=data.get("runtime"),
        environment=_str_map(data.get("environment"), "environment"),
        secrets=secrets,
        routes=routes,
    )


def load_manifest(path: str | Path) -> FunctionManifest:
    folder = resolve_functions_folder(path)
    config_path = folder / SERVERLESS_CONFIG_FILE
    if not config_path.is_file():
        raise ServerlessError(f"{config_path} does not exist.")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ServerlessError(f"{config_path} is not valid JSON: {e}") from e
    return parse_manifest(folder, data)
