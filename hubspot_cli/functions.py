"""Deployed serverless functions: routes, dependency builds and execution logs."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from hubspot_cli.constants import BUILD_TERMINAL_STATUSES, POLLING_DELAY
from hubspot_cli.errors import HubSpotError, ValidationError
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

FUNCTIONS_API_PATH = "cms/v3/functions"


class BuildFailedError(HubSpotError):
    def __init__(self, message: str, *, status: dict[str, Any]) -> None:
        super().__init__(message)
        self.status = status


def list_routes(client: HubSpotClient) -> list[dict[str, Any]]:
    return (client.get(f"{FUNCTIONS_API_PATH}/routes") or {}).get("objects") or []


def start_build(client: HubSpotClient, folder_path: str) -> str:
    if not folder_path.rstrip("/").endswith(".functions"):
        raise ValidationError(f"'{folder_path}' is not a .functions folder")
    resp = client.post(f"{FUNCTIONS_API_PATH}/build/async", json={"folderPath": folder_path})
    if isinstance(resp, dict):
        return str(resp.get("buildId") or resp.get("id"))
    return str(resp)


def get_build_status(client: HubSpotClient, build_id: str) -> dict[str, Any]:
    return client.get(f"{FUNCTIONS_API_PATH}/build/{build_id}/poll") or {}


def poll(
    fetch: Callable[[], dict[str, Any]],
    *,
    interval: float = POLLING_DELAY,
    timeout: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Call ``fetch`` every ``interval`` seconds until its status is terminal.

    Raises BuildFailedError for any terminal status other than SUCCESS.
    """
    started = time.monotonic()
    while True:
        status = fetch()
        state = str(status.get("status") or "").upper()
        logger.debug("Build status: %s", state or "<none>")
        if state in BUILD_TERMINAL_STATUSES:
            if state != "SUCCESS":
                reason = status.get("errorReason") or status.get("errorMessage") or state
                raise BuildFailedError(f"Build failed: {reason}", status=status)
            return status
        if timeout is not None and time.monotonic() - started > timeout:
            raise HubSpotError(f"Timed out after {timeout:.0f}s waiting for a terminal status")
        sleep(interval)


def deploy_functions(
    client: HubSpotClient,
    folder_path: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    build_id = start_build(client, folder_path)
    logger.debug("Started build %s for %s", build_id, folder_path)
    return poll(lambda: get_build_status(client, build_id), sleep=sleep)


def get_function_logs(
    client: HubSpotClient,
    route: str,
    *,
    limit: int | None = None,
    after: str | None = None,
) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if limit:
        params["limit"] = limit
    if after:
        params["after"] = after
    return client.get(f"{FUNCTIONS_API_PATH}/results/by-route/{route.strip('/')}", params=params) or {}


def get_latest_function_log(client: HubSpotClient, route: str) -> dict[str, Any]:
    return client.get(f"{FUNCTIONS_API_PATH}/results/by-route/{route.strip('/')}/latest") or {}
