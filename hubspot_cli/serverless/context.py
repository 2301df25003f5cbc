from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from dotenv import dotenv_values

from hubspot_cli.constants import ALLOWED_REQUEST_HEADERS, MOCK_DATA
from hubspot_cli.serverless.manifest import FunctionManifest, FunctionRoute

MOCK_KEYS = (
    "HUBSPOT_ACCOUNT_ID",
    "HUBSPOT_CONTACT_VID",
    "HUBSPOT_CONTACT_IS_LOGGED_IN",
    "HUBSPOT_CONTACT_LIST_MEMBERSHIPS",
    "HUBSPOT_LIMITS_TIME_REMAINING",
    "HUBSPOT_LIMITS_EXECUTIONS_REMAINING",
)


def read_dotenv(folder: Path) -> dict[str, str]:
    p = folder / ".env"
    if not p.is_file():
        return {}
    return {k: v for k, v in dotenv_values(p).items() if v is not None}


def split_dotenv(values: Mapping[str, str], allowed_secrets: tuple[str, ...]) -> tuple[dict[str, str], dict[str, str]]:
    """Secrets the manifest allows, and mock-data overrides."""
    secrets = {k: v for k, v in values.items() if k in allowed_secrets}
    mock = {k: v for k, v in values.items() if k in MOCK_KEYS}
    return secrets, mock


def _as_bool(value: Any) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes")


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def query_params(items: list[tuple[str, str]]) -> dict[str, list[str]]:
    """Every value becomes a list, the way the hosted runtime delivers them."""
    out: dict[str, list[str]] = {}
    for k, v in items:
        out.setdefault(k, []).append(v)
    return out


def filter_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() in ALLOWED_REQUEST_HEADERS}


def build_context(
    *,
    manifest: FunctionManifest,
    route: FunctionRoute,
    method: str,
    headers: Mapping[str, str],
    query: list[tuple[str, str]],
    body: Any,
    dotenv: Mapping[str, str],
    account_id: int | None = None,
    contact: bool = False,
) -> dict[str, Any]:
    secrets, mock = split_dotenv(dotenv, route.secret_names)
    ctx: dict[str, Any] = {
        "secrets": secrets,
        "environment": {**manifest.environment, **route.local_environment},
        "params": query_params(query),
        "limits": {
            "timeRemaining": _as_int(
                mock.get("HUBSPOT_LIMITS_TIME_REMAINING"), MOCK_DATA["HUBSPOT_LIMITS_TIME_REMAINING"]
            ),
            "executionsRemaining": _as_int(
                mock.get("HUBSPOT_LIMITS_EXECUTIONS_REMAINING"), MOCK_DATA["HUBSPOT_LIMITS_EXECUTIONS_REMAINING"]
            ),
        },
        "body": body,
        "headers": filter_headers(headers),
        "method": method.upper(),
        "endpoint": route.route,
        "accountId": account_id or _as_int(mock.get("HUBSPOT_ACCOUNT_ID"), 0) or None,
        "contact": None,
    }
    if contact:
        memberships = mock.get("HUBSPOT_CONTACT_LIST_MEMBERSHIPS")
        ctx["contact"] = {
            "vid": _as_int(mock.get("HUBSPOT_CONTACT_VID"), MOCK_DATA["HUBSPOT_CONTACT_VID"]),
            "isLoggedIn": _as_bool(mock["HUBSPOT_CONTACT_IS_LOGGED_IN"])
            if "HUBSPOT_CONTACT_IS_LOGGED_IN" in mock
            else MOCK_DATA["HUBSPOT_CONTACT_IS_LOGGED_IN"],
            "listMemberships": [m for m in memberships.split(",") if m]
            if memberships
            else list(MOCK_DATA["HUBSPOT_CONTACT_LIST_MEMBERSHIPS"]),
        }
    return ctx
