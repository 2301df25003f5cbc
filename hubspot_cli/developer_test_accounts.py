"""Developer test accounts and CRM data imports into them."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

from hubspot_cli.errors import FileSystemError, HubSpotError, ValidationError
from hubspot_cli.functions import poll
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

TEST_ACCOUNTS_API_PATH = "integrators/test-portals/v2"
TEST_ACCOUNTS_API_PATH_V3 = "integrators/test-portals/v3"
CRM_IMPORTS_API_PATH = "crm/v3/imports"

HUB_LEVELS = ("STARTER", "PROFESSIONAL", "ENTERPRISE")
HUB_LEVEL_KEYS = ("marketingLevel", "opsLevel", "serviceLevel", "salesLevel", "contentLevel")


def validate_test_account_config(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("The test account config must be a JSON object")
    if not data.get("accountName"):
        raise ValidationError("The test account config requires 'accountName'")
    for key in HUB_LEVEL_KEYS:
        level = data.get(key)
        if level is not None and str(level).upper() not in HUB_LEVELS:
            raise ValidationError(f"{key} must be one of {', '.join(HUB_LEVELS)}, got '{level}'")
    return data


def read_test_account_config(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileSystemError(f"Config file not found: {path}", filepath=str(path), operation="read")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Unable to parse {path}: {e}") from e
    return validate_test_account_config(data)


def write_test_account_config(path: Path, data: dict[str, Any]) -> Path:
    if path.suffix != ".json":
        raise ValidationError("The config path must end with .json")
    if path.exists():
        raise ValidationError(f"'{path}' already exists")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(validate_test_account_config(data), indent=2) + "\n", encoding="utf-8")
    return path


def list_test_accounts(client: HubSpotClient) -> dict[str, Any]:
    return client.get(TEST_ACCOUNTS_API_PATH) or {}


def create_test_account(
    client: HubSpotClient,
    config: dict[str, Any],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Create the account, wait for its gates to sync, then mint a personal access key.

    Returns ``{"accountName", "accountId", "personalAccessKey"}``.
    """
    config = validate_test_account_config(config)
    listing = list_test_accounts(client)
    limit = listing.get("maxTestPortals")
    if limit is not None and len(listing.get("results") or []) >= int(limit):
        raise ValidationError(f"Account {client.account_id} has reached the limit of {limit} test accounts")

    created = client.post(TEST_ACCOUNTS_API_PATH_V3, json=config) or {}
    test_account_id = created.get("id")
    if test_account_id is None:
        raise HubSpotError("Test account creation did not return an id")
    try:
        poll(
            lambda: client.get(f"{TEST_ACCOUNTS_API_PATH_V3}/{test_account_id}/gate-sync-status") or {},
            sleep=sleep,
        )
    except HubSpotError as e:
        raise HubSpotError("Test account was created but its feature gates failed to sync", cause=e) from e

    pak = client.post(f"{TEST_ACCOUNTS_API_PATH_V3}/{test_account_id}/personal-access-key") or {}
    return {
        "accountName": config["accountName"],
        "accountId": int(test_account_id),
        "personalAccessKey": pak.get("personalAccessKey"),
    }


def delete_test_account(client: HubSpotClient, test_account_id: int) -> None:
    client.delete(f"{TEST_ACCOUNTS_API_PATH}/{test_account_id}")


def import_data(client: HubSpotClient, request_path: Path) -> dict[str, Any]:
    """Start a CRM import described by a JSON import request; data files are resolved next to it."""
    if not request_path.is_file():
        raise FileSystemError(f"Import file not found: {request_path}", filepath=str(request_path), operation="read")
    try:
        request = json.loads(request_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Unable to parse {request_path}: {e}") from e
    file_entries = request.get("files") or []
    if not file_entries:
        raise ValidationError("The import request must list at least one file")
    files = []
    for entry in file_entries:
        name = entry.get("fileName")
        data_file = request_path.parent / str(name)
        if not data_file.is_file():
            raise FileSystemError(f"Data file not found: {data_file}", filepath=str(data_file), operation="read")
        files.append(("files", (data_file.name, data_file.read_bytes())))
    return client.post(CRM_IMPORTS_API_PATH, data={"importRequest": json.dumps(request)}, files=files) or {}
