"""Standard and development sandbox accounts under a production parent account."""

from __future__ import annotations

import logging
from typing import Any

from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.errors import HubSpotApiError, HubSpotError, ValidationError
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

SANDBOX_API_PATH = "sandbox-hubs/v1"

STANDARD = "STANDARD"
STANDARD_SANDBOX = "STANDARD_SANDBOX"
DEVELOPMENT_SANDBOX = "DEVELOPMENT_SANDBOX"

SANDBOX_TYPES = {
    "dev": DEVELOPMENT_SANDBOX,
    "developer": DEVELOPMENT_SANDBOX,
    "development": DEVELOPMENT_SANDBOX,
    "standard": STANDARD_SANDBOX,
}
SANDBOX_API_TYPES = {STANDARD_SANDBOX: 1, DEVELOPMENT_SANDBOX: 2}
USAGE_KEYS = {STANDARD_SANDBOX: "STANDARD", DEVELOPMENT_SANDBOX: "DEVELOPER"}

USER_ACCESS_NOT_ALLOWED = "SandboxErrors.USER_ACCESS_NOT_ALLOWED"
SANDBOX_NOT_FOUND = "SandboxErrors.SANDBOX_NOT_FOUND"


def resolve_sandbox_type(value: str) -> str:
    sandbox_type = SANDBOX_TYPES.get(str(value or "").strip().lower())
    if sandbox_type is None:
        raise ValidationError(f"Invalid sandbox type '{value}'. Valid types: standard, development")
    return sandbox_type


def account_type(account: AccountConfig) -> str | None:
    return account.extra.get("accountType")


def parent_account_id(account: AccountConfig) -> int | None:
    raw = account.extra.get("parentAccountId")
    return int(raw) if raw is not None else None


def check_parent_account(account: AccountConfig) -> None:
    kind = account_type(account)
    if kind and kind != STANDARD:
        raise ValidationError(
            f"{account.display_name} is a {kind.lower().replace('_', ' ')} account. "
            "Sandboxes can only be created from a standard account."
        )


def has_sandbox_of_type(cfg: CLIConfig, parent_id: int, sandbox_type: str) -> bool:
    return any(parent_account_id(a) == parent_id and account_type(a) == sandbox_type for a in cfg.accounts)


def validate_usage_limits(client: HubSpotClient, cfg: CLIConfig, sandbox_type: str) -> None:
    """Fail early when the parent account has no sandbox of ``sandbox_type`` left."""
    parent_id = client.account_id
    resp = client.get(f"{SANDBOX_API_PATH}/parent/{parent_id}/usage") or {}
    usage = resp.get("usage")
    if not usage:
        raise HubSpotError(f"Unable to fetch sandbox usage limits for account {parent_id}")
    entry = usage.get(USAGE_KEYS[sandbox_type]) or {}
    if entry.get("available", 1) != 0:
        return
    limit = entry.get("limit")
    label = "standard" if sandbox_type == STANDARD_SANDBOX else "development"
    if has_sandbox_of_type(cfg, parent_id, sandbox_type):
        raise ValidationError(
            f"Account {parent_id} reached the limit of {limit} {label} sandbox(es). "
            "Run `hs sandbox delete` to remove one from the config first."
        )
    raise ValidationError(f"Account {parent_id} reached the limit of {limit} {label} sandbox(es).")


def create_sandbox(client: HubSpotClient, name: str, sandbox_type: str) -> dict[str, Any]:
    """Create the sandbox; returns ``{"name", "sandboxHubId", "personalAccessKey"}``."""
    try:
        data = client.post(
            SANDBOX_API_PATH,
            json={"name": name, "type": SANDBOX_API_TYPES[sandbox_type], "generatePersonalAccessKey": True},
        ) or {}
    except HubSpotApiError as e:
        if e.status == 403 and e.sub_category == USER_ACCESS_NOT_ALLOWED:
            raise HubSpotError(
                f"You do not have access to create sandboxes in account {client.account_id}", cause=e
            ) from e
        raise
    sandbox = data.get("sandbox") or {}
    hub_id = sandbox.get("sandboxHubId")
    if hub_id is None:
        raise HubSpotError("Sandbox creation did not return an account id")
    return {"name": name, "sandboxHubId": int(hub_id), "personalAccessKey": data.get("personalAccessKey")}


def record_sandbox(cfg: CLIConfig, account: AccountConfig, *, parent_id: int, sandbox_type: str) -> AccountConfig:
    account.extra["accountType"] = sandbox_type
    account.extra["parentAccountId"] = parent_id
    cfg.save()
    return account


def delete_sandbox(client: HubSpotClient, sandbox_id: int) -> bool:
    """Delete through the parent account's client.

    Returns False when the sandbox was already gone on the HubSpot side.
    """
    try:
        client.delete(f"{SANDBOX_API_PATH}/{sandbox_id}")
    except HubSpotApiError as e:
        if e.status == 404 and e.sub_category == SANDBOX_NOT_FOUND:
            logger.warning("Sandbox %s no longer exists in HubSpot; removing it from the config", sandbox_id)
            return False
        if e.status == 401:
            raise HubSpotError(
                f"The personal access key for parent account {client.account_id} is invalid. "
                f"Run `hs auth --account={client.account_id}` and try again.",
                cause=e,
            ) from e
        if e.status == 403 and e.sub_category == USER_ACCESS_NOT_ALLOWED:
            raise HubSpotError(
                f"You do not have access to delete sandbox {sandbox_id} from account {client.account_id}", cause=e
            ) from e
        raise
    return True


def forget_sandbox(cfg: CLIConfig, sandbox_id: int) -> bool:
    """Remove the sandbox from the config; True when it was the default account."""
    account = cfg.get_account(sandbox_id)
    if account is None:
        return False
    was_default = cfg.is_default(account)
    cfg.remove_account(sandbox_id)
    return was_default
