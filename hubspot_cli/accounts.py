"""Account bookkeeping: first-time init, adding accounts, and cleaning out dead ones."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import httpx

from hubspot_cli.auth import AccessToken, fetch_access_token
from hubspot_cli.config import AccountConfig, CLIConfig, ConfigError, find_account_override_path
from hubspot_cli.constants import (
    OAUTH_AUTH_METHOD,
    PERSONAL_ACCESS_KEY_AUTH_METHOD,
)
from hubspot_cli.errors import HubSpotApiError

logger = logging.getLogger(__name__)


def to_kebab_case(s: str) -> str:
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", s.strip())
    s = re.sub(r"[^A-Za-z0-9]+", "-", s)
    return s.strip("-").lower()


def init_config_with_personal_access_key(
    path: Path,
    *,
    personal_access_key: str,
    http: httpx.Client,
    env: str = "prod",
    name: str | None = None,
    choose_name: Callable[[str], str] | None = None,
) -> tuple[CLIConfig, AccountConfig]:
    """Create a brand new project config holding a single default account.

    The empty file is removed again if anything fails before the account is written.
    """
    cfg = CLIConfig.create_empty(path, deprecated=True)
    try:
        token = fetch_access_token(http, personal_access_key, env=env)
        account_name = _pick_name(cfg, token, name, choose_name)
        account = _write_personal_access_key_account(cfg, token, env=env, name=account_name)
        cfg.update_default_account(account.account_id)
    except BaseException:
        cfg.delete_file()
        raise
    return cfg, account


def add_personal_access_key_account(
    cfg: CLIConfig,
    *,
    personal_access_key: str,
    http: httpx.Client,
    env: str = "prod",
    name: str | None = None,
    choose_name: Callable[[str], str] | None = None,
) -> AccountConfig:
    token = fetch_access_token(http, personal_access_key, env=env)
    existing = cfg.get_account(token.portal_id)
    if existing is not None and existing.name and not name:
        account_name = existing.name
    else:
        account_name = _pick_name(cfg, token, name, choose_name)
    account = _write_personal_access_key_account(cfg, token, env=env, name=account_name)
    if cfg.default_account is None:
        cfg.update_default_account(account.account_id)
    return account


def add_oauth_account(
    cfg: CLIConfig,
    *,
    account_id: int,
    client_id: str,
    client_secret: str,
    scopes: list[str],
    token_info: dict[str, Any],
    name: str,
    env: str = "prod",
) -> AccountConfig:
    account = cfg.update_account(
        account_id=account_id,
        name=name,
        auth_type=OAUTH_AUTH_METHOD,
        env=env,
        client_id=client_id,
        client_secret=client_secret,
        scopes=scopes,
        token_info=token_info,
    )
    if cfg.default_account is None:
        cfg.update_default_account(account.account_id)
    return account


def _pick_name(
    cfg: CLIConfig,
    token: AccessToken,
    name: str | None,
    choose_name: Callable[[str], str] | None,
) -> str:
    if name:
        return name
    default = to_kebab_case(token.hub_name) or str(token.portal_id)
    if choose_name is not None:
        return choose_name(default)
    if cfg.get_account(default) is not None:
        raise ConfigError(f"An account named '{default}' already exists. Pass --account to choose a name.")
    return default


def _write_personal_access_key_account(
    cfg: CLIConfig, token: AccessToken, *, env: str, name: str
) -> AccountConfig:
    return cfg.update_account(
        account_id=token.portal_id,
        name=name,
        auth_type=PERSONAL_ACCESS_KEY_AUTH_METHOD,
        env=env,
        personal_access_key=token.encoded_oauth_refresh_token,
        token_info={"accessToken": token.access_token, "expiresAt": token.expires_at},
    )


def account_info(cfg: CLIConfig, account: AccountConfig, *, http: httpx.Client) -> dict[str, Any]:
    info: dict[str, Any] = {
        "name": account.name,
        "accountId": account.account_id,
        "authType": account.auth_type,
        "env": account.env,
        "default": cfg.is_default(account),
    }
    if account.auth_type == PERSONAL_ACCESS_KEY_AUTH_METHOD and account.personal_access_key:
        token = fetch_access_token(http, account.personal_access_key, env=account.env)
        info["scopeGroups"] = token.scope_groups
        info["hubName"] = token.hub_name
    elif account.auth_type == OAUTH_AUTH_METHOD:
        info["scopeGroups"] = list(account.auth.get("scopes") or [])
    return info


# ---- accounts clean ----


@dataclass
class AccountStatus:
    account: AccountConfig
    active: bool
    reason: str | None = None


def check_account(http: httpx.Client, account: AccountConfig) -> AccountStatus:
    """Check one account's credentials.

    401 means the portal is no longer active and 404 means the id is unknown;
    both mark the account inactive. Non-PAK accounts are assumed active.
    """
    if account.auth_type != PERSONAL_ACCESS_KEY_AUTH_METHOD or not account.personal_access_key:
        return AccountStatus(account=account, active=True)
    try:
        fetch_access_token(http, account.personal_access_key, env=account.env)
    except HubSpotApiError as e:
        if e.status == 401:
            return AccountStatus(account=account, active=False, reason="PORTAL_NOT_ACTIVE")
        if e.status == 404:
            return AccountStatus(account=account, active=False, reason="INVALID_PORTAL_ID")
        raise
    return AccountStatus(account=account, active=True)


def find_inactive_accounts(cfg: CLIConfig, *, http: httpx.Client, qa: bool = False) -> list[AccountStatus]:
    env = "qa" if qa else "prod"
    out: list[AccountStatus] = []
    for account in list(cfg.accounts):
        if account.env != env:
            continue
        status = check_account(http, account)
        logger.debug("Account %s active=%s", account.account_id, status.active)
        if not status.active:
            out.append(status)
    return out


def remove_accounts(cfg: CLIConfig, accounts: list[AccountConfig], *, cwd: Path | None = None) -> list[Path]:
    """Delete accounts from the config; also remove an override file that points at one of them."""
    removed_files: list[Path] = []
    override_path = find_account_override_path(cwd)
    override_value = override_path.read_text(encoding="utf-8").strip() if override_path else None
    for account in accounts:
        cfg.remove_account(account.account_id)
        if override_path is not None and override_value in (account.name, str(account.account_id)):
            override_path.unlink(missing_ok=True)
            removed_files.append(override_path)
            override_path = None
    return removed_files
