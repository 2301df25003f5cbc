from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from hubspot_cli.constants import (
    API_KEY_AUTH_METHOD,
    AUTH_METHODS,
    CMS_PUBLISH_MODES,
    DEFAULT_ACCOUNT_OVERRIDE_FILE_NAME,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_HUBSPOT_CONFIG_YAML_FILE_NAME,
    ENV_ACCOUNT_ID,
    ENV_API_KEY,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_ENVIRONMENT,
    ENV_PERSONAL_ACCESS_KEY,
    ENV_PORTAL_ID,
    ENV_REFRESH_TOKEN,
    ENVIRONMENTS,
    HUBSPOT_CONFIG_YAML_FILE_NAMES,
    MIN_HTTP_TIMEOUT,
    OAUTH_AUTH_METHOD,
    OAUTH_SCOPES,
    PERSONAL_ACCESS_KEY_AUTH_METHOD,
    global_config_path,
)

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    pass


# Keys written ahead of everything else, in this order.
_DEPRECATED_KEYS = {
    "default": "defaultPortal",
    "mode": "defaultMode",
    "accounts": "portals",
    "id": "portalId",
}
_GLOBAL_KEYS = {
    "default": "defaultAccount",
    "mode": "defaultCmsPublishMode",
    "accounts": "accounts",
    "id": "accountId",
}
_KNOWN_ACCOUNT_KEYS = {
    "name",
    "portalId",
    "accountId",
    "env",
    "authType",
    "auth",
    "personalAccessKey",
    "apiKey",
    "defaultMode",
}
_KNOWN_CONFIG_KEYS = {
    "defaultPortal",
    "defaultAccount",
    "defaultMode",
    "defaultCmsPublishMode",
    "httpTimeout",
    "allowUsageTracking",
    "portals",
    "accounts",
}


def _norm_env(value: Any) -> str:
    env = str(value or "prod").strip().lower()
    return env if env in ENVIRONMENTS else "prod"


def _as_account_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if re.fullmatch(r"\d+", s):
        return int(s)
    return None


@dataclass
class AccountConfig:
    account_id: int
    name: str | None = None
    auth_type: str = PERSONAL_ACCESS_KEY_AUTH_METHOD
    env: str = "prod"
    personal_access_key: str | None = None
    api_key: str | None = None
    auth: dict[str, Any] = field(default_factory=dict)
    default_mode: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "AccountConfig":
        if not isinstance(d, Mapping):
            raise ConfigError("Each account entry must be a mapping")
        raw_id = d.get("accountId", d.get("portalId"))
        account_id = _as_account_id(raw_id)
        if account_id is None:
            raise ConfigError(f"Account entry is missing a valid id: {d.get('name') or raw_id!r}")
        auth = d.get("auth") or {}
        if not isinstance(auth, Mapping):
            raise ConfigError(f"auth for account {account_id} must be a mapping")
        return cls(
            account_id=account_id,
            name=(str(d["name"]) if d.get("name") is not None else None),
            auth_type=str(d.get("authType") or PERSONAL_ACCESS_KEY_AUTH_METHOD).lower(),
            env=_norm_env(d.get("env")),
            personal_access_key=d.get("personalAccessKey"),
            api_key=d.get("apiKey"),
            auth=dict(auth),
            default_mode=d.get("defaultMode"),
            extra={k: v for k, v in d.items() if k not in _KNOWN_ACCOUNT_KEYS},
        )

    def to_dict(self, id_key: str = "accountId") -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name is not None:
            out["name"] = self.name
        out[id_key] = self.account_id
        out["env"] = self.env
        out["authType"] = self.auth_type
        if self.auth:
            out["auth"] = self.auth
        if self.personal_access_key:
            out["personalAccessKey"] = self.personal_access_key
        if self.api_key:
            out["apiKey"] = self.api_key
        if self.default_mode:
            out["defaultMode"] = self.default_mode
        out.update(self.extra)
        return out

    @property
    def token_info(self) -> dict[str, Any]:
        return dict(self.auth.get("tokenInfo") or {})

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.account_id})" if self.name else str(self.account_id)


class CLIConfig:
    """The CLI's account configuration, loaded from one file (or the environment).

    Instances are passed explicitly to the code that needs them; every mutation is
    written back with ``save()`` unless the config came from environment variables.
    """

    def __init__(
        self,
        *,
        path: Path | None,
        accounts: list[AccountConfig] | None = None,
        default_account: str | int | None = None,
        default_cms_publish_mode: str | None = None,
        http_timeout: int | None = None,
        allow_usage_tracking: bool | None = None,
        deprecated: bool = True,
        from_env: bool = False,
        account_override: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.path = path
        self.accounts = list(accounts or [])
        self.default_account = default_account
        self.default_cms_publish_mode = default_cms_publish_mode
        self.http_timeout = http_timeout
        self.allow_usage_tracking = allow_usage_tracking
        self.deprecated = deprecated
        self.from_env = from_env
        self.account_override = account_override
        self.extra = dict(extra or {})

    # ---- load / save ----

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], *, path: Path | None, deprecated: bool) -> "CLIConfig":
        keys = _DEPRECATED_KEYS if deprecated else _GLOBAL_KEYS
        raw_accounts = raw.get(keys["accounts"])
        if raw_accounts is None:
            # Tolerate files written with the other key set.
            raw_accounts = raw.get("accounts" if deprecated else "portals")
        if raw_accounts is None:
            raw_accounts = []
        if not isinstance(raw_accounts, list):
            raise ConfigError(f"'{keys['accounts']}' must be a list")

        timeout = raw.get("httpTimeout")
        if timeout is not None:
            try:
                timeout = int(timeout)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"httpTimeout must be an integer, got {timeout!r}") from e

        cfg = cls(
            path=path,
            accounts=[AccountConfig.from_dict(a) for a in raw_accounts],
            default_account=raw.get(keys["default"], raw.get("defaultAccount", raw.get("defaultPortal"))),
            default_cms_publish_mode=raw.get("defaultCmsPublishMode", raw.get("defaultMode")),
            http_timeout=timeout,
            allow_usage_tracking=raw.get("allowUsageTracking"),
            deprecated=deprecated,
            extra={k: v for k, v in raw.items() if k not in _KNOWN_CONFIG_KEYS},
        )
        cfg.validate()
        return cfg

    @classmethod
    def load(cls, path: Path, *, deprecated: bool | None = None) -> "CLIConfig":
        raw = load_config_dict(path)
        if deprecated is None:
            if "portals" in raw or "defaultPortal" in raw:
                deprecated = True
            elif "accounts" in raw or "defaultAccount" in raw:
                deprecated = False
            else:
                deprecated = path.resolve() != global_config_path().resolve()
        cfg = cls.from_dict(raw, path=path, deprecated=deprecated)
        if not deprecated:
            cfg.account_override = find_account_override()
        logger.debug("Loaded config from %s (%d accounts)", path, len(cfg.accounts))
        return cfg

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "CLIConfig":
        """Build a single-account, never-persisted config from HUBSPOT_* variables."""
        environ = os.environ if environ is None else environ
        account_id = _as_account_id(environ.get(ENV_PORTAL_ID) or environ.get(ENV_ACCOUNT_ID))
        if account_id is None:
            raise ConfigError(f"{ENV_PORTAL_ID} must be set to a numeric account id when using --use-env")
        env = _norm_env(environ.get(ENV_ENVIRONMENT))
        pak = environ.get(ENV_PERSONAL_ACCESS_KEY)
        client_id = environ.get(ENV_CLIENT_ID)
        client_secret = environ.get(ENV_CLIENT_SECRET)
        refresh_token = environ.get(ENV_REFRESH_TOKEN)
        api_key = environ.get(ENV_API_KEY)

        if pak:
            account = AccountConfig(
                account_id=account_id,
                auth_type=PERSONAL_ACCESS_KEY_AUTH_METHOD,
                env=env,
                personal_access_key=pak,
            )
        elif client_id and client_secret and refresh_token:
            account = AccountConfig(
                account_id=account_id,
                auth_type=OAUTH_AUTH_METHOD,
                env=env,
                auth={
                    "clientId": client_id,
                    "clientSecret": client_secret,
                    "scopes": list(OAUTH_SCOPES),
                    "tokenInfo": {"refreshToken": refresh_token},
                },
            )
        elif api_key:
            account = AccountConfig(account_id=account_id, auth_type=API_KEY_AUTH_METHOD, env=env, api_key=api_key)
        else:
            raise ConfigError(
                "No credentials found in the environment. Set "
                f"{ENV_PERSONAL_ACCESS_KEY}, or {ENV_CLIENT_ID}/{ENV_CLIENT_SECRET}/{ENV_REFRESH_TOKEN}, "
                f"or {ENV_API_KEY}."
            )
        return cls(path=None, accounts=[account], default_account=account_id, deprecated=False, from_env=True)

    @classmethod
    def create_empty(cls, path: Path, *, deprecated: bool = True) -> "CLIConfig":
        if path.exists():
            raise ConfigError(f"The config file '{path}' already exists")
        path.parent.mkdir(parents=True, exist_ok=True)
        cfg = cls(path=path, deprecated=deprecated)
        cfg.save()
        return cfg

    def to_dict(self) -> dict[str, Any]:
        keys = _DEPRECATED_KEYS if self.deprecated else _GLOBAL_KEYS
        out: dict[str, Any] = {}
        if self.default_account is not None:
            out[keys["default"]] = self.default_account
        if self.default_cms_publish_mode is not None:
            out[keys["mode"]] = self.default_cms_publish_mode
        if self.http_timeout is not None:
            out["httpTimeout"] = self.http_timeout
        if self.allow_usage_tracking is not None:
            out["allowUsageTracking"] = self.allow_usage_tracking
        out.update(self.extra)
        out[keys["accounts"]] = [a.to_dict(keys["id"]) for a in self.accounts]
        return out

    def save(self) -> None:
        if self.from_env:
            logger.debug("Config loaded from environment; skipping write")
            return
        if self.path is None:
            raise ConfigError("Config has no file path to write to")
        self.validate()
        save_config_dict(self.path, self.to_dict())
        logger.debug("Wrote config: %s", self.path)

    def delete_file(self) -> None:
        if self.path is not None and self.path.exists():
            self.path.unlink()
            logger.debug("Deleted config: %s", self.path)

    # ---- validation ----

    def validate(self) -> None:
        seen_ids: set[int] = set()
        seen_names: set[str] = set()
        for a in self.accounts:
            if a.account_id in seen_ids:
                raise ConfigError(f"Multiple accounts with accountId: {a.account_id}")
            seen_ids.add(a.account_id)
            if a.name:
                if a.name in seen_names:
                    raise ConfigError(f"Multiple accounts with name: {a.name}")
                if re.search(r"\s", a.name):
                    raise ConfigError(f"Account name cannot contain spaces: {a.name}")
                seen_names.add(a.name)
            if a.auth_type not in AUTH_METHODS:
                raise ConfigError(f"Unknown authType '{a.auth_type}' for account {a.account_id}")

    # ---- lookups ----

    def get_account(self, name_or_id: str | int | None = None) -> AccountConfig | None:
        target = name_or_id
        if target is None:
            target = self.account_override if self.account_override is not None else self.default_account
        if target is None:
            return None
        s = str(target)
        for a in self.accounts:
            if a.name == s:
                return a
        as_id = _as_account_id(target)
        if as_id is not None:
            for a in self.accounts:
                if a.account_id == as_id:
                    return a
        return None

    def get_account_id(self, name_or_id: str | int | None = None) -> int | None:
        a = self.get_account(name_or_id)
        return a.account_id if a else None

    def require_account(self, name_or_id: str | int | None = None) -> AccountConfig:
        a = self.get_account(name_or_id)
        if a is None:
            if name_or_id is None:
                raise ConfigError("No default account is set. Run `hs accounts use` or pass --account.")
            raise ConfigError(f"The account '{name_or_id}' could not be found in the config")
        return a

    def get_default_account(self) -> AccountConfig | None:
        if self.default_account is None:
            return None
        return self.get_account(self.default_account)

    def is_default(self, account: AccountConfig) -> bool:
        d = self.get_default_account()
        return d is not None and d.account_id == account.account_id

    def account_names(self) -> list[str]:
        return [a.name or str(a.account_id) for a in self.accounts]

    @property
    def http_timeout_ms(self) -> int:
        return int(self.http_timeout or DEFAULT_HTTP_TIMEOUT)

    # ---- mutations ----

    def _default_ref(self, account: AccountConfig) -> str | int:
        # Deprecated files reference the default account by name, global ones by id.
        if self.deprecated and account.name:
            return account.name
        return account.account_id

    def update_account(
        self,
        *,
        account_id: int,
        name: str | None = None,
        auth_type: str | None = None,
        env: str | None = None,
        personal_access_key: str | None = None,
        api_key: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        scopes: list[str] | None = None,
        token_info: dict[str, Any] | None = None,
        default_mode: str | None = None,
    ) -> AccountConfig:
        """Create or merge an account entry. Writes the config."""
        if account_id is None:
            raise ConfigError("An accountId is required to update the config")
        if default_mode and default_mode.lower() not in CMS_PUBLISH_MODES:
            raise ConfigError(f"Invalid mode '{default_mode}'. Valid modes: {', '.join(CMS_PUBLISH_MODES)}")

        account = self.get_account(account_id)
        if account is None:
            account = AccountConfig(account_id=int(account_id))
            self.accounts.append(account)
        if name is not None:
            account.name = name
        if auth_type is not None:
            account.auth_type = auth_type.lower()
        if env is not None:
            account.env = _norm_env(env)
        if personal_access_key is not None:
            account.personal_access_key = personal_access_key
        if api_key is not None:
            account.api_key = api_key
        if default_mode is not None:
            account.default_mode = default_mode.lower()

        auth = dict(account.auth)
        if client_id is not None:
            auth["clientId"] = client_id
        if client_secret is not None:
            auth["clientSecret"] = client_secret
        if scopes is not None:
            auth["scopes"] = list(scopes)
        if token_info is not None:
            merged = dict(auth.get("tokenInfo") or {})
            merged.update({k: v for k, v in token_info.items() if v is not None})
            auth["tokenInfo"] = merged
        account.auth = auth

        self.save()
        return account

    def update_default_account(self, name_or_id: str | int) -> AccountConfig:
        account = self.require_account(name_or_id)
        self.default_account = self._default_ref(account)
        self.save()
        return account

    def update_default_cms_publish_mode(self, mode: str) -> None:
        m = str(mode or "").lower()
        if m not in CMS_PUBLISH_MODES:
            raise ConfigError(f"Invalid mode '{mode}'. Valid modes: {', '.join(CMS_PUBLISH_MODES)}")
        self.default_cms_publish_mode = m
        self.save()

    def update_http_timeout(self, timeout: int | str) -> None:
        try:
            value = int(timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"The httpTimeout must be a number, got '{timeout}'") from e
        if value < MIN_HTTP_TIMEOUT:
            raise ConfigError(f"The httpTimeout must be at least {MIN_HTTP_TIMEOUT}")
        self.http_timeout = value
        self.save()

    def update_allow_usage_tracking(self, enabled: bool) -> None:
        if not isinstance(enabled, bool):
            raise ConfigError(f"allowUsageTracking must be a boolean, got {enabled!r}")
        self.allow_usage_tracking = enabled
        self.save()

    def rename_account(self, current: str | int, new_name: str) -> AccountConfig:
        account = self.require_account(current)
        if self.get_account(new_name) is not None:
            raise ConfigError(f"An account named '{new_name}' already exists")
        was_default = self.is_default(account)
        account.name = new_name
        if was_default:
            self.default_account = self._default_ref(account)
        self.save()
        return account

    def remove_account(self, name_or_id: str | int) -> AccountConfig:
        account = self.require_account(name_or_id)
        if self.is_default(account):
            self.default_account = None
        self.accounts = [a for a in self.accounts if a.account_id != account.account_id]
        self.save()
        return account


def find_config_path(explicit: str | None, *, start: Path | None = None) -> Path | None:
    """Locate the config to use.

    Order: explicit path, the nearest project-local ``hubspot.config.yml`` above the
    working directory, then the global ``~/.hscli/config.yml``.
    """
    if explicit:
        p = Path(explicit).expanduser().resolve()
        if not p.exists():
            raise ConfigError(f"Config not found: {p}")
        return p

    local = find_deprecated_config_path(start)
    if local is not None:
        return local

    g = global_config_path()
    if g.exists():
        return g.resolve()
    return None


def find_deprecated_config_path(start: Path | None = None) -> Path | None:
    cur = (start or Path.cwd()).resolve()
    for d in [cur, *cur.parents]:
        for name in HUBSPOT_CONFIG_YAML_FILE_NAMES:
            p = d / name
            if p.is_file():
                return p
    return None


def default_new_config_path(explicit: str | None = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    return (Path.cwd() / DEFAULT_HUBSPOT_CONFIG_YAML_FILE_NAME).resolve()


def load_cli_config(*, config_override: str | None, use_env: bool = False) -> CLIConfig:
    if use_env:
        return CLIConfig.from_environment()
    p = find_config_path(config_override)
    if p is None:
        raise ConfigError("No config found. Create one with: hs init")
    return CLIConfig.load(p)


def load_config_dict(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Unable to read config {path}: {e}") from e
    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config {path} is not valid YAML: {e}") from e
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ConfigError("Config root must be a mapping")
    return obj


def save_config_dict(path: Path, cfg: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = yaml.safe_dump(cfg, sort_keys=False)
    path.write_text(text, encoding="utf-8")


# ---- account override (.hsaccount) ----


def find_account_override_path(start: Path | None = None) -> Path | None:
    cur = (start or Path.cwd()).resolve()
    for d in [cur, *cur.parents]:
        p = d / DEFAULT_ACCOUNT_OVERRIDE_FILE_NAME
        if p.is_file():
            return p
    return None


def find_account_override(start: Path | None = None) -> str | None:
    p = find_account_override_path(start)
    if p is None:
        return None
    value = p.read_text(encoding="utf-8").strip()
    return value or None


def write_account_override(cfg: CLIConfig, name_or_id: str | int, *, directory: Path | None = None) -> Path:
    if cfg.deprecated:
        raise ConfigError("Account overrides require the global config. Run `hs config migrate` first.")
    account = cfg.require_account(name_or_id)
    p = (directory or Path.cwd()).resolve() / DEFAULT_ACCOUNT_OVERRIDE_FILE_NAME
    p.write_text(f"{account.name or account.account_id}\n", encoding="utf-8")
    return p


# ---- migration ----


@dataclass
class MigrationResult:
    config: CLIConfig
    added: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    conflicts: list[tuple[str, Any, Any]] = field(default_factory=list)


def migrate_config(deprecated: CLIConfig, *, target: Path | None = None) -> MigrationResult:
    """Merge a deprecated project-local config into the global one.

    Accounts are merged by id; settings already present in the global config win
    and every disagreement is reported back.
    """
    if not deprecated.deprecated:
        raise ConfigError("The config is already in the global format")
    target = target or global_config_path()
    if target.exists():
        merged = CLIConfig.load(target, deprecated=False)
    else:
        merged = CLIConfig(path=target, deprecated=False)
    result = MigrationResult(config=merged)

    for attr, key in (
        ("default_cms_publish_mode", "defaultCmsPublishMode"),
        ("http_timeout", "httpTimeout"),
        ("allow_usage_tracking", "allowUsageTracking"),
    ):
        old = getattr(deprecated, attr)
        new = getattr(merged, attr)
        if old is None:
            continue
        if new is None:
            setattr(merged, attr, old)
        elif new != old:
            result.conflicts.append((key, new, old))

    for account in deprecated.accounts:
        existing = merged.get_account(account.account_id)
        if existing is not None:
            result.skipped.append(account.account_id)
            if existing.env != account.env:
                result.conflicts.append((f"{account.account_id}.env", existing.env, account.env))
            continue
        if account.name and merged.get_account(account.name) is not None:
            raise ConfigError(f"An account named '{account.name}' already exists in {target}")
        merged.accounts.append(account)
        result.added.append(account.account_id)

    if merged.default_account is None:
        d = deprecated.get_default_account()
        if d is not None:
            merged.default_account = d.account_id

    merged.save()
    return result
