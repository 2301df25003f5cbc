from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import httpx

from hubspot_cli.config import AccountConfig, CLIConfig, load_cli_config
from hubspot_cli.http import HubSpotClient


@dataclass
class Ctx:
    """Everything a command needs: the loaded config and the account it targets."""

    config: CLIConfig
    account: str | None = None
    transport: httpx.BaseTransport | None = None

    def account_config(self) -> AccountConfig:
        return self.config.require_account(self.account)

    @property
    def account_id(self) -> int:
        return self.account_config().account_id

    def client(self) -> HubSpotClient:
        return HubSpotClient(self.config, self.account_config(), transport=self.transport)

    def plain_http(self) -> httpx.Client:
        """Unauthenticated client for token exchanges."""
        return httpx.Client(timeout=self.config.http_timeout_ms / 1000, transport=self.transport)


# Tests swap this to inject an httpx.MockTransport into every Ctx.
transport_factory: Callable[[], httpx.BaseTransport | None] = lambda: None


def load_ctx(*, config_override: str | None, account: str | None, use_env: bool = False) -> Ctx:
    cfg = load_cli_config(config_override=config_override, use_env=use_env)
    return Ctx(config=cfg, account=account, transport=transport_factory())
