"""HubSpot authentication: personal access keys, OAuth2 and API keys.

Provides the personal-access-key exchange, OAuth2 token refresh and the browser
authorization flow used by ``hs auth``, plus the per-request credential builder
used by the API client.
"""

from __future__ import annotations

import logging
import secrets as _secrets
import threading
import time
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.constants import (
    API_BASE_URLS,
    API_KEY_AUTH_METHOD,
    APP_BASE_URLS,
    DEFAULT_OAUTH_SCOPES,
    OAUTH_AUTH_METHOD,
    OAUTH_CALLBACK_PORT,
    PERSONAL_ACCESS_KEY_AUTH_METHOD,
    TOKEN_REFRESH_MARGIN_MS,
)
from hubspot_cli.errors import HubSpotAuthError, HubSpotError, api_error_from_response

logger = logging.getLogger(__name__)


@dataclass
class AccessToken:
    """Result of exchanging a personal access key."""

    portal_id: int
    access_token: str
    expires_at: str
    scope_groups: list[str]
    hub_name: str
    encoded_oauth_refresh_token: str

    @classmethod
    def from_response(cls, data: dict[str, Any], personal_access_key: str) -> "AccessToken":
        return cls(
            portal_id=int(data["hubId"]),
            access_token=str(data["oauthAccessToken"]),
            expires_at=_millis_to_iso(data.get("expiresAtMillis")),
            scope_groups=list(data.get("scopeGroups") or []),
            hub_name=str(data.get("hubName") or ""),
            encoded_oauth_refresh_token=personal_access_key,
        )


def _millis_to_iso(ms: Any) -> str:
    if ms is None:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc).isoformat()


def _parse_expires_at(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def token_needs_refresh(token_info: dict[str, Any], *, now: datetime | None = None) -> bool:
    """True when the cached token is missing or expires within the refresh margin."""
    if not token_info.get("accessToken"):
        return True
    expires_at = _parse_expires_at(token_info.get("expiresAt"))
    if expires_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return expires_at - now < timedelta(milliseconds=TOKEN_REFRESH_MARGIN_MS)


def fetch_access_token(http: httpx.Client, personal_access_key: str, *, env: str = "prod") -> AccessToken:
    """Exchange a personal access key for a short-lived OAuth access token.

    Args:
        http: Client used for the unauthenticated exchange request.
        personal_access_key: The key copied from the HubSpot UI.
        env: ``prod`` or ``qa``.

    Returns:
        The access token plus hub id, hub name and scope groups.

    Raises:
        HubSpotAuthError: If HubSpot rejects the key.
    """
    url = f"{API_BASE_URLS[env]}/localdevauth/v1/auth/refresh"
    resp = http.post(url, json={"encodedOAuthRefreshToken": personal_access_key})
    if resp.status_code == 401:
        err = api_error_from_response(resp, error_cls=HubSpotAuthError)
        err.message = (
            "Your personal access key is invalid or has been revoked. "
            "Run `hs auth` to create a new one."
        )
        raise err
    if resp.status_code >= 400:
        raise api_error_from_response(resp)
    return AccessToken.from_response(resp.json(), personal_access_key)


def get_access_token_for_personal_access_key(
    http: httpx.Client,
    cfg: CLIConfig,
    account: AccountConfig,
    *,
    force: bool = False,
) -> str:
    """Return a valid access token for a PAK account, refreshing and caching it when needed."""
    if not account.personal_access_key:
        raise HubSpotAuthError(
            f"Account {account.display_name} has no personal access key. Run `hs auth` to add one.",
            status=401,
        )
    token_info = account.token_info
    if not force and not token_needs_refresh(token_info):
        return str(token_info["accessToken"])

    logger.debug("Refreshing access token for account %s", account.account_id)
    token = fetch_access_token(http, account.personal_access_key, env=account.env)
    new_info = {"accessToken": token.access_token, "expiresAt": token.expires_at}
    if cfg.from_env:
        account.auth = {**account.auth, "tokenInfo": new_info}
    else:
        cfg.update_account(account_id=account.account_id, token_info=new_info)
    return token.access_token


def refresh_oauth_token(http: httpx.Client, account: AccountConfig) -> dict[str, Any]:
    """POST the refresh token to oauth/v1/token and return the raw token response."""
    auth = account.auth
    refresh_token = (auth.get("tokenInfo") or {}).get("refreshToken")
    if not (auth.get("clientId") and auth.get("clientSecret") and refresh_token):
        raise HubSpotAuthError(
            f"OAuth2 credentials are incomplete for account {account.display_name}. Run `hs auth --auth-type oauth2`.",
            status=401,
        )
    resp = http.post(
        f"{API_BASE_URLS[account.env]}/oauth/v1/token",
        data={
            "grant_type": "refresh_token",
            "client_id": auth["clientId"],
            "client_secret": auth["clientSecret"],
            "refresh_token": refresh_token,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    if resp.status_code >= 400:
        raise api_error_from_response(resp, error_cls=HubSpotAuthError)
    return resp.json()


def get_access_token_for_oauth(http: httpx.Client, cfg: CLIConfig, account: AccountConfig) -> str:
    token_info = account.token_info
    if not token_needs_refresh(token_info):
        return str(token_info["accessToken"])
    data = refresh_oauth_token(http, account)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in") or 0))
    new_info = {
        "accessToken": data["access_token"],
        "refreshToken": data.get("refresh_token") or token_info.get("refreshToken"),
        "expiresAt": expires_at.isoformat(),
    }
    if cfg.from_env:
        account.auth = {**account.auth, "tokenInfo": {**token_info, **new_info}}
    else:
        cfg.update_account(account_id=account.account_id, token_info=new_info)
    return str(data["access_token"])


def request_credentials(
    http: httpx.Client, cfg: CLIConfig, account: AccountConfig
) -> tuple[dict[str, str], dict[str, Any]]:
    """Headers and query params that authenticate a request for ``account``."""
    params: dict[str, Any] = {"portalId": account.account_id}
    if account.auth_type == PERSONAL_ACCESS_KEY_AUTH_METHOD:
        token = get_access_token_for_personal_access_key(http, cfg, account)
        return {"Authorization": f"Bearer {token}"}, params
    if account.auth_type == OAUTH_AUTH_METHOD:
        token = get_access_token_for_oauth(http, cfg, account)
        return {"Authorization": f"Bearer {token}"}, params
    if account.auth_type == API_KEY_AUTH_METHOD:
        if not account.api_key:
            raise HubSpotAuthError(f"Account {account.display_name} has no apiKey configured", status=401)
        params["hapikey"] = account.api_key
        return {}, params
    raise HubSpotError(f"Unsupported authType '{account.auth_type}'")


# ---- OAuth2 browser flow ----


class OAuth2Manager:
    """Runs the authorization-code flow against a localhost callback.

    The callback endpoint is served by a throwaway FastAPI app on
    ``localhost:3000/oauth-callback``; the code it receives is exchanged for
    access and refresh tokens.
    """

    def __init__(
        self,
        *,
        account_id: int,
        client_id: str,
        client_secret: str,
        scopes: list[str] | None = None,
        env: str = "prod",
        port: int = OAUTH_CALLBACK_PORT,
        http: httpx.Client | None = None,
    ) -> None:
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = list(scopes or DEFAULT_OAUTH_SCOPES)
        self.env = env
        self.port = port
        self._http = http or httpx.Client(timeout=30.0)
        self._state = _secrets.token_urlsafe(16)
        self._code: str | None = None
        self._error: str | None = None
        self._done = threading.Event()

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}/oauth-callback"

    def authorize_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "scope": " ".join(self.scopes),
            "redirect_uri": self.redirect_uri,
            "state": self._state,
        }
        return f"{APP_BASE_URLS[self.env]}/oauth/{self.account_id}/authorize?{urlencode(params)}"

    def build_callback_app(self):
        from fastapi import FastAPI
        from fastapi.responses import HTMLResponse

        app = FastAPI()

        @app.get("/oauth-callback", response_class=HTMLResponse)
        def oauth_callback(code: str | None = None, state: str | None = None, error: str | None = None) -> str:
            if error or not code:
                self._error = error or "missing code"
            elif state != self._state:
                self._error = "state mismatch"
            else:
                self._code = code
            self._done.set()
            if self._error:
                return f"<h2>Authorization failed: {self._error}</h2>"
            return "<h2>Authorization succeeded. You can close this window.</h2>"

        return app

    def wait_for_code(self, *, timeout: float = 300.0) -> str:
        import uvicorn

        server = uvicorn.Server(
            uvicorn.Config(self.build_callback_app(), host="127.0.0.1", port=self.port, log_level="warning")
        )
        t = threading.Thread(target=server.run, daemon=True)
        t.start()
        try:
            url = self.authorize_url()
            logger.info("Opening %s", url)
            webbrowser.open(url)
            if not self._done.wait(timeout=timeout):
                raise HubSpotAuthError("Timed out waiting for the OAuth2 callback", status=408)
        finally:
            server.should_exit = True
            t.join(timeout=5)
        if self._error or not self._code:
            raise HubSpotAuthError(f"OAuth2 authorization failed: {self._error}", status=401)
        return self._code

    def exchange_code(self, code: str) -> dict[str, Any]:
        resp = self._http.post(
            f"{API_BASE_URLS[self.env]}/oauth/v1/token",
            data={
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "code": code,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code >= 400:
            raise api_error_from_response(resp, error_cls=HubSpotAuthError)
        data = resp.json()
        return {
            "accessToken": data["access_token"],
            "refreshToken": data.get("refresh_token"),
            "expiresAt": (
                datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in") or 0))
            ).isoformat(),
        }

    def authorize(self) -> dict[str, Any]:
        """Run the full browser flow and return tokenInfo."""
        started = time.monotonic()
        code = self.wait_for_code()
        token_info = self.exchange_code(code)
        logger.debug("OAuth2 flow finished in %.1fs", time.monotonic() - started)
        return token_info
