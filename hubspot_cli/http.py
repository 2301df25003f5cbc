from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from hubspot_cli import __version__
from hubspot_cli.auth import request_credentials
from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.constants import API_BASE_URLS
from hubspot_cli.errors import FileSystemError, HubSpotApiError, api_error_from_response
from hubspot_cli.logging_utils import redact

logger = logging.getLogger(__name__)

USER_AGENT = f"HubSpot CLI/{__version__}"


class HubSpotClient:
    """Thin authenticated wrapper over ``httpx.Client`` for one account.

    Every request carries the account's credentials and ``portalId``; non-2xx
    responses raise :class:`HubSpotApiError`.
    """

    def __init__(
        self,
        cfg: CLIConfig,
        account: AccountConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self.cfg = cfg
        self.account = account
        self.base_url = API_BASE_URLS.get(account.env, API_BASE_URLS["prod"])
        timeout = (timeout_ms or cfg.http_timeout_ms) / 1000
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

    @property
    def account_id(self) -> int:
        return self.account.account_id

    @property
    def raw(self) -> httpx.Client:
        return self._http

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HubSpotClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        auth_headers, auth_params = request_credentials(self._http, self.cfg, self.account)
        merged_params = {**auth_params, **(params or {})}
        merged_headers = {**auth_headers, **(headers or {})}
        url = "/" + path.lstrip("/")
        logger.debug("%s %s", method.upper(), redact(url))
        try:
            resp = self._http.request(
                method.upper(),
                url,
                params={k: v for k, v in merged_params.items() if v is not None},
                json=json,
                data=data,
                files=files,
                content=content,
                headers=merged_headers,
            )
        except httpx.TimeoutException as e:
            raise HubSpotApiError(
                f"The request timed out after {self.cfg.http_timeout_ms}ms",
                status=408,
                method=method,
                url=url,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise HubSpotApiError(f"Request failed: {e}", method=method, url=url, cause=e) from e
        if resp.status_code >= 400:
            raise api_error_from_response(resp)
        return resp

    def _json(self, resp: httpx.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def get(self, path: str, **kw: Any) -> Any:
        return self._json(self.request("GET", path, **kw))

    def post(self, path: str, **kw: Any) -> Any:
        return self._json(self.request("POST", path, **kw))

    def put(self, path: str, **kw: Any) -> Any:
        return self._json(self.request("PUT", path, **kw))

    def patch(self, path: str, **kw: Any) -> Any:
        return self._json(self.request("PATCH", path, **kw))

    def delete(self, path: str, **kw: Any) -> Any:
        return self._json(self.request("DELETE", path, **kw))

    def download(self, path: str, dest: Path, **kw: Any) -> Path:
        resp = self.request("GET", path, **kw)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(resp.content)
        except OSError as e:
            raise FileSystemError(f"Failed to write {dest}: {e}", filepath=str(dest), operation="write", cause=e) from e
        return dest
