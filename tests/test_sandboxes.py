from __future__ import annotations

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import httpx
import yaml

from hubspot_cli import sandboxes, typer_app
from hubspot_cli.auth import AccessToken
from hubspot_cli.errors import ValidationError

CONFIG = """\
defaultPortal: sb
portals:
  - name: prod
    portalId: 111
    authType: apikey
    apiKey: key-prod
  - name: sb
    portalId: 222
    authType: apikey
    apiKey: key-sb
    accountType: DEVELOPMENT_SANDBOX
    parentAccountId: 111
"""


class FakeSandboxApi:
    def __init__(self, *, available: int = 1, delete_status: int = 204) -> None:
        self.available = available
        self.delete_status = delete_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/sandbox-hubs/v1/parent/111/usage":
            slot = {"available": self.available, "limit": 1}
            return httpx.Response(200, json={"usage": {"STANDARD": slot, "DEVELOPER": slot}})
        if path == "/sandbox-hubs/v1" and request.method == "POST":
            return httpx.Response(200, json={"sandbox": {"sandboxHubId": 333}, "personalAccessKey": "sb-pak"})
        if path.startswith("/sandbox-hubs/v1/") and request.method == "DELETE":
            if self.delete_status == 404:
                return httpx.Response(
                    404,
                    json={"message": "gone", "category": "OBJECT_NOT_FOUND", "subCategory": "SandboxErrors.SANDBOX_NOT_FOUND"},
                )
            return httpx.Response(self.delete_status)
        return httpx.Response(404, json={"message": "unexpected"})


class TestSandboxCommands(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)
        self._old_home = os.environ.get("HOME")
        self._old_cwd = os.getcwd()
        os.environ["HOME"] = str(self.td)
        os.chdir(self.td)
        (self.td / "hubspot.config.yml").write_text(CONFIG, encoding="utf-8")

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        if self._old_home is None:
            os.environ.pop("HOME", None)
        else:
            os.environ["HOME"] = self._old_home
        self._td.cleanup()

    def _run(self, argv: list[str], api: FakeSandboxApi) -> tuple[int, str, str]:
        out = io.StringIO()
        err = io.StringIO()
        with mock.patch("hubspot_cli.ops.transport_factory", lambda: httpx.MockTransport(api)):
            with redirect_stdout(out), redirect_stderr(err):
                rc = typer_app.run(argv)
        return rc, out.getvalue(), err.getvalue()

    def _raw(self) -> dict:
        return yaml.safe_load((self.td / "hubspot.config.yml").read_text(encoding="utf-8"))

    def test_create_saves_the_sandbox_account(self) -> None:
        api = FakeSandboxApi()
        token = AccessToken(
            portal_id=333,
            access_token="access",
            expires_at="2099-01-01T00:00:00+00:00",
            scope_groups=[],
            hub_name="QA Box",
            encoded_oauth_refresh_token="sb-pak",
        )
        with mock.patch("hubspot_cli.accounts.fetch_access_token", return_value=token):
            rc, out, _err = self._run(
                ["--account", "prod", "sandbox", "create", "--name", "QA Box", "--type", "standard", "--force"], api
            )
        self.assertEqual(rc, 0)
        self.assertIn("(333) created under account 111", out)
        post = [r for r in api.requests if r.method == "POST"][0]
        self.assertEqual(json.loads(post.content)["type"], 1)
        saved = [p for p in self._raw()["portals"] if p["portalId"] == 333][0]
        self.assertEqual(saved["name"], "qa-box")
        self.assertEqual(saved["accountType"], "STANDARD_SANDBOX")
        self.assertEqual(saved["parentAccountId"], 111)

    def test_create_stops_at_the_usage_limit(self) -> None:
        api = FakeSandboxApi(available=0)
        with self.assertLogs("hubspot_cli.errors", level="ERROR") as logs:
            rc, _out, _err = self._run(
                ["sandbox", "create", "--account", "prod", "--name", "dev", "--type", "dev", "--force"], api
            )
        self.assertEqual(rc, 1)
        self.assertIn("hs sandbox delete", "\n".join(logs.output))
        self.assertEqual([r.method for r in api.requests], ["GET"])

    def test_create_from_a_sandbox_is_refused(self) -> None:
        api = FakeSandboxApi()
        rc, _out, _err = self._run(["sandbox", "create", "--name", "x", "--type", "standard", "--force"], api)
        self.assertEqual(rc, 1)
        self.assertEqual(api.requests, [])

    def test_force_delete_uses_parent_and_resets_default(self) -> None:
        api = FakeSandboxApi()
        rc, out, _err = self._run(["sandbox", "delete", "--account", "sb", "--force"], api)
        self.assertEqual(rc, 0)
        self.assertIn("Sandbox sb (222) deleted", out)
        [delete] = api.requests
        self.assertEqual(delete.url.path, "/sandbox-hubs/v1/222")
        self.assertEqual(delete.url.params["hapikey"], "key-prod")
        raw = self._raw()
        self.assertEqual([p["portalId"] for p in raw["portals"]], [111])
        self.assertEqual(raw["defaultPortal"], "prod")

    def test_delete_of_a_missing_sandbox_still_cleans_config(self) -> None:
        api = FakeSandboxApi(delete_status=404)
        rc, out, _err = self._run(["--account", "sb", "sandbox", "delete", "--force"], api)
        self.assertEqual(rc, 0)
        self.assertNotIn("deleted", out)
        self.assertEqual([p["portalId"] for p in self._raw()["portals"]], [111])

    def test_delete_without_parent_requires_a_prompt(self) -> None:
        api = FakeSandboxApi()
        rc, _out, err = self._run(["sandbox", "delete", "--account", "prod", "--force"], api)
        self.assertEqual(rc, 1)
        self.assertIn("No parent account", err)
        self.assertEqual(api.requests, [])


class TestSandboxTypes(unittest.TestCase):
    def test_resolve_sandbox_type(self) -> None:
        self.assertEqual(sandboxes.resolve_sandbox_type("Standard"), sandboxes.STANDARD_SANDBOX)
        self.assertEqual(sandboxes.resolve_sandbox_type("dev"), sandboxes.DEVELOPMENT_SANDBOX)
        with self.assertRaises(ValidationError):
            sandboxes.resolve_sandbox_type("premium")


if __name__ == "__main__":
    unittest.main()
