from __future__ import annotations

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

import httpx

from hubspot_cli import typer_app

CONFIG = """\
defaultPortal: dev
portals:
  - name: dev
    portalId: 111
    authType: apikey
    apiKey: key-dev
"""


class FakeHubSpot:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/cms/v3/functions/secrets" and request.method == "GET":
            return httpx.Response(200, json={"results": ["API_KEY"]})
        if path == "/cms/v3/functions/routes":
            return httpx.Response(200, json={"objects": [{"route": "hello", "method": "GET", "secretNames": []}]})
        if path == "/cms/v3/functions/results/by-route/hello/latest":
            return httpx.Response(
                200,
                json={"status": "SUCCESS", "createdAt": 1700000000000, "executionTime": 5, "log": "latest run"},
            )
        if path.endswith("/rows/draft"):
            return httpx.Response(200, json={"results": [{"id": "1"}, {"id": "2"}]})
        return httpx.Response(200, json={})


class TestCommandsAgainstFakeApi(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self._old_home = os.environ.get("HOME")
        self._old_cwd = os.getcwd()
        os.environ["HOME"] = self._td.name
        os.chdir(self._td.name)
        with open("hubspot.config.yml", "w", encoding="utf-8") as f:
            f.write(CONFIG)
        self.fake = FakeHubSpot()
        patcher = mock.patch("hubspot_cli.ops.transport_factory", lambda: httpx.MockTransport(self.fake))
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        if self._old_home is None:
            os.environ.pop("HOME", None)
        else:
            os.environ["HOME"] = self._old_home
        self._td.cleanup()

    def _run(self, argv: list[str]) -> tuple[int, str, str]:
        out = io.StringIO()
        err = io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = typer_app.run(argv)
        return rc, out.getvalue(), err.getvalue()

    def test_secret_list(self) -> None:
        rc, out, _err = self._run(["secret", "list"])
        self.assertEqual(rc, 0)
        self.assertIn("Secrets for account 111:", out)
        self.assertIn("API_KEY", out)
        self.assertEqual(self.fake.requests[0].url.params["hapikey"], "key-dev")

    def test_adding_an_existing_secret_fails(self) -> None:
        rc, _out, _err = self._run(["secret", "add", "API_KEY", "--value", "x"])
        self.assertEqual(rc, 1)
        self.assertEqual([r.method for r in self.fake.requests], ["GET"])

    def test_add_secret_prompts_for_hidden_value(self) -> None:
        with mock.patch("hubspot_cli.prompts.prompt_text", return_value="s3cret") as prompt:
            rc, _out, _err = self._run(["secrets", "add", "NEW_KEY"])
        self.assertEqual(rc, 0)
        self.assertTrue(prompt.call_args.kwargs["hide_input"])
        post = self.fake.requests[-1]
        self.assertEqual(json.loads(post.content), {"key": "NEW_KEY", "secret": "s3cret"})

    def test_hubdb_clear(self) -> None:
        rc, out, _err = self._run(["hubdb", "clear", "42"])
        self.assertEqual(rc, 0)
        self.assertIn("Removed 2 row(s) from table 42", out)

    def test_function_list_json(self) -> None:
        rc, out, _err = self._run(["cms", "function", "list", "--json"])
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out)[0]["route"], "hello")

    def test_latest_log(self) -> None:
        rc, out, _err = self._run(["logs", "hello", "--latest"])
        self.assertEqual(rc, 0)
        self.assertIn("SUCCESS", out)
        self.assertIn("latest run", out)

    def test_account_flag_must_exist(self) -> None:
        rc, _out, err = self._run(["--account", "nope", "secret", "list"])
        self.assertEqual(rc, 1)
        self.assertIn("nope", err)
        self.assertEqual(self.fake.requests, [])


if __name__ == "__main__":
    unittest.main()
