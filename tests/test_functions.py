from __future__ import annotations

import json
import unittest

import httpx

from hubspot_cli import function_secrets, functions
from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.errors import ValidationError
from hubspot_cli.http import HubSpotClient
from hubspot_cli.serverless.logs import format_logs


def _client(handler) -> HubSpotClient:
    acct = AccountConfig(account_id=9, auth_type="apikey", api_key="k")
    cfg = CLIConfig(path=None, accounts=[acct], default_account=9, deprecated=False)
    return HubSpotClient(cfg, acct, transport=httpx.MockTransport(handler))


class TestPoll(unittest.TestCase):
    def test_polls_until_success(self) -> None:
        statuses = iter([{"status": "PENDING"}, {"status": "BUILDING"}, {"status": "SUCCESS", "id": "b1"}])
        sleeps: list[float] = []
        result = functions.poll(lambda: next(statuses), interval=0.5, sleep=sleeps.append)
        self.assertEqual(result["id"], "b1")
        self.assertEqual(sleeps, [0.5, 0.5])

    def test_terminal_error_raises(self) -> None:
        with self.assertRaises(functions.BuildFailedError) as cm:
            functions.poll(lambda: {"status": "ERROR", "errorReason": "npm install failed"}, sleep=lambda s: None)
        self.assertIn("npm install failed", cm.exception.message)
        self.assertEqual(cm.exception.status["status"], "ERROR")


class TestDeploy(unittest.TestCase):
    def test_deploy_starts_build_and_polls(self) -> None:
        polls = iter([{"status": "PENDING"}, {"status": "SUCCESS"}])
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/cms/v3/functions/build/async":
                return httpx.Response(200, json={"buildId": "b-7"})
            if request.url.path == "/cms/v3/functions/build/b-7/poll":
                return httpx.Response(200, json=next(polls))
            return httpx.Response(404, json={"message": "unexpected"})

        with _client(handler) as client:
            result = functions.deploy_functions(client, "my.functions", sleep=lambda s: None)
        self.assertEqual(result["status"], "SUCCESS")
        self.assertEqual(json.loads(seen[0].content), {"folderPath": "my.functions"})
        self.assertEqual(len(seen), 3)

    def test_deploy_requires_functions_folder(self) -> None:
        with _client(lambda r: httpx.Response(500)) as client:
            with self.assertRaises(ValidationError):
                functions.deploy_functions(client, "not-a-functions-dir")


class TestLogs(unittest.TestCase):
    def test_logs_by_route(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "id": "1",
                            "executionTime": 12,
                            "status": "SUCCESS",
                            "createdAt": 1700000000000,
                            "log": "hello from the function",
                        }
                    ]
                },
            )

        with _client(handler) as client:
            resp = functions.get_function_logs(client, "/hello", limit=5)
        self.assertEqual(seen[0].url.path, "/cms/v3/functions/results/by-route/hello")
        self.assertEqual(seen[0].url.params["limit"], "5")
        text = format_logs(resp)
        self.assertIn("SUCCESS", text)
        self.assertIn("hello from the function", text)


class FakeSecrets:
    def __init__(self, names: list[str]) -> None:
        self.names = names
        self.writes: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"results": list(self.names)})
        self.writes.append((request.method, request.url.path))
        return httpx.Response(204)


class TestSecrets(unittest.TestCase):
    def test_add_refuses_existing_key(self) -> None:
        fake = FakeSecrets(["API_KEY"])
        with _client(fake) as client:
            with self.assertRaises(ValidationError):
                function_secrets.add_secret(client, "API_KEY", "v")
            function_secrets.add_secret(client, "OTHER", "v")
        self.assertEqual(fake.writes, [("POST", "/cms/v3/functions/secrets")])

    def test_update_and_delete_require_existing_key(self) -> None:
        fake = FakeSecrets(["API_KEY"])
        with _client(fake) as client:
            with self.assertRaises(ValidationError):
                function_secrets.update_secret(client, "MISSING", "v")
            with self.assertRaises(ValidationError):
                function_secrets.delete_secret(client, "MISSING")
            function_secrets.update_secret(client, "API_KEY", "v2")
            function_secrets.delete_secret(client, "API_KEY")
        self.assertEqual(
            fake.writes,
            [("POST", "/cms/v3/functions/secrets"), ("DELETE", "/cms/v3/functions/secrets/API_KEY")],
        )

    def test_list_returns_names(self) -> None:
        with _client(FakeSecrets(["A", "B"])) as client:
            self.assertEqual(function_secrets.fetch_secrets(client), ["A", "B"])


if __name__ == "__main__":
    unittest.main()
