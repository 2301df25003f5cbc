from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import httpx

from hubspot_cli import hubdb
from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.errors import ValidationError
from hubspot_cli.http import HubSpotClient

TABLE = {
    "id": "42",
    "name": "people",
    "label": "People",
    "useForPages": False,
    "createdAt": "2024-01-01T00:00:00Z",
    "columns": [{"id": "1", "name": "first", "label": "First", "type": "TEXT"}],
}


def _client(handler) -> HubSpotClient:
    acct = AccountConfig(account_id=9, auth_type="apikey", api_key="k")
    cfg = CLIConfig(path=None, accounts=[acct], default_account=9, deprecated=False)
    return HubSpotClient(cfg, acct, transport=httpx.MockTransport(handler))


class FakeHubDB:
    """Two pages of rows; records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/rows") or path.endswith("/rows/draft"):
            if request.url.params.get("after") == "page-2":
                return httpx.Response(200, json={"results": [{"id": "3", "values": {"first": "c"}}]})
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"id": "1", "path": "a", "values": {"first": "a"}},
                        {"id": "2", "values": {"first": "b"}},
                    ],
                    "paging": {"next": {"after": "page-2"}},
                },
            )
        if path == "/cms/v3/hubdb/tables/42" and request.method == "GET":
            return httpx.Response(200, json=TABLE)
        if path == "/cms/v3/hubdb/tables" and request.method == "POST":
            return httpx.Response(201, json={"id": "42"})
        return httpx.Response(200, json={})

    def posts(self) -> list[tuple[str, object]]:
        return [
            (r.url.path, json.loads(r.content) if r.content else None)
            for r in self.requests
            if r.method == "POST"
        ]


class TestHubDB(unittest.TestCase):
    def test_rows_follow_paging(self) -> None:
        fake = FakeHubDB()
        with _client(fake) as client:
            rows = hubdb.fetch_rows(client, 42)
        self.assertEqual([r["id"] for r in rows], ["1", "2", "3"])
        self.assertEqual(fake.requests[0].url.params["limit"], "1000")
        self.assertEqual(fake.requests[1].url.params["after"], "page-2")

    def test_clear_purges_draft_rows_and_publishes(self) -> None:
        fake = FakeHubDB()
        with _client(fake) as client:
            result = hubdb.clear_table(client, 42)
        self.assertEqual(result, {"deletedRowCount": 3})
        self.assertTrue(fake.requests[0].url.path.endswith("/rows/draft"))
        self.assertEqual(
            fake.posts(),
            [
                ("/cms/v3/hubdb/tables/42/rows/draft/batch/purge", {"inputs": ["1", "2", "3"]}),
                ("/cms/v3/hubdb/tables/42/draft/publish", None),
            ],
        )

    def test_clear_empty_table_does_not_publish(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.method, "GET")
            return httpx.Response(200, json={"results": []})

        with _client(handler) as client:
            self.assertEqual(hubdb.clear_table(client, 7), {"deletedRowCount": 0})

    def test_create_from_file_creates_rows_then_publishes(self) -> None:
        fake = FakeHubDB()
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "people.hubdb.json"
            src.write_text(
                json.dumps(
                    {
                        "name": "people",
                        "label": "People",
                        "columns": [{"name": "first", "label": "First", "type": "TEXT"}],
                        "rows": [{"path": "a", "values": {"first": "a"}}, {"values": {"first": "b"}}],
                    }
                ),
                encoding="utf-8",
            )
            with _client(fake) as client:
                result = hubdb.create_table_from_file(client, src)
        self.assertEqual(result, {"tableId": "42", "rowCount": 2})
        paths = [p for p, _ in fake.posts()]
        self.assertEqual(
            paths,
            [
                "/cms/v3/hubdb/tables",
                "/cms/v3/hubdb/tables/42/rows/draft/batch/create",
                "/cms/v3/hubdb/tables/42/draft/publish",
            ],
        )
        table_body = fake.posts()[0][1]
        self.assertNotIn("rows", table_body)
        self.assertEqual(fake.posts()[1][1]["inputs"][0], {"values": {"first": "a"}, "path": "a"})

    def test_create_requires_json_source(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "people.yml"
            src.write_text("name: people\n", encoding="utf-8")
            with _client(lambda r: httpx.Response(500)) as client:
                with self.assertRaises(ValidationError):
                    hubdb.create_table_from_file(client, src)

    def test_download_writes_reusable_definition(self) -> None:
        fake = FakeHubDB()
        with tempfile.TemporaryDirectory() as td:
            with _client(fake) as client:
                out = hubdb.download_table(client, 42, Path(td))
            self.assertEqual(out.name, "people.hubdb.json")
            data = json.loads(out.read_text(encoding="utf-8"))
        self.assertNotIn("id", data)
        self.assertNotIn("createdAt", data)
        self.assertEqual(data["columns"], [{"name": "first", "label": "First", "type": "TEXT"}])
        self.assertEqual(data["rows"][0], {"path": "a", "values": {"first": "a"}})
        self.assertEqual(len(data["rows"]), 3)


if __name__ == "__main__":
    unittest.main()
