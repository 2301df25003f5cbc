"""HubDB tables over cms/v3/hubdb."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

from hubspot_cli.errors import FileSystemError, ValidationError
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

HUBDB_API_PATH = "cms/v3/hubdb"
BATCH_SIZE = 100

_COLUMN_KEYS = ("name", "label", "type", "options", "foreignTableId", "foreignColumnId")
_TABLE_KEYS = (
    "name",
    "label",
    "useForPages",
    "allowPublicApiAccess",
    "allowChildTables",
    "enableChildTablePages",
    "dynamicMetaTags",
)


def read_table_file(src: Path) -> dict[str, Any]:
    if src.suffix.lower() != ".json":
        raise ValidationError(f"The source '{src}' must be a .json file")
    if not src.is_file():
        raise FileSystemError(f"The source '{src}' does not exist", filepath=str(src), operation="read")
    try:
        data = json.loads(src.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"The source '{src}' is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"The source '{src}' must contain a JSON object")
    return data


def _row_for_create(row: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {"values": row.get("values") or {}}
    for key in ("path", "name", "childTableId"):
        if row.get(key) is not None:
            out[key] = row[key]
    return out


def create_table(client: HubSpotClient, table: dict[str, Any]) -> dict[str, Any]:
    return client.post(f"{HUBDB_API_PATH}/tables", json=table)


def create_rows(client: HubSpotClient, table_id: str | int, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    created: list[dict[str, Any]] = []
    for i in range(0, len(rows), BATCH_SIZE):
        batch = [_row_for_create(r) for r in rows[i : i + BATCH_SIZE]]
        resp = client.post(f"{HUBDB_API_PATH}/tables/{table_id}/rows/draft/batch/create", json={"inputs": batch})
        created.extend((resp or {}).get("results") or [])
    return created


def publish_table(client: HubSpotClient, table_id: str | int) -> dict[str, Any]:
    return client.post(f"{HUBDB_API_PATH}/tables/{table_id}/draft/publish")


def create_table_from_file(client: HubSpotClient, src: Path) -> dict[str, Any]:
    """Create and publish a table (with its rows) from a local JSON definition.

    Returns ``{"tableId": ..., "rowCount": ...}``.
    """
    data = read_table_file(src)
    rows = list(data.pop("rows", None) or [])
    table = create_table(client, data)
    table_id = table["id"]
    if rows:
        create_rows(client, table_id, rows)
    publish_table(client, table_id)
    logger.debug("Created HubDB table %s with %d rows", table_id, len(rows))
    return {"tableId": table_id, "rowCount": len(rows)}


def fetch_table(client: HubSpotClient, table_id: str | int) -> dict[str, Any]:
    return client.get(f"{HUBDB_API_PATH}/tables/{table_id}")


def iter_rows(client: HubSpotClient, table_id: str | int, *, draft: bool = False) -> Iterator[dict[str, Any]]:
    path = f"{HUBDB_API_PATH}/tables/{table_id}/rows" + ("/draft" if draft else "")
    after: str | None = None
    while True:
        params: dict[str, Any] = {"limit": 1000}
        if after:
            params["after"] = after
        resp = client.get(path, params=params) or {}
        yield from resp.get("results") or []
        after = ((resp.get("paging") or {}).get("next") or {}).get("after")
        if not after:
            return


def fetch_rows(client: HubSpotClient, table_id: str | int, *, draft: bool = False) -> list[dict[str, Any]]:
    return list(iter_rows(client, table_id, draft=draft))


def convert_to_json_writable(table: dict[str, Any], rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Strip server-side fields so the result can be fed back into ``create``."""
    out = {k: table[k] for k in _TABLE_KEYS if k in table}
    out["columns"] = [
        {k: c[k] for k in _COLUMN_KEYS if c.get(k) is not None} for c in (table.get("columns") or [])
    ]
    out["rows"] = []
    for r in rows:
        row: dict[str, Any] = {}
        if r.get("path"):
            row["path"] = r["path"]
        if r.get("name"):
            row["name"] = r["name"]
        row["values"] = r.get("values") or {}
        out["rows"].append(row)
    return out


def download_table(client: HubSpotClient, table_id: str | int, dest: Path | None = None) -> Path:
    """Write ``<table name>.hubdb.json``. ``dest`` may be a directory or a file path."""
    table = fetch_table(client, table_id)
    rows = fetch_rows(client, table_id)
    dest = dest or Path.cwd()
    if dest.suffix != ".json":
        dest = dest / f"{table['name']}.hubdb.json"
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(json.dumps(convert_to_json_writable(table, rows), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise FileSystemError(f"Failed to write {dest}: {e}", filepath=str(dest), operation="write", cause=e) from e
    return dest


def clear_table(client: HubSpotClient, table_id: str | int) -> dict[str, Any]:
    """Delete every draft row and republish. Returns ``{"deletedRowCount": n}``."""
    rows = fetch_rows(client, table_id, draft=True)
    ids = [str(r["id"]) for r in rows if r.get("id") is not None]
    for i in range(0, len(ids), BATCH_SIZE):
        client.post(f"{HUBDB_API_PATH}/tables/{table_id}/rows/draft/batch/purge", json={"inputs": ids[i : i + BATCH_SIZE]})
    if ids:
        publish_table(client, table_id)
    return {"deletedRowCount": len(ids)}


def delete_table(client: HubSpotClient, table_id: str | int) -> None:
    client.delete(f"{HUBDB_API_PATH}/tables/{table_id}")


def list_tables(client: HubSpotClient) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    after: str | None = None
    while True:
        params: dict[str, Any] = {"limit": 1000}
        if after:
            params["after"] = after
        resp = client.get(f"{HUBDB_API_PATH}/tables", params=params) or {}
        out.extend(resp.get("results") or [])
        after = ((resp.get("paging") or {}).get("next") or {}).get("after")
        if not after:
            return out
