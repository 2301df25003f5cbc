"""Custom object schemas over crm-object-schemas/v3/schemas."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from hubspot_cli.errors import FileSystemError, ValidationError
from hubspot_cli.http import HubSpotClient

SCHEMA_API_PATH = "crm-object-schemas/v3/schemas"

REQUIRED_SCHEMA_KEYS = ("name", "labels", "properties", "requiredProperties", "primaryDisplayProperty")
_SERVER_KEYS = ("id", "fullyQualifiedName", "createdAt", "updatedAt", "objectTypeId", "archived", "portalId")
_PROPERTY_SERVER_KEYS = (
    "createdAt",
    "updatedAt",
    "archived",
    "archivedAt",
    "createdUserId",
    "updatedUserId",
    "calculated",
    "externalOptions",
    "hasUniqueValue",
    "modificationMetadata",
    "formField",
    "hidden",
    "displayOrder",
    "description",
    "groupName",
    "showCurrencySymbol",
)


def validate_schema_definition(definition: Any) -> dict[str, Any]:
    if not isinstance(definition, dict):
        raise ValidationError("The schema definition must be a JSON object")
    missing = [k for k in REQUIRED_SCHEMA_KEYS if k not in definition]
    if missing:
        raise ValidationError(f"The schema definition is missing required fields: {', '.join(missing)}")
    labels = definition["labels"]
    if not isinstance(labels, dict) or not labels.get("singular") or not labels.get("plural"):
        raise ValidationError("The schema 'labels' must include 'singular' and 'plural'")
    if not isinstance(definition["properties"], list) or not definition["properties"]:
        raise ValidationError("The schema must declare at least one property")
    names = {p.get("name") for p in definition["properties"] if isinstance(p, dict)}
    if definition["primaryDisplayProperty"] not in names:
        raise ValidationError("The primaryDisplayProperty must be one of the declared properties")
    unknown = [r for r in definition["requiredProperties"] if r not in names]
    if unknown:
        raise ValidationError(f"requiredProperties references unknown properties: {', '.join(unknown)}")
    return definition


def read_schema_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileSystemError(f"The path '{path}' is not a file", filepath=str(path), operation="read")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"The schema file '{path}' is not valid JSON: {e}") from e
    return validate_schema_definition(data)


def clean_schema(schema: dict[str, Any]) -> dict[str, Any]:
    out = {k: v for k, v in schema.items() if k not in _SERVER_KEYS}
    out["properties"] = [
        {k: v for k, v in p.items() if k not in _PROPERTY_SERVER_KEYS}
        for p in schema.get("properties") or []
        if not str(p.get("name", "")).startswith("hs_")
    ]
    out.pop("associations", None)
    return out


def list_schemas(client: HubSpotClient) -> list[dict[str, Any]]:
    return (client.get(SCHEMA_API_PATH) or {}).get("results") or []


def fetch_schema(client: HubSpotClient, name: str) -> dict[str, Any]:
    return client.get(f"{SCHEMA_API_PATH}/{name}")


def create_schema(client: HubSpotClient, definition: dict[str, Any]) -> dict[str, Any]:
    return client.post(SCHEMA_API_PATH, json=validate_schema_definition(definition))


def update_schema(client: HubSpotClient, name: str, definition: dict[str, Any]) -> dict[str, Any]:
    body = {k: v for k, v in validate_schema_definition(definition).items() if k not in ("name", "properties")}
    return client.patch(f"{SCHEMA_API_PATH}/{name}", json=body)


def delete_schema(client: HubSpotClient, name: str) -> None:
    client.delete(f"{SCHEMA_API_PATH}/{name}")


def write_schema(schema: dict[str, Any], dest: Path) -> Path:
    name = schema.get("name") or schema.get("objectTypeId") or "schema"
    target = dest if dest.suffix == ".json" else dest / f"{name}.json"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(clean_schema(schema), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise FileSystemError(f"Failed to write {target}: {e}", filepath=str(target), operation="write", cause=e) from e
    return target


def download_all_schemas(client: HubSpotClient, dest: Path) -> list[Path]:
    return [write_schema(s, dest) for s in list_schemas(client)]
