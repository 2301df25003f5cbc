"""Serverless function secrets over cms/v3/functions/secrets."""

from __future__ import annotations

from hubspot_cli.errors import ValidationError
from hubspot_cli.http import HubSpotClient

SECRETS_API_PATH = "cms/v3/functions/secrets"


def fetch_secrets(client: HubSpotClient) -> list[str]:
    return list((client.get(SECRETS_API_PATH) or {}).get("results") or [])


def add_secret(client: HubSpotClient, key: str, value: str) -> None:
    if key in fetch_secrets(client):
        raise ValidationError(f"The secret '{key}' already exists. Use `hs secret update` to change it.")
    client.post(SECRETS_API_PATH, json={"key": key, "secret": value})


def update_secret(client: HubSpotClient, key: str, value: str) -> None:
    if key not in fetch_secrets(client):
        raise ValidationError(f"The secret '{key}' does not exist. Use `hs secret add` to create it.")
    client.post(SECRETS_API_PATH, json={"key": key, "secret": value})


def delete_secret(client: HubSpotClient, key: str) -> None:
    if key not in fetch_secrets(client):
        raise ValidationError(f"The secret '{key}' does not exist")
    client.delete(f"{SECRETS_API_PATH}/{key}")
