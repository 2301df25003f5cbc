"""Interactive prompts. All of them go through Click so tests can feed stdin."""

from __future__ import annotations

import re
from typing import Any, Sequence

import click
import typer

from hubspot_cli.constants import APP_BASE_URLS, CMS_PUBLISH_MODES, OAUTH_SCOPES


def prompt_text(message: str, *, default: str | None = None, hide_input: bool = False) -> str:
    value = typer.prompt(message, default=default, hide_input=hide_input, show_default=default is not None)
    return str(value).strip()


def prompt_int(message: str, *, default: int | None = None) -> int:
    return int(typer.prompt(message, default=default, type=int))


def confirm(message: str, *, default: bool = False) -> bool:
    return bool(typer.confirm(message, default=default))


def choose(message: str, choices: Sequence[str], *, default: str | None = None) -> str:
    if not choices:
        raise click.UsageError(f"Nothing to choose from: {message}")
    return str(
        typer.prompt(
            message,
            type=click.Choice(list(choices), case_sensitive=False),
            default=default if default in choices else None,
            show_choices=True,
        )
    )


def personal_access_key_prompt(*, env: str = "prod", account_id: int | None = None) -> str:
    url = f"{APP_BASE_URLS[env]}/l/personal-access-key"
    if account_id:
        url = f"{APP_BASE_URLS[env]}/personal-access-key/{account_id}"
    typer.echo(f"Create a personal access key at: {url}")
    key = prompt_text("Enter your personal access key", hide_input=True)
    if not key:
        raise click.UsageError("A personal access key is required")
    return key


def account_name_prompt(*, default: str | None = None, taken: Sequence[str] = ()) -> str:
    while True:
        name = prompt_text("Enter a unique name to reference this account in the CLI", default=default)
        if not name:
            typer.echo("The name may not be blank.", err=True)
        elif re.search(r"\s", name):
            typer.echo("The name may not contain spaces.", err=True)
        elif name in taken:
            typer.echo(f"The name '{name}' is already in use.", err=True)
        else:
            return name


def oauth_prompt() -> dict[str, Any]:
    account_id = prompt_int("Enter the account ID")
    client_id = prompt_text("Enter your OAuth2 client ID")
    client_secret = prompt_text("Enter your OAuth2 client secret", hide_input=True)
    raw_scopes = prompt_text("Scopes (comma separated)", default=",".join(OAUTH_SCOPES[:1]))
    scopes = [s.strip() for s in raw_scopes.split(",") if s.strip()]
    unknown = [s for s in scopes if s not in OAUTH_SCOPES]
    if unknown:
        raise click.UsageError(f"Unknown scopes: {', '.join(unknown)}")
    return {"accountId": account_id, "clientId": client_id, "clientSecret": client_secret, "scopes": scopes}


def publish_mode_prompt(default: str | None = None) -> str:
    return choose("Default CMS publish mode", CMS_PUBLISH_MODES, default=default)


def account_choice_prompt(names: Sequence[str], *, message: str = "Select an account") -> str:
    return choose(message, names)
