"""``hs secret ...`` (also ``secrets``)."""

from __future__ import annotations

import typer

from hubspot_cli import function_secrets, prompts
from hubspot_cli.commands import load
from hubspot_cli.constants import EXIT_CODES


def _secret_value(value: str | None) -> str:
    return value if value is not None else prompts.prompt_text("Enter a value for the secret", hide_input=True)


def register(app: typer.Typer) -> None:
    secret_app = typer.Typer(help="Manage serverless function secrets", no_args_is_help=True)
    app.add_typer(secret_app, name="secret")
    app.add_typer(secret_app, name="secrets", hidden=True)

    @secret_app.command("add", help="Add a new secret")
    def secret_add(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Secret name"),
        value: str | None = typer.Option(None, "--value", hidden=True),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            function_secrets.add_secret(client, name, _secret_value(value))
        typer.echo(f"The secret {name} was added to account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @secret_app.command("update", help="Change the value of an existing secret")
    def secret_update(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Secret name"),
        value: str | None = typer.Option(None, "--value", hidden=True),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            function_secrets.update_secret(client, name, _secret_value(value))
        typer.echo(f"The secret {name} was updated in account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @secret_app.command("delete", help="Delete a secret")
    def secret_delete(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Secret name"),
        force: bool = typer.Option(False, "--force", help="Delete without asking"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        if not force and not prompts.confirm(f"Delete the secret {name} from account {c.account_id}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        with c.client() as client:
            function_secrets.delete_secret(client, name)
        typer.echo(f"The secret {name} was deleted from account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @secret_app.command("list", help="List secret names")
    def secret_list(
        ctx: typer.Context,
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            names = function_secrets.fetch_secrets(client)
        typer.echo(f"Secrets for account {c.account_id}:")
        for n in names:
            typer.echo(f"  {n}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
