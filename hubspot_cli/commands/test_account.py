"""``hs test-account ...`` (also ``testAccount``)."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import developer_test_accounts, prompts
from hubspot_cli.accounts import add_personal_access_key_account
from hubspot_cli.commands import echo_json, load
from hubspot_cli.constants import EXIT_CODES


def _prompt_config() -> dict[str, str]:
    data: dict[str, str] = {"accountName": prompts.prompt_text("Name for the test account")}
    for key in developer_test_accounts.HUB_LEVEL_KEYS:
        data[key] = prompts.choose(f"{key}", developer_test_accounts.HUB_LEVELS, default="ENTERPRISE")
    return data


def register(app: typer.Typer) -> None:
    ta_app = typer.Typer(help="Manage developer test accounts", no_args_is_help=True)
    app.add_typer(ta_app, name="test-account")
    app.add_typer(ta_app, name="testAccount", hidden=True)

    @ta_app.command("create", help="Create a developer test account")
    def ta_create(
        ctx: typer.Context,
        config_path: str | None = typer.Option(None, "--config-path", help="Test account config (.json)"),
        as_json: bool = typer.Option(False, "--json", help="Print the result instead of saving it to the config"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        data = (
            developer_test_accounts.read_test_account_config(Path(config_path))
            if config_path
            else _prompt_config()
        )
        with c.client() as client:
            result = developer_test_accounts.create_test_account(client, data)
        if as_json:
            echo_json(result)
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        typer.echo(f"Test account {result['accountName']} ({result['accountId']}) created")
        if result.get("personalAccessKey"):
            with c.plain_http() as http:
                acct = add_personal_access_key_account(
                    c.config,
                    personal_access_key=result["personalAccessKey"],
                    http=http,
                    env=c.account_config().env,
                    name=result["accountName"],
                )
            typer.echo(f"Saved {acct.display_name} to the config")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @ta_app.command("delete", help="Delete a developer test account")
    def ta_delete(
        ctx: typer.Context,
        test_account_id: int | None = typer.Argument(None, help="Test account id"),
        force: bool = typer.Option(False, "--force", help="Delete without asking"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        tid = test_account_id if test_account_id is not None else prompts.prompt_int("Test account id")
        if not force and not prompts.confirm(f"Delete test account {tid}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        with c.client() as client:
            developer_test_accounts.delete_test_account(client, tid)
        typer.echo(f"Test account {tid} deleted")
        existing = c.config.get_account(tid)
        if existing is not None:
            c.config.remove_account(tid)
            typer.echo(f"Removed {existing.display_name} from the config")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @ta_app.command("create-config", help="Write a test account config file")
    def ta_create_config(
        path: str | None = typer.Option(None, "--path", help="Where to write the .json file"),
    ) -> None:
        data = _prompt_config()
        target = Path(path or f"{data['accountName']}.json")
        out = developer_test_accounts.write_test_account_config(target, data)
        typer.echo(f"Wrote {out}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @ta_app.command("import-data", help="Import CRM data into a test account")
    def ta_import_data(
        ctx: typer.Context,
        file: str = typer.Option(..., "--file", help="Import request (.json)"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            resp = developer_test_accounts.import_data(client, Path(file))
        typer.echo(f"Import {resp.get('id', '')} started in account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
