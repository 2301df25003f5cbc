"""``hs hubdb ...``."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import hubdb, prompts
from hubspot_cli.commands import echo_table, load
from hubspot_cli.constants import EXIT_CODES


def register(app: typer.Typer) -> None:
    hubdb_app = typer.Typer(help="Manage HubDB tables", no_args_is_help=True)
    app.add_typer(hubdb_app, name="hubdb")

    @hubdb_app.command("create", help="Create and publish a table from a local JSON file")
    def hubdb_create(
        ctx: typer.Context,
        path: str | None = typer.Option(None, "--path", help="Local table definition (.json)"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        src = Path(path or prompts.prompt_text("Path to the table definition file"))
        with c.client() as client:
            result = hubdb.create_table_from_file(client, src)
        typer.echo(
            f"The table {result['tableId']} was created in {c.account_id} with {result['rowCount']} row(s)"
        )
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @hubdb_app.command("fetch", help="Download a table to <name>.hubdb.json")
    def hubdb_fetch(
        ctx: typer.Context,
        table_id: str | None = typer.Argument(None, help="Table id"),
        dest: str | None = typer.Argument(None, help="Destination folder or file"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        tid = table_id or prompts.prompt_text("Table id")
        with c.client() as client:
            out = hubdb.download_table(client, tid, Path(dest) if dest else None)
        typer.echo(f"Downloaded table {tid} from account {c.account_id} to {out}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @hubdb_app.command("clear", help="Delete every row of a table and republish it")
    def hubdb_clear(
        ctx: typer.Context,
        table_id: str | None = typer.Argument(None, help="Table id"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        tid = table_id or prompts.prompt_text("Table id")
        with c.client() as client:
            result = hubdb.clear_table(client, tid)
        if result["deletedRowCount"]:
            typer.echo(f"Removed {result['deletedRowCount']} row(s) from table {tid} and published the table")
        else:
            typer.echo(f"Table {tid} is already empty")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @hubdb_app.command("delete", help="Delete a table")
    def hubdb_delete(
        ctx: typer.Context,
        table_id: str | None = typer.Argument(None, help="Table id"),
        force: bool = typer.Option(False, "--force", help="Delete without asking"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        tid = table_id or prompts.prompt_text("Table id")
        if not force and not prompts.confirm(f"Delete table {tid} from account {c.account_id}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        with c.client() as client:
            hubdb.delete_table(client, tid)
        typer.echo(f"The table {tid} was deleted from {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @hubdb_app.command("list", help="List the tables of an account")
    def hubdb_list(
        ctx: typer.Context,
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            tables = hubdb.list_tables(client)
        if not tables:
            typer.echo(f"No tables found in account {c.account_id}")
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        rows = [("ID", "Name", "Label", "Rows")]
        for t in tables:
            rows.append((str(t.get("id", "")), str(t.get("name", "")), str(t.get("label", "")), str(t.get("rowCount", ""))))
        echo_table(rows)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
