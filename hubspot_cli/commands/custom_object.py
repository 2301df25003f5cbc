"""``hs custom-object schema ...`` (also ``customObject``)."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import custom_objects, prompts
from hubspot_cli.commands import echo_json, echo_table, load
from hubspot_cli.constants import EXIT_CODES


def register(app: typer.Typer) -> None:
    co_app = typer.Typer(help="Manage custom objects", no_args_is_help=True)
    app.add_typer(co_app, name="custom-object")
    app.add_typer(co_app, name="customObject", hidden=True)
    app.add_typer(co_app, name="custom-objects", hidden=True)

    schema_app = typer.Typer(help="Manage custom object schemas", no_args_is_help=True)
    co_app.add_typer(schema_app, name="schema")

    @schema_app.command("create", help="Create a schema from a definition file")
    def schema_create(
        ctx: typer.Context,
        path: str | None = typer.Option(None, "--path", help="Schema definition (.json)"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        definition = custom_objects.read_schema_file(Path(path or prompts.prompt_text("Path to the schema definition")))
        with c.client() as client:
            created = custom_objects.create_schema(client, definition)
        typer.echo(f"Schema {created.get('name')} ({created.get('objectTypeId')}) created in account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @schema_app.command("update", help="Update a schema from a definition file")
    def schema_update(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Schema name or objectTypeId"),
        path: str | None = typer.Option(None, "--path", help="Schema definition (.json)"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        schema_name = name or prompts.prompt_text("Schema name")
        definition = custom_objects.read_schema_file(Path(path or prompts.prompt_text("Path to the schema definition")))
        with c.client() as client:
            updated = custom_objects.update_schema(client, schema_name, definition)
        typer.echo(f"Schema {updated.get('name', schema_name)} updated in account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @schema_app.command("delete", help="Delete a schema")
    def schema_delete(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Schema name or objectTypeId"),
        force: bool = typer.Option(False, "--force", help="Delete without asking"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        schema_name = name or prompts.prompt_text("Schema name")
        if not force and not prompts.confirm(f"Delete schema {schema_name} from account {c.account_id}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        with c.client() as client:
            custom_objects.delete_schema(client, schema_name)
        typer.echo(f"Schema {schema_name} deleted from account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @schema_app.command("list", help="List the schemas of an account")
    def schema_list(
        ctx: typer.Context,
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            schemas = custom_objects.list_schemas(client)
        if not schemas:
            typer.echo(f"No schemas found in account {c.account_id}")
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        rows = [("Label", "Name", "objectTypeId")]
        for s in schemas:
            label = (s.get("labels") or {}).get("singular", "")
            rows.append((str(label), str(s.get("name", "")), str(s.get("objectTypeId", ""))))
        echo_table(rows)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @schema_app.command("fetch", help="Download one schema")
    def schema_fetch(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Schema name or objectTypeId"),
        dest: str | None = typer.Argument(None, help="Destination folder or .json file"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        schema_name = name or prompts.prompt_text("Schema name")
        with c.client() as client:
            schema = custom_objects.fetch_schema(client, schema_name)
        if dest is None:
            echo_json(custom_objects.clean_schema(schema))
        else:
            out = custom_objects.write_schema(schema, Path(dest))
            typer.echo(f"Schema {schema_name} written to {out}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @schema_app.command("fetch-all", help="Download every schema of an account")
    def schema_fetch_all(
        ctx: typer.Context,
        dest: str | None = typer.Argument(None, help="Destination folder"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            written = custom_objects.download_all_schemas(client, Path(dest or "."))
        for p in written:
            typer.echo(f"Wrote {p}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
