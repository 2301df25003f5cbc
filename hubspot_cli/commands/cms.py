"""``hs cms ...``: Design Manager files, serverless functions and themes."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import cms, ops
from hubspot_cli.commands import die, echo_json, echo_table, load
from hubspot_cli.commands.create import function_options
from hubspot_cli.config import ConfigError
from hubspot_cli.constants import DEFAULT_FUNCTION_PORT, EXIT_CODES
from hubspot_cli.functions import deploy_functions, get_function_logs, get_latest_function_log, list_routes
from hubspot_cli.scaffold import CreateArgs, build_registry
from hubspot_cli.serverless.logs import format_logs
from hubspot_cli.serverless.server import FunctionServer
from hubspot_cli.themes import generate_selectors


def _logs(ctx: typer.Context, route: str, *, latest: bool, limit: int | None, compact: bool, account: str | None) -> None:
    c = load(ctx, account)
    with c.client() as client:
        if latest:
            resp = get_latest_function_log(client, route)
        else:
            resp = get_function_logs(client, route, limit=limit)
    typer.echo(format_logs(resp, compact=compact))
    raise typer.Exit(code=EXIT_CODES.SUCCESS)


def _server_account_id(ctx: typer.Context, account: str | None) -> int | None:
    # The local server runs without a config; the account id is only mock context.
    obj = ctx.obj or {}
    try:
        c = ops.load_ctx(
            config_override=obj.get("config"),
            account=account or obj.get("account"),
            use_env=bool(obj.get("use_env")),
        )
        return c.account_id
    except ConfigError:
        return None


def register(app: typer.Typer) -> None:
    cms_app = typer.Typer(help="Commands for working with the HubSpot CMS", no_args_is_help=True)
    app.add_typer(cms_app, name="cms")

    @cms_app.command("upload", help="Upload a file or folder to the Design Manager")
    def cms_upload(
        ctx: typer.Context,
        src: str = typer.Argument(..., help="Local file or folder"),
        dest: str = typer.Argument(..., help="Remote destination path"),
        mode: str | None = typer.Option(None, "--mode", "-m", help="draft or publish"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        m = cms.resolve_mode(c.config.default_cms_publish_mode, mode)
        path = Path(src)
        if not path.exists():
            die(f"The path '{src}' does not exist")
        with c.client() as client:
            if path.is_file():
                cms.upload_file(client, path, dest, mode=m)
                typer.echo(f"Uploaded {src} to {dest} in account {c.account_id}")
                raise typer.Exit(code=EXIT_CODES.SUCCESS)
            result = cms.upload_folder(client, path, dest, mode=m)
        typer.echo(f"Uploaded {len(result.uploaded)} file(s) to {dest} in account {c.account_id}")
        for remote, message in result.failed:
            typer.echo(f"Failed: {remote}: {message}", err=True)
        raise typer.Exit(code=EXIT_CODES.SUCCESS if result.ok else EXIT_CODES.ERROR)

    @cms_app.command("fetch", help="Download a file or folder from the Design Manager")
    def cms_fetch(
        ctx: typer.Context,
        src: str = typer.Argument(..., help="Remote path"),
        dest: str | None = typer.Argument(None, help="Local destination (defaults to cwd)"),
        mode: str | None = typer.Option(None, "--mode", "-m", help="draft or publish"),
        overwrite: bool = typer.Option(False, "--overwrite", "-o", help="Overwrite existing local files"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        m = cms.resolve_mode(c.config.default_cms_publish_mode, mode)
        with c.client() as client:
            written = cms.fetch(client, src, Path(dest or "."), mode=m, overwrite=overwrite)
        typer.echo(f"Fetched {len(written)} file(s) from {src}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @cms_app.command("delete", help="Delete a file or folder from the Design Manager")
    def cms_delete(
        ctx: typer.Context,
        path: str = typer.Argument(..., help="Remote path"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            cms.delete(client, path)
        typer.echo(f"Deleted {path} from account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    # ---- functions ----
    fn_app = typer.Typer(help="Commands for serverless functions", no_args_is_help=True)
    cms_app.add_typer(fn_app, name="function")
    app.add_typer(fn_app, name="functions", hidden=True)

    @fn_app.command("list")
    def fn_list(
        ctx: typer.Context,
        as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            routes = list_routes(client)
        if as_json:
            echo_json(routes)
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        if not routes:
            typer.echo(f"No functions found in account {c.account_id}")
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        rows = [("Route", "Method", "Secrets", "Created", "Updated")]
        for r in routes:
            rows.append(
                (
                    str(r.get("route", "")),
                    str(r.get("method", "")),
                    ", ".join(r.get("secretNames") or []),
                    str(r.get("created", "")),
                    str(r.get("updated", "")),
                )
            )
        echo_table(rows)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    fn_app.command("ls", hidden=True)(fn_list)

    @fn_app.command("create", help="Create a .functions folder with a handler and serverless.json")
    def fn_create(
        dest: str | None = typer.Argument(None, help="Parent folder of the functions folder"),
        functions_folder: str | None = typer.Option(None, "--name", "--functions-folder", help="Functions folder name"),
        filename: str | None = typer.Option(None, "--filename"),
        endpoint_path: str | None = typer.Option(None, "--endpoint-path"),
        endpoint_method: str | None = typer.Option(None, "--endpoint-method"),
    ) -> None:
        options = function_options(
            functions_folder=functions_folder,
            filename=filename,
            endpoint_path=endpoint_path,
            endpoint_method=endpoint_method,
        )
        written = build_registry().create(
            CreateArgs(asset_type="function", dest=Path(dest) if dest else None, options=options)
        )
        for p in written:
            typer.echo(f"Created {p}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @fn_app.command("deploy", help="Build and deploy a remote .functions folder")
    def fn_deploy(
        ctx: typer.Context,
        path: str = typer.Argument(..., help="Remote path of the .functions folder"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        typer.echo(f"Building new dependencies for {path} in account {c.account_id}")
        with c.client() as client:
            status = deploy_functions(client, path)
        typer.echo(f"Built and deployed {path} ({status.get('status')})")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @fn_app.command("server", help="Run a local test server for a .functions folder")
    def fn_server(
        ctx: typer.Context,
        path: str = typer.Argument(..., help="Local .functions folder"),
        port: int = typer.Option(DEFAULT_FUNCTION_PORT, "--port", help="Port to listen on"),
        contact: bool = typer.Option(True, "--contact/--no-contact", help="Pass mock contact data to handlers"),
        watch: bool = typer.Option(False, "--watch", help="Reload when files change"),
        log_output: bool = typer.Option(False, "--log-output", help="Echo handler output as it happens"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        server = FunctionServer(
            path,
            account_id=_server_account_id(ctx, account),
            port=port,
            contact=contact,
            watch=watch,
            log_output=log_output,
        )
        server.serve()
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @fn_app.command("logs", help="Show execution logs of a deployed function")
    def fn_logs(
        ctx: typer.Context,
        route: str = typer.Argument(..., help="Function route"),
        latest: bool = typer.Option(False, "--latest", "-l", help="Only the latest execution"),
        limit: int | None = typer.Option(None, "--limit", help="Maximum number of entries"),
        compact: bool = typer.Option(False, "--compact", help="Headers only"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        _logs(ctx, route, latest=latest, limit=limit, compact=compact, account=account)

    app.command("logs", help="Show execution logs of a deployed function")(fn_logs)

    # ---- themes ----
    theme_app = typer.Typer(help="Commands for working with themes", no_args_is_help=True)
    cms_app.add_typer(theme_app, name="theme")

    @theme_app.command("generate-selectors", help="Write editor-preview.json for a theme")
    def theme_generate_selectors(path: str = typer.Argument(..., help="Theme folder")) -> None:
        theme = Path(path)
        if not theme.is_dir():
            die(f"'{path}' is not a directory")
        out = generate_selectors(theme)
        typer.echo(f"Selectors generated for {path}, wrote {out}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
