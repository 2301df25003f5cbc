"""``hs filemanager upload|fetch``."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import filemanager
from hubspot_cli.commands import load
from hubspot_cli.constants import EXIT_CODES


def register(app: typer.Typer) -> None:
    fm_app = typer.Typer(help="Commands for the File Manager", no_args_is_help=True)
    app.add_typer(fm_app, name="filemanager")

    @fm_app.command("upload", help="Upload a file or folder to the File Manager")
    def fm_upload(
        ctx: typer.Context,
        src: str = typer.Argument(..., help="Local file or folder"),
        dest: str = typer.Argument(..., help="File Manager destination path"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            result = filemanager.upload(client, Path(src), dest)
        typer.echo(f"Uploaded {len(result.uploaded)} file(s) to {dest} in account {c.account_id}")
        for remote, message in result.failed:
            typer.echo(f"Failed: {remote}: {message}", err=True)
        raise typer.Exit(code=EXIT_CODES.SUCCESS if result.ok else EXIT_CODES.ERROR)

    @fm_app.command("fetch", help="Download a file or folder from the File Manager")
    def fm_fetch(
        ctx: typer.Context,
        src: str = typer.Argument(..., help="File Manager path"),
        dest: str | None = typer.Argument(None, help="Local destination (defaults to cwd)"),
        include_archived: bool = typer.Option(False, "--include-archived", help="Also download archived files"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        with c.client() as client:
            written = filemanager.fetch(client, src, Path(dest or "."), include_archived=include_archived)
        typer.echo(f"Downloaded {len(written)} file(s) from {src}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
