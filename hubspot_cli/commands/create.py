"""``hs create <type> [name] [dest]``."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import prompts
from hubspot_cli.commands import die
from hubspot_cli.constants import EXIT_CODES
from hubspot_cli.scaffold import HTTP_METHODS, CreateArgs, build_registry


def function_options(
    *,
    functions_folder: str | None,
    filename: str | None,
    endpoint_path: str | None,
    endpoint_method: str | None,
) -> dict[str, str]:
    """Fill in whatever the flags left out by asking."""
    return {
        "functions_folder": functions_folder or prompts.prompt_text("Name of the folder for your function"),
        "filename": filename or prompts.prompt_text("Name of the Python file for your function", default="function.py"),
        "endpoint_path": endpoint_path or prompts.prompt_text("Path portion of the URL created for the function"),
        "endpoint_method": endpoint_method or prompts.choose("Select the HTTP method for the endpoint", HTTP_METHODS, default="GET"),
    }


def register(app: typer.Typer) -> None:
    registry = build_registry()

    @app.command("create", help=f"Create HubSpot sample apps and CMS assets. Types: {', '.join(registry.visible())}")
    def create_cmd(
        asset_type: str = typer.Argument(..., help="Type of asset"),
        name: str | None = typer.Argument(None, help="Name of the new asset"),
        dest: str | None = typer.Argument(None, help="Destination folder"),
        template_type: str | None = typer.Option(None, "--template-type", help="Template type for `create template`"),
        content_types: str | None = typer.Option(None, "--content-types", help="Comma separated host template types for modules"),
        global_module: bool = typer.Option(False, "--global", help="Create a global module"),
        functions_folder: str | None = typer.Option(None, "--functions-folder"),
        filename: str | None = typer.Option(None, "--filename"),
        endpoint_path: str | None = typer.Option(None, "--endpoint-path"),
        endpoint_method: str | None = typer.Option(None, "--endpoint-method"),
    ) -> None:
        asset_type = asset_type.lower()
        if registry.get(asset_type) is None:
            die(f"The asset type '{asset_type}' is not supported. Supported asset types: {', '.join(registry.visible())}")

        options: dict[str, object] = {}
        if asset_type == "module":
            if name is None:
                name = prompts.prompt_text("Name of the module")
            options["global"] = global_module
            if content_types:
                options["content_types"] = [t.strip().upper() for t in content_types.split(",") if t.strip()]
        elif asset_type == "template":
            if name is None:
                name = prompts.prompt_text("Name of the template")
            options["template_type"] = template_type or "page-template"
        elif asset_type == "function":
            # `hs create function [dest]`; the function has no name of its own.
            if dest is None and name is not None:
                name, dest = None, name
            options.update(
                function_options(
                    functions_folder=functions_folder,
                    filename=filename,
                    endpoint_path=endpoint_path,
                    endpoint_method=endpoint_method,
                )
            )

        args = CreateArgs(asset_type=asset_type, name=name, dest=Path(dest) if dest else None, options=options)
        written = registry.create(args)
        if len(written) > 10:
            typer.echo(f"Created {len(written)} files in {args.dest}")
        else:
            for p in written:
                typer.echo(f"Created {p}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
