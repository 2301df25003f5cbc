"""``hs project init|create|upload|deploy``."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import projects, prompts
from hubspot_cli.commands import load
from hubspot_cli.constants import EXIT_CODES


def register(app: typer.Typer) -> None:
    project_app = typer.Typer(help="Commands for developer projects", no_args_is_help=True)
    app.add_typer(project_app, name="project")

    def _create_local(name: str | None, dest: str | None) -> None:
        project_name = name or prompts.prompt_text("Name of the project")
        directory = Path(dest or project_name).resolve()
        p = projects.write_project(directory, projects.ProjectConfig(name=project_name))
        typer.echo(f"Created {p}")

    @project_app.command("init", help="Write hsproject.json in an existing folder")
    def project_init(
        name: str | None = typer.Option(None, "--name", help="Project name"),
        dest: str | None = typer.Option(None, "--dest", help="Project folder (defaults to cwd)"),
    ) -> None:
        _create_local(name, dest or ".")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @project_app.command("create", help="Create a new project folder")
    def project_create(
        name: str | None = typer.Option(None, "--name", help="Project name"),
        dest: str | None = typer.Option(None, "--dest", help="Project folder (defaults to ./<name>)"),
    ) -> None:
        _create_local(name, dest)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @project_app.command("upload", help="Upload the project source and wait for the build")
    def project_upload(
        ctx: typer.Context,
        message: str = typer.Option("", "--message", "-m", help="Build message"),
        force_create: bool = typer.Option(False, "--force-create", help="Create the remote project if missing"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        project_dir, project = projects.load_project()
        typer.echo(f"Uploading {project.name} to account {c.account_id}")
        with c.client() as client:
            status = projects.upload_project(client, project_dir, project, message=message, force_create=force_create)
        typer.echo(f"Build #{status.get('buildId', '?')} succeeded")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @project_app.command("deploy", help="Deploy a project build")
    def project_deploy(
        ctx: typer.Context,
        build_id: int | None = typer.Option(None, "--build", "-b", help="Build id (defaults to the latest)"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        _, project = projects.load_project()
        with c.client() as client:
            projects.deploy_project(client, project, build_id)
        typer.echo(f"Deployed {project.name} to account {c.account_id}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
