from __future__ import annotations

import typer


def run(argv: list[str]) -> int:
    import click
    import typer

    from hubspot_cli import __version__
    from hubspot_cli.commands import accounts, cms, config_cmd, create, custom_object, filemanager, hubdb, mcp
    from hubspot_cli.commands import project, sandbox, secrets, test_account
    from hubspot_cli.config import ConfigError
    from hubspot_cli.constants import EXIT_CODES
    from hubspot_cli.errors import HubSpotError, log_error
    from hubspot_cli.logging_utils import configure_logging

    app = typer.Typer(
        add_completion=True,
        help="The HubSpot CLI",
        invoke_without_command=True,
        no_args_is_help=True,
    )

    @app.callback()
    def _root(
        ctx: typer.Context,
        config: str | None = typer.Option(None, "--config", "-c", help="Path to a config file"),
        account: str | None = typer.Option(None, "--account", "-a", help="Account name or id to use"),
        use_env: bool = typer.Option(False, "--use-env", help="Read account credentials from HUBSPOT_* variables"),
        debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
        version: bool = typer.Option(False, "--version", help="Print version and exit"),
    ) -> None:
        if version:
            typer.echo(__version__)
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        configure_logging(1 if debug else 0)
        ctx.obj = {
            "config": config,
            "account": account,
            "use_env": use_env,
            "debug": debug,
        }

    accounts.register(app)
    config_cmd.register(app)
    create.register(app)
    cms.register(app)
    custom_object.register(app)
    hubdb.register(app)
    secrets.register(app)
    filemanager.register(app)
    project.register(app)
    test_account.register(app)
    sandbox.register(app)
    mcp.register(app)

    # Execute without letting Click `sys.exit()`.
    command = typer.main.get_command(app)
    try:
        rv = command.main(args=argv, prog_name="hs", standalone_mode=False)
        if isinstance(rv, int):
            return int(rv)
        return EXIT_CODES.SUCCESS
    except ConfigError as e:
        typer.echo(f"ERROR: {e}", err=True)
        return EXIT_CODES.ERROR
    except HubSpotError as e:
        log_error(e)
        return EXIT_CODES.ERROR
    except click.exceptions.Abort:
        typer.echo("Aborted.", err=True)
        return EXIT_CODES.ERROR
    except click.exceptions.ClickException as e:
        e.show()
        return EXIT_CODES.ERROR
    except SystemExit as e:  # pragma: no cover
        return int(e.code or 0)
