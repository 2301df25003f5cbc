"""``hs config set`` and ``hs config migrate``."""

from __future__ import annotations

from pathlib import Path

import typer

from hubspot_cli import prompts
from hubspot_cli.commands import die, load
from hubspot_cli.config import CLIConfig, ConfigError, find_deprecated_config_path, migrate_config
from hubspot_cli.constants import CMS_PUBLISH_MODES, EXIT_CODES, MIN_HTTP_TIMEOUT, global_config_path

SETTINGS = ("defaultCmsPublishMode", "httpTimeout", "allowUsageTracking")


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "yes", "1"):
        return True
    if v in ("false", "no", "0"):
        return False
    die(f"'{value}' is not a valid boolean. Use true or false.")


def register(app: typer.Typer) -> None:
    cfg_app = typer.Typer(help="Commands for managing the CLI config file", no_args_is_help=True)
    app.add_typer(cfg_app, name="config")

    @cfg_app.command("set", help="Set values in the config file")
    def cfg_set(
        ctx: typer.Context,
        default_cms_publish_mode: str | None = typer.Option(
            None, "--default-cms-publish-mode", help=f"One of: {', '.join(CMS_PUBLISH_MODES)}"
        ),
        http_timeout: str | None = typer.Option(
            None, "--http-timeout", help=f"HTTP timeout in milliseconds (at least {MIN_HTTP_TIMEOUT})"
        ),
        allow_usage_tracking: str | None = typer.Option(None, "--allow-usage-tracking", help="true or false"),
    ) -> None:
        cfg = load(ctx).config
        if default_cms_publish_mode is None and http_timeout is None and allow_usage_tracking is None:
            setting = prompts.choose("Which setting do you want to change?", SETTINGS)
            if setting == "defaultCmsPublishMode":
                default_cms_publish_mode = prompts.publish_mode_prompt(cfg.default_cms_publish_mode)
            elif setting == "httpTimeout":
                http_timeout = str(prompts.prompt_int("HTTP timeout (ms)", default=cfg.http_timeout_ms))
            else:
                allow_usage_tracking = str(prompts.confirm("Allow usage tracking?", default=True))

        if default_cms_publish_mode is not None:
            cfg.update_default_cms_publish_mode(default_cms_publish_mode)
            typer.echo(f"Default CMS publish mode set to {cfg.default_cms_publish_mode}")
        if http_timeout is not None:
            cfg.update_http_timeout(http_timeout)
            typer.echo(f"HTTP timeout set to {cfg.http_timeout}")
        if allow_usage_tracking is not None:
            cfg.update_allow_usage_tracking(_parse_bool(allow_usage_tracking))
            typer.echo(f"Allow usage tracking set to {cfg.allow_usage_tracking}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @cfg_app.command("migrate", help="Move a project-local config into the global config file")
    def cfg_migrate(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", help="Delete the old file without asking"),
    ) -> None:
        explicit = ctx.obj.get("config")
        path = Path(explicit).expanduser().resolve() if explicit else find_deprecated_config_path()
        if path is None or not path.is_file():
            die("No hubspot.config.yml found to migrate")
        try:
            deprecated = CLIConfig.load(path)
        except ConfigError as e:
            die(str(e))
        if not deprecated.deprecated:
            die(f"{deprecated.path} is already in the global format")

        result = migrate_config(deprecated, target=global_config_path())
        for acct_id in result.added:
            typer.echo(f"Migrated account {acct_id}")
        for acct_id in result.skipped:
            typer.echo(f"Account {acct_id} already exists in {result.config.path}; kept the existing entry")
        for key, kept, dropped in result.conflicts:
            typer.echo(f"Conflict on {key}: kept {kept!r}, ignored {dropped!r}")

        if force or prompts.confirm(f"Delete {deprecated.path}?", default=False):
            deprecated.delete_file()
            typer.echo(f"Deleted {deprecated.path}")
        typer.echo(f"Config migrated to {result.config.path}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
