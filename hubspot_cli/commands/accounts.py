"""``hs init``, ``hs auth`` and ``hs accounts ...``."""

from __future__ import annotations

from pathlib import Path

import httpx
import typer

from hubspot_cli import ops, prompts
from hubspot_cli.accounts import (
    add_oauth_account,
    add_personal_access_key_account,
    account_info,
    find_inactive_accounts,
    init_config_with_personal_access_key,
    remove_accounts,
)
from hubspot_cli.auth import OAuth2Manager
from hubspot_cli.commands import die, echo_table, load
from hubspot_cli.config import (
    AccountConfig,
    CLIConfig,
    default_new_config_path,
    find_account_override_path,
    write_account_override,
)
from hubspot_cli.constants import (
    DEFAULT_HTTP_TIMEOUT,
    EXIT_CODES,
    OAUTH_AUTH_METHOD,
    PERSONAL_ACCESS_KEY_AUTH_METHOD,
)


def _plain_http() -> httpx.Client:
    return httpx.Client(timeout=DEFAULT_HTTP_TIMEOUT / 1000, transport=ops.transport_factory())


INTERACTIVE_AUTH_METHODS = (PERSONAL_ACCESS_KEY_AUTH_METHOD, OAUTH_AUTH_METHOD)


def _check_auth_type(auth_type: str) -> str:
    t = auth_type.lower()
    if t not in INTERACTIVE_AUTH_METHODS:
        die(f"Unsupported auth type '{auth_type}'. Choose one of: {', '.join(INTERACTIVE_AUTH_METHODS)}")
    return t


def _oauth_flow(cfg: CLIConfig, *, env: str, name: str | None) -> AccountConfig:
    answers = prompts.oauth_prompt()
    manager = OAuth2Manager(
        account_id=answers["accountId"],
        client_id=answers["clientId"],
        client_secret=answers["clientSecret"],
        scopes=answers["scopes"],
        env=env,
        http=_plain_http(),
    )
    token_info = manager.authorize()
    account_name = name or prompts.account_name_prompt(taken=cfg.account_names())
    return add_oauth_account(
        cfg,
        account_id=answers["accountId"],
        client_id=answers["clientId"],
        client_secret=answers["clientSecret"],
        scopes=answers["scopes"],
        token_info=token_info,
        name=account_name,
        env=env,
    )


def register(app: typer.Typer) -> None:
    @app.command("init", help="Create a new config file with a default account")
    def init_cmd(
        ctx: typer.Context,
        auth_type: str = typer.Option(PERSONAL_ACCESS_KEY_AUTH_METHOD, "--auth-type", help="personalaccesskey or oauth2"),
        account: str | None = typer.Option(None, "--account", "-a", help="Name for the new account"),
        qa: bool = typer.Option(False, "--qa", hidden=True),
    ) -> None:
        auth_type = _check_auth_type(auth_type)
        env = "qa" if qa else "prod"
        path = default_new_config_path(ctx.obj.get("config"))
        if path.exists():
            die(f"The config file {path} already exists. Use `hs auth` to add accounts.")

        if auth_type == PERSONAL_ACCESS_KEY_AUTH_METHOD:
            pak = prompts.personal_access_key_prompt(env=env)
            with _plain_http() as http:
                cfg, acct = init_config_with_personal_access_key(
                    path,
                    personal_access_key=pak,
                    http=http,
                    env=env,
                    name=account,
                    choose_name=lambda default: prompts.account_name_prompt(default=default),
                )
        else:
            cfg = CLIConfig.create_empty(path, deprecated=True)
            try:
                acct = _oauth_flow(cfg, env=env, name=account)
                cfg.update_default_account(acct.account_id)
            except BaseException:
                cfg.delete_file()
                raise

        typer.echo(f"Created config file {path}")
        typer.echo(f"Connected account {acct.display_name} and set it as the default account")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @app.command("auth", help="Add or refresh an account in the existing config")
    def auth_cmd(
        ctx: typer.Context,
        auth_type: str = typer.Option(PERSONAL_ACCESS_KEY_AUTH_METHOD, "--auth-type", help="personalaccesskey or oauth2"),
        account: str | None = typer.Option(None, "--account", "-a", help="Name for the account"),
        qa: bool = typer.Option(False, "--qa", hidden=True),
    ) -> None:
        auth_type = _check_auth_type(auth_type)
        env = "qa" if qa else "prod"
        c = load(ctx)
        cfg = c.config

        if auth_type == PERSONAL_ACCESS_KEY_AUTH_METHOD:
            pak = prompts.personal_access_key_prompt(env=env)
            with _plain_http() as http:
                acct = add_personal_access_key_account(
                    cfg,
                    personal_access_key=pak,
                    http=http,
                    env=env,
                    name=account,
                    choose_name=lambda default: prompts.account_name_prompt(
                        default=default, taken=cfg.account_names()
                    ),
                )
        else:
            acct = _oauth_flow(cfg, env=env, name=account)

        typer.echo(f"Updated {cfg.path or 'config'} with account {acct.display_name}")
        if not cfg.is_default(acct) and prompts.confirm(f"Set {acct.display_name} as the default account?"):
            cfg.update_default_account(acct.account_id)
            typer.echo(f"Default account set to {acct.display_name}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    acc_app = typer.Typer(help="Manage the accounts in the config", no_args_is_help=True)
    app.add_typer(acc_app, name="accounts")
    app.add_typer(acc_app, name="account", hidden=True)

    @acc_app.command("list")
    def acc_list(ctx: typer.Context) -> None:
        cfg = load(ctx).config
        if cfg.path is not None:
            typer.echo(f"Config path: {cfg.path}")
        default = cfg.get_default_account()
        if default is not None:
            typer.echo(f"Default account: {default.display_name}")
        rows = [("Name", "Account ID", "Auth Type")]
        for a in cfg.accounts:
            marker = " [default]" if cfg.is_default(a) else ""
            rows.append((f"{a.name or ''}{marker}", str(a.account_id), a.auth_type or ""))
        echo_table(rows)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    acc_app.command("ls", hidden=True)(acc_list)

    @acc_app.command("info")
    def acc_info(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Account name or id"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, name or account)
        acct = c.account_config()
        with c.plain_http() as http:
            info = account_info(c.config, acct, http=http)
        typer.echo(f"Account name: {info['name'] or ''}")
        typer.echo(f"Account ID: {info['accountId']}")
        typer.echo(f"Auth type: {info['authType']}")
        if info.get("scopeGroups") is not None:
            typer.echo("Scopes available:")
            for scope in info["scopeGroups"]:
                typer.echo(f"  {scope}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("remove")
    def acc_remove(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Account name or id"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx)
        cfg = c.config
        target = name or account or (ctx.obj or {}).get("account")
        if target is None:
            if not cfg.accounts:
                die("There are no accounts in the config")
            target = prompts.account_choice_prompt(cfg.account_names(), message="Select an account to remove")
        acct = cfg.require_account(target)
        was_default = cfg.is_default(acct)
        remove_accounts(cfg, [acct])
        typer.echo(f"Account {acct.display_name} removed from the config")
        if was_default and cfg.accounts:
            new_default = prompts.account_choice_prompt(cfg.account_names(), message="Select a new default account")
            cfg.update_default_account(new_default)
            typer.echo(f"Default account set to {new_default}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("rename")
    def acc_rename(
        ctx: typer.Context,
        current: str = typer.Argument(..., help="Current account name or id"),
        new_name: str = typer.Argument(..., help="New name"),
    ) -> None:
        cfg = load(ctx).config
        acct = cfg.rename_account(current, new_name)
        typer.echo(f"Account {current} renamed to {acct.name}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("use")
    def acc_use(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Account name or id"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        cfg = load(ctx).config
        target = name or account or prompts.account_choice_prompt(cfg.account_names(), message="Select a default account")
        acct = cfg.update_default_account(target)
        typer.echo(f"Default account set to {acct.display_name}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("clean", help="Remove accounts whose credentials are no longer valid")
    def acc_clean(
        ctx: typer.Context,
        qa: bool = typer.Option(False, "--qa", hidden=True),
        force: bool = typer.Option(False, "--force", help="Remove without asking"),
    ) -> None:
        c = load(ctx)
        cfg = c.config
        with c.plain_http() as http:
            inactive = find_inactive_accounts(cfg, http=http, qa=qa)
        if not inactive:
            typer.echo("No inactive accounts found.")
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        for status in inactive:
            typer.echo(f"  {status.account.display_name}: {status.reason}")
        if not force and not prompts.confirm(f"Remove {len(inactive)} inactive account(s)?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        remove_accounts(cfg, [s.account for s in inactive])
        typer.echo(f"Removed {len(inactive)} account(s)")
        if cfg.default_account is None and cfg.accounts:
            new_default = prompts.account_choice_prompt(cfg.account_names(), message="Select a new default account")
            cfg.update_default_account(new_default)
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("create-override", help="Pin an account for the current directory (.hsaccount)")
    def acc_create_override(
        ctx: typer.Context,
        name: str | None = typer.Argument(None, help="Account name or id"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        cfg = load(ctx).config
        target = name or account or prompts.account_choice_prompt(cfg.account_names())
        p = write_account_override(cfg, target)
        typer.echo(f"Created {p}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @acc_app.command("remove-override", help="Delete the nearest .hsaccount file")
    def acc_remove_override(
        force: bool = typer.Option(False, "--force", help="Delete without asking"),
    ) -> None:
        p = find_account_override_path(Path.cwd())
        if p is None:
            typer.echo("No account override file found.")
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        if not force and not prompts.confirm(f"Delete {p}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)
        p.unlink()
        typer.echo(f"Removed {p}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
