"""``hs sandbox ...``"""

from __future__ import annotations

from dataclasses import replace

import typer

from hubspot_cli import prompts, sandboxes
from hubspot_cli.accounts import add_personal_access_key_account, to_kebab_case
from hubspot_cli.commands import die, load
from hubspot_cli.constants import EXIT_CODES

SANDBOX_ACCOUNT_TYPES = (sandboxes.STANDARD_SANDBOX, sandboxes.DEVELOPMENT_SANDBOX)


def register(app: typer.Typer) -> None:
    sb_app = typer.Typer(help="Manage sandbox accounts", no_args_is_help=True)
    app.add_typer(sb_app, name="sandbox")
    app.add_typer(sb_app, name="sandboxes", hidden=True)

    @sb_app.command("create", help="Create a sandbox of the current standard account")
    def sb_create(
        ctx: typer.Context,
        name: str | None = typer.Option(None, "--name", help="Name for the sandbox"),
        type_: str | None = typer.Option(None, "--type", help="standard or development"),
        force: bool = typer.Option(False, "--force", "-f", help="Skip prompts"),
        account: str | None = typer.Option(None, "--account", "-a"),
    ) -> None:
        c = load(ctx, account)
        parent = c.account_config()
        sandboxes.check_parent_account(parent)

        if not type_ or type_.strip().lower() not in sandboxes.SANDBOX_TYPES:
            if force:
                die("A valid --type is required when --force is set")
            type_ = prompts.choose("Sandbox type", ("standard", "development"), default="standard")
        sandbox_type = sandboxes.resolve_sandbox_type(type_)
        if not name:
            if force:
                die("--name is required when --force is set")
            name = prompts.prompt_text("Name for the sandbox")

        with c.client() as client:
            sandboxes.validate_usage_limits(client, c.config, sandbox_type)
            result = sandboxes.create_sandbox(client, name, sandbox_type)
        typer.echo(f"Sandbox {name} ({result['sandboxHubId']}) created under account {parent.account_id}")

        if result.get("personalAccessKey"):
            with c.plain_http() as http:
                acct = add_personal_access_key_account(
                    c.config,
                    personal_access_key=result["personalAccessKey"],
                    http=http,
                    env=parent.env,
                    name=to_kebab_case(name),
                )
            sandboxes.record_sandbox(c.config, acct, parent_id=parent.account_id, sandbox_type=sandbox_type)
            typer.echo(f"Saved {acct.display_name} to the config")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @sb_app.command("delete", help="Delete a sandbox and remove it from the config")
    def sb_delete(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", "-f", help="Skip prompts"),
        account: str | None = typer.Option(None, "--account", "-a", help="Sandbox account name or id"),
    ) -> None:
        c = load(ctx)
        cfg = c.config
        target = account or (ctx.obj or {}).get("account")
        if target is None:
            if force:
                die("--account is required when --force is set")
            names = [a.name or str(a.account_id) for a in cfg.accounts if sandboxes.account_type(a) in SANDBOX_ACCOUNT_TYPES]
            if not names:
                die("There are no sandbox accounts in the config")
            target = prompts.account_choice_prompt(names, message="Select a sandbox to delete")
        sandbox = cfg.require_account(target)

        parent_id = sandboxes.parent_account_id(sandbox)
        if parent_id is None:
            if force:
                die(f"No parent account is recorded for {sandbox.display_name}. Run without --force to pick one.")
            others = [n for n, a in zip(cfg.account_names(), cfg.accounts) if a.account_id != sandbox.account_id]
            picked = prompts.account_choice_prompt(others, message="Select the sandbox's parent account")
            parent_id = cfg.require_account(picked).account_id
        if cfg.get_account(parent_id) is None:
            die(
                f"The parent account {parent_id} is not in the config. "
                f"Run `hs auth --account={parent_id}` and try again."
            )

        if not force and not prompts.confirm(f"Delete sandbox {sandbox.display_name}?"):
            raise typer.Exit(code=EXIT_CODES.SUCCESS)

        with replace(c, account=str(parent_id)).client() as client:
            deleted = sandboxes.delete_sandbox(client, sandbox.account_id)
        if deleted:
            typer.echo(f"Sandbox {sandbox.display_name} deleted")

        was_default = sandboxes.forget_sandbox(cfg, sandbox.account_id)
        typer.echo(f"Removed {sandbox.display_name} from the config")
        if was_default:
            if force:
                new_default = str(parent_id)
            else:
                new_default = prompts.account_choice_prompt(cfg.account_names(), message="Select a new default account")
            acct = cfg.update_default_account(new_default)
            typer.echo(f"Default account set to {acct.display_name}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)
