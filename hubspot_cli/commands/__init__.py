"""Typer sub-apps, one module per verb group.

Each module exposes ``register(app)``; the helpers below are shared by all of them.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer

from hubspot_cli import ops
from hubspot_cli.config import ConfigError
from hubspot_cli.constants import EXIT_CODES


def die(msg: str, code: int = EXIT_CODES.ERROR) -> NoReturn:
    typer.echo(f"ERROR: {msg}", err=True)
    raise typer.Exit(code=code)


def load(ctx: typer.Context, account: str | None = None) -> ops.Ctx:
    """Build the per-command context; a subcommand ``--account`` beats the root one."""
    obj = ctx.obj or {}
    try:
        return ops.load_ctx(
            config_override=obj.get("config"),
            account=account or obj.get("account"),
            use_env=bool(obj.get("use_env")),
        )
    except ConfigError as e:
        die(str(e))


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


def echo_table(rows: list[tuple[str, ...]]) -> None:
    if not rows:
        return
    widths = [max(len(r[i]) for r in rows) for i in range(len(rows[0]))]
    for r in rows:
        typer.echo("  ".join(c.ljust(w) for c, w in zip(r, widths)).rstrip())
