"""``hs mcp setup|start``."""

from __future__ import annotations

import click
import typer

from hubspot_cli import mcp
from hubspot_cli.constants import EXIT_CODES, MCP_CLIENTS, MCP_SERVER_NAME


def register(app: typer.Typer) -> None:
    mcp_app = typer.Typer(help="Manage the HubSpot developer MCP server", no_args_is_help=True)
    app.add_typer(mcp_app, name="mcp")

    @mcp_app.command("setup", help="Add the MCP server to local AI clients")
    def mcp_setup(
        client: list[str] = typer.Option([], "--client", help=f"Repeatable; one of {', '.join(MCP_CLIENTS)}"),
    ) -> None:
        targets = list(client)
        if not targets:
            raw = typer.prompt(
                f"Clients to configure (comma separated: {', '.join(MCP_CLIENTS)})",
                type=click.STRING,
            )
            targets = [t.strip().lower() for t in raw.split(",") if t.strip()]
        configured = mcp.add_mcp_server_to_config(targets)
        typer.echo(f"Configured {MCP_SERVER_NAME} for: {', '.join(configured)}")
        raise typer.Exit(code=EXIT_CODES.SUCCESS)

    @mcp_app.command("start", help="Run the MCP server over stdio")
    def mcp_start(
        ai_agent: str | None = typer.Option(None, "--ai-agent", help="Name of the agent launching the server"),
    ) -> None:
        raise typer.Exit(code=mcp.start_mcp_server(ai_agent))
