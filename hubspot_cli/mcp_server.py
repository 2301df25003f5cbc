"""Stdio MCP server exposing CMS developer tools; launched by ``hs mcp start``."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from hubspot_cli.config import ConfigError
from hubspot_cli.constants import ENV_MCP_AI_AGENT, MCP_SERVER_NAME
from hubspot_cli.errors import HubSpotError
from hubspot_cli.functions import get_function_logs, get_latest_function_log, list_routes
from hubspot_cli.ops import load_ctx
from hubspot_cli.scaffold import CreateArgs, build_registry
from hubspot_cli.serverless.logs import format_logs

logger = logging.getLogger(__name__)

mcp = FastMCP(MCP_SERVER_NAME)


def _create(asset_type: str, cwd: str, name: str | None, dest: str | None, **options) -> str:
    base = Path(cwd)
    target = (base / dest) if dest else base
    written = build_registry().create(CreateArgs(asset_type=asset_type, name=name, dest=target, options=options))
    return "Created:\n" + "\n".join(str(p) for p in written)


def _error(action: str, e: Exception) -> str:
    logger.debug("%s failed", action, exc_info=e)
    return f"Error {action}: {e}"


@mcp.tool()
def create_cms_module(
    absolute_current_working_directory: str,
    name: str,
    dest: str | None = None,
    content_types: str | None = None,
    global_module: bool = False,
) -> str:
    """
    Create a HubL module folder (meta.json, fields.json, module.html/css/js).

    Args:
        absolute_current_working_directory: Directory the user is working in.
        name: Module name. Ask the user for it; do not invent one.
        dest: Destination relative to the working directory.
        content_types: Comma-separated host template types, e.g. "PAGE,BLOG_POST".
        global_module: Whether the module is global.
    """
    types = [t.strip().upper() for t in content_types.split(",") if t.strip()] if content_types else None
    try:
        return _create(
            "module", absolute_current_working_directory, name, dest, content_types=types, **{"global": global_module}
        )
    except HubSpotError as e:
        return _error("creating module", e)


@mcp.tool()
def create_cms_template(
    absolute_current_working_directory: str,
    name: str,
    template_type: str = "page-template",
    dest: str | None = None,
) -> str:
    """Create a HubL template file of the given type."""
    try:
        return _create("template", absolute_current_working_directory, name, dest, template_type=template_type)
    except HubSpotError as e:
        return _error("creating template", e)


@mcp.tool()
def create_cms_function(
    absolute_current_working_directory: str,
    functions_folder: str,
    filename: str,
    endpoint_path: str,
    endpoint_method: str = "GET",
    dest: str | None = None,
) -> str:
    """
    Create a serverless function handler and register its endpoint in serverless.json.

    Args:
        absolute_current_working_directory: Directory the user is working in.
        functions_folder: Folder name; ".functions" is appended when missing.
        filename: Handler file name.
        endpoint_path: Route served under /_hcms/api/.
        endpoint_method: HTTP method for the endpoint.
        dest: Parent directory of the functions folder, relative to the working directory.
    """
    try:
        return _create(
            "function",
            absolute_current_working_directory,
            None,
            dest,
            functions_folder=functions_folder,
            filename=filename,
            endpoint_path=endpoint_path,
            endpoint_method=endpoint_method,
        )
    except HubSpotError as e:
        return _error("creating function", e)


@mcp.tool()
def list_cms_serverless_functions(absolute_current_working_directory: str, account: str | None = None) -> str:
    """List deployed serverless function routes for an account."""
    os.chdir(absolute_current_working_directory)
    try:
        ctx = load_ctx(config_override=None, account=account)
        with ctx.client() as client:
            routes = list_routes(client)
    except (HubSpotError, ConfigError) as e:
        return _error("listing functions", e)
    if not routes:
        return "No functions found."
    return "\n".join(f"{r.get('method', 'GET')} /_hcms/api/{r.get('route', '')}" for r in routes)


@mcp.tool()
def get_cms_serverless_function_logs(
    absolute_current_working_directory: str,
    endpoint: str,
    account: str | None = None,
    latest: bool = False,
    compact: bool = False,
    limit: int | None = None,
) -> str:
    """Read production logs for a serverless function endpoint."""
    os.chdir(absolute_current_working_directory)
    route = endpoint.lstrip("/")
    try:
        ctx = load_ctx(config_override=None, account=account)
        with ctx.client() as client:
            if latest:
                resp = get_latest_function_log(client, route)
            else:
                resp = get_function_logs(client, route, limit=limit)
    except (HubSpotError, ConfigError) as e:
        return _error("fetching logs", e)
    return format_logs(resp, compact=compact)


def main() -> None:
    # stdout carries the protocol; logs go to stderr.
    logging.basicConfig(stream=sys.stderr, level=logging.WARNING, format="%(levelname)s %(name)s - %(message)s")
    logger.info("Starting %s for %s", MCP_SERVER_NAME, os.environ.get(ENV_MCP_AI_AGENT) or "unknown agent")
    mcp.run()


if __name__ == "__main__":
    main()
