"""Registration of the HubSpot developer MCP server with local AI clients."""

from __future__ import annotations

import json
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import Any, Iterable

from hubspot_cli.constants import ENV_MCP_AI_AGENT, MCP_CLIENTS, MCP_SERVER_NAME
from hubspot_cli.errors import HubSpotError, ValidationError

logger = logging.getLogger(__name__)

MCP_COMMAND: dict[str, Any] = {"command": "hs", "args": ["mcp", "start"]}


def build_command_with_agent(command: dict[str, Any], agent: str) -> dict[str, Any]:
    return {"command": command["command"], "args": [*command["args"], "--ai-agent", agent]}


def cursor_config_path() -> Path:
    return Path.home() / ".cursor" / "mcp.json"


def windsurf_config_path() -> Path:
    return Path.home() / ".codeium" / "windsurf" / "mcp_config.json"


def setup_config_file(path: Path, command: dict[str, Any]) -> Path:
    """Add the server entry to a JSON client config, creating the file if needed.

    Args:
        path: Client config file (``mcpServers`` layout).
        command: ``{"command": ..., "args": [...]}`` to launch the server.

    Returns:
        The path that was written.

    Raises:
        ValidationError: If the existing file is not valid JSON.
    """
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{}", encoding="utf-8")
        logger.debug("Created %s", path)

    raw = path.read_text(encoding="utf-8")
    try:
        config = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        raise ValidationError(f"Failed to parse {path}: {e}") from e
    if not isinstance(config, dict):
        raise ValidationError(f"{path} must contain a JSON object")

    config.setdefault("mcpServers", {})[MCP_SERVER_NAME] = command
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    logger.info("Configured %s in %s", MCP_SERVER_NAME, path)
    return path


def setup_cursor(command: dict[str, Any] = MCP_COMMAND) -> Path:
    return setup_config_file(cursor_config_path(), build_command_with_agent(command, "cursor"))


def setup_windsurf(command: dict[str, Any] = MCP_COMMAND) -> Path:
    return setup_config_file(windsurf_config_path(), build_command_with_agent(command, "windsurf"))


def _run(args: list[str]) -> subprocess.CompletedProcess:
    logger.debug("Running %s", " ".join(args))
    try:
        return subprocess.run(args, check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise HubSpotError(f"'{args[0]}' was not found on PATH") from e
    except subprocess.CalledProcessError as e:
        raise HubSpotError(f"'{' '.join(args[:3])}' failed: {(e.stderr or '').strip()}") from e


def setup_vscode(command: dict[str, Any] = MCP_COMMAND) -> None:
    cmd = build_command_with_agent(command, "vscode")
    _run(["code", "--add-mcp", json.dumps({"name": MCP_SERVER_NAME, **cmd})])
    logger.info("Configured %s for VS Code", MCP_SERVER_NAME)


def setup_claude(command: dict[str, Any] = MCP_COMMAND) -> None:
    _run(["claude", "--version"])
    listed = _run(["claude", "mcp", "list"])
    if MCP_SERVER_NAME in (listed.stdout or ""):
        _run(["claude", "mcp", "remove", MCP_SERVER_NAME, "--scope", "user"])
    cmd = build_command_with_agent(command, "claude")
    _run(["claude", "mcp", "add-json", MCP_SERVER_NAME, json.dumps({"type": "stdio", **cmd}), "--scope", "user"])
    logger.info("Configured %s for Claude Code", MCP_SERVER_NAME)


SETUP_FUNCTIONS = {
    "claude": setup_claude,
    "cursor": setup_cursor,
    "windsurf": setup_windsurf,
    "vscode": setup_vscode,
}


def add_mcp_server_to_config(targets: Iterable[str], command: dict[str, Any] = MCP_COMMAND) -> list[str]:
    """Configure every requested client; the first failure aborts the run."""
    targets = list(targets)
    if not targets:
        raise ValidationError("Select at least one client to configure")
    unknown = [t for t in targets if t not in MCP_CLIENTS]
    if unknown:
        raise ValidationError(f"Unknown MCP client(s): {', '.join(unknown)}. Choose from: {', '.join(MCP_CLIENTS)}")
    for target in targets:
        SETUP_FUNCTIONS[target](command)
    return targets


def start_mcp_server(ai_agent: str | None = None) -> int:
    """Run the stdio MCP server as a child process and wait for it."""
    env = dict(os.environ)
    if ai_agent:
        env[ENV_MCP_AI_AGENT] = ai_agent
    proc = subprocess.Popen([sys.executable, "-m", "hubspot_cli.mcp_server"], env=env)
    logger.debug("Started MCP server (pid %s)", proc.pid)
    try:
        return proc.wait()
    except KeyboardInterrupt:
        proc.send_signal(signal.SIGINT)
        try:
            return proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            return proc.wait()
