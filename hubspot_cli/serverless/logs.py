"""Rendering of function execution records, local or remote."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

SEPARATOR = " - "
ERROR_STATUSES = ("ERROR", "UNHANDLED_ERROR", "HANDLED_ERROR")


def _format_timestamp(value: Any) -> str:
    if isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_header(log: dict[str, Any], *, header: str | None = None) -> str:
    parts = [_format_timestamp(log.get("createdAt")), str(log.get("status"))]
    if header:
        parts.append(header)
    parts.append(f"Execution Time: {log.get('executionTime', 0)}ms")
    return SEPARATOR.join(parts)


def format_log(log: dict[str, Any], *, compact: bool = False, header: str | None = None) -> str:
    out = format_header(log, header=header)
    if compact:
        return out
    if log.get("status") in ERROR_STATUSES and log.get("error"):
        err = log["error"]
        out += f"\n{err.get('type')}: {err.get('message')}"
        for frame in err.get("stackTrace") or []:
            out += f"\n  at {frame}"
    elif log.get("log"):
        out += f"\n{log['log']}"
    return out


def format_logs(resp: dict[str, Any] | None, *, compact: bool = False) -> str:
    """Accepts either a ``{"results": [...]}`` page or a single record."""
    if not resp:
        return "No logs found."
    if isinstance(resp.get("results"), list):
        if not resp["results"]:
            return "No logs found."
        return "\n".join(format_log(r, compact=compact) for r in resp["results"])
    return format_log(resp, compact=compact)
