"""Design Manager files over content/filemapper/v1."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator
from urllib.parse import quote

from hubspot_cli.constants import CMS_PUBLISH_MODES, DEFAULT_CMS_PUBLISH_MODE
from hubspot_cli.errors import FileSystemError, HubSpotApiError, ValidationError
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

FILE_MAPPER_API_PATH = "content/filemapper/v1"
IGNORED_NAMES = {".DS_Store", "Thumbs.db", "node_modules", ".git", ".env", "hubspot.config.yml", "hubspot.config.yaml"}


def _remote(path: str) -> str:
    return quote(path.strip("/"), safe="")


def resolve_mode(cfg_mode: str | None, flag: str | None) -> str:
    mode = (flag or cfg_mode or DEFAULT_CMS_PUBLISH_MODE).lower()
    if mode not in CMS_PUBLISH_MODES:
        raise ValidationError(f"Invalid mode '{mode}'. Valid modes: {', '.join(CMS_PUBLISH_MODES)}")
    return mode


def _mode_params(mode: str) -> dict[str, Any]:
    return {"buffer": "true" if mode == "draft" else "false", "environmentId": 1}


def walk_files(src: Path) -> Iterator[Path]:
    """Files under ``src`` in a stable order, skipping ignored names and hidden dirs."""
    if src.is_file():
        yield src
        return
    for p in sorted(src.rglob("*")):
        rel = p.relative_to(src)
        if any(part in IGNORED_NAMES for part in rel.parts):
            continue
        if p.is_file():
            yield p


def upload_file(client: HubSpotClient, src: Path, dest: str, *, mode: str = DEFAULT_CMS_PUBLISH_MODE) -> Any:
    try:
        content = src.read_bytes()
    except OSError as e:
        raise FileSystemError(f"Failed to read {src}: {e}", filepath=str(src), operation="read", cause=e) from e
    return client.post(
        f"{FILE_MAPPER_API_PATH}/upload/{_remote(dest)}",
        params=_mode_params(mode),
        files={"file": (src.name, content)},
    )


@dataclass
class UploadResult:
    uploaded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def upload_folder(
    client: HubSpotClient,
    src: Path,
    dest: str,
    *,
    mode: str = DEFAULT_CMS_PUBLISH_MODE,
    upload: Callable[..., Any] = upload_file,
) -> UploadResult:
    """Upload every file under ``src``; each failed upload is retried once."""
    result = UploadResult()
    retry: list[tuple[Path, str]] = []
    for f in walk_files(src):
        remote = f"{dest.rstrip('/')}/{f.relative_to(src).as_posix()}"
        try:
            upload(client, f, remote, mode=mode)
            result.uploaded.append(remote)
            logger.info("Uploaded %s", remote)
        except HubSpotApiError as e:
            logger.debug("Upload of %s failed, will retry: %s", remote, e)
            retry.append((f, remote))
    for f, remote in retry:
        try:
            upload(client, f, remote, mode=mode)
            result.uploaded.append(remote)
            logger.info("Uploaded %s", remote)
        except HubSpotApiError as e:
            result.failed.append((remote, e.message))
            logger.warning("Failed to upload %s: %s", remote, e.message)
    return result


def get_tree(client: HubSpotClient, path: str) -> dict[str, Any]:
    return client.get(f"{FILE_MAPPER_API_PATH}/download/{_remote(path)}", params={"depth": -1}) or {}


def _iter_tree_files(node: dict[str, Any], base: str = "") -> Iterator[tuple[str, dict[str, Any]]]:
    name = node.get("name") or ""
    rel = f"{base}/{name}" if base else name
    if node.get("folder"):
        for child in node.get("children") or []:
            yield from _iter_tree_files(child, rel)
    else:
        yield rel, node


def fetch(
    client: HubSpotClient,
    src: str,
    dest: Path,
    *,
    mode: str = DEFAULT_CMS_PUBLISH_MODE,
    overwrite: bool = False,
) -> list[Path]:
    """Download a remote file or folder tree into ``dest``."""
    tree = get_tree(client, src)
    written: list[Path] = []
    src_parent = "/".join(src.strip("/").split("/")[:-1])
    for rel, node in _iter_tree_files(tree):
        remote_path = node.get("path") or (f"{src_parent}/{rel}" if src_parent else rel)
        target = dest / rel
        if target.exists() and not overwrite:
            logger.info("Skipped existing file %s", target)
            continue
        if node.get("source") is not None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(str(node["source"]), encoding="utf-8")
        else:
            client.download(f"{FILE_MAPPER_API_PATH}/stream/{_remote(remote_path)}", target, params=_mode_params(mode))
        written.append(target)
        logger.info("Wrote %s", target)
    return written


def delete(client: HubSpotClient, path: str) -> None:
    client.delete(f"{FILE_MAPPER_API_PATH}/delete/{_remote(path)}")
