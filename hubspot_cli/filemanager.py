"""File Manager uploads and downloads."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

import httpx

from hubspot_cli.cms import UploadResult, walk_files
from hubspot_cli.errors import FileSystemError, HubSpotApiError, ValidationError
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

FILE_MANAGER_V2_API_PATH = "filemanager/api/v2"
FILE_MANAGER_V3_API_PATH = "filemanager/api/v3"
PAGE_SIZE = 100


def upload_file(client: HubSpotClient, src: Path, dest: str) -> dict[str, Any]:
    folder, _, name = dest.strip("/").rpartition("/")
    try:
        content = src.read_bytes()
    except OSError as e:
        raise FileSystemError(f"Failed to read {src}: {e}", filepath=str(src), operation="read", cause=e) from e
    return client.post(
        f"{FILE_MANAGER_V3_API_PATH}/files/upload",
        files={"file": (name or src.name, content)},
        data={
            "fileName": name or src.name,
            "folderPath": "/" + folder,
            "options": json.dumps({"access": "PUBLIC_INDEXABLE", "overwrite": True}),
        },
    )


def upload(client: HubSpotClient, src: Path, dest: str) -> UploadResult:
    if not src.exists():
        raise FileSystemError(f"The path '{src}' does not exist", filepath=str(src), operation="read")
    result = UploadResult()
    if src.is_file():
        upload_file(client, src, dest)
        result.uploaded.append(dest)
        return result
    for f in walk_files(src):
        remote = f"{dest.rstrip('/')}/{f.relative_to(src).as_posix()}"
        try:
            upload_file(client, f, remote)
            result.uploaded.append(remote)
            logger.info("Uploaded %s", remote)
        except HubSpotApiError as e:
            result.failed.append((remote, e.message))
            logger.warning("Failed to upload %s: %s", remote, e.message)
    return result


def stat(client: HubSpotClient, path: str) -> dict[str, Any]:
    return client.get(f"{FILE_MANAGER_V2_API_PATH}/files/stat/{path.strip('/')}") or {}


def _paged(client: HubSpotClient, path: str, params: dict[str, Any]) -> Iterator[dict[str, Any]]:
    offset = 0
    while True:
        resp = client.get(path, params={**params, "limit": PAGE_SIZE, "offset": offset}) or {}
        objects = resp.get("objects") or []
        yield from objects
        offset += len(objects)
        if not objects or offset >= int(resp.get("total_count") or resp.get("total") or 0):
            return


def _download(client: HubSpotClient, file: dict[str, Any], dest: Path) -> Path:
    url = file.get("url") or file.get("friendly_url")
    if not url:
        raise ValidationError(f"File '{file.get('name')}' has no download URL")
    name = file.get("name") or "file"
    ext = file.get("extension")
    target = dest / (f"{name}.{ext}" if ext and not name.endswith(f".{ext}") else name)
    resp = client.raw.get(url, follow_redirects=True)
    if resp.status_code >= 400:
        raise HubSpotApiError(f"Failed to download {url}", status=resp.status_code, method="GET", url=url)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(resp.content)
    return target


def fetch(client: HubSpotClient, src: str, dest: Path, *, include_archived: bool = False) -> list[Path]:
    info = stat(client, src)
    if info.get("file"):
        return [_download(client, info["file"], dest)]
    folder = info.get("folder")
    if not folder:
        raise ValidationError(f"'{src}' was not found in the File Manager")
    return _fetch_folder(client, folder, dest, include_archived=include_archived)


def _fetch_folder(
    client: HubSpotClient, folder: dict[str, Any], dest: Path, *, include_archived: bool
) -> list[Path]:
    written: list[Path] = []
    target = dest / folder.get("name", "")
    params: dict[str, Any] = {"folder_id": folder["id"]}
    if not include_archived:
        params["archived"] = "false"
    for f in _paged(client, f"{FILE_MANAGER_V2_API_PATH}/files", params):
        try:
            written.append(_download(client, f, target))
        except (HubSpotApiError, httpx.HTTPError) as e:
            logger.warning("Failed to download %s: %s", f.get("name"), e)
    for sub in _paged(client, f"{FILE_MANAGER_V2_API_PATH}/folders", {"parent_folder_id": folder["id"]}):
        written.extend(_fetch_folder(client, sub, target, include_archived=include_archived))
    return written
