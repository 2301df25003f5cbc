"""Developer projects: local hsproject.json handling plus upload/build/deploy."""

from __future__ import annotations

import json
import logging
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from hubspot_cli.cms import walk_files
from hubspot_cli.constants import PROJECT_CONFIG_FILE
from hubspot_cli.errors import FileSystemError, HubSpotApiError, ValidationError
from hubspot_cli.functions import poll
from hubspot_cli.http import HubSpotClient

logger = logging.getLogger(__name__)

PROJECTS_API_PATH = "dfs/v1/projects"
DEPLOYS_API_PATH = "dfs/v1/deploys"
DEFAULT_PLATFORM_VERSION = "2025.1"


@dataclass
class ProjectConfig:
    name: str
    src_dir: str = "src"
    platform_version: str = DEFAULT_PLATFORM_VERSION

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ProjectConfig":
        if not d.get("name"):
            raise ValidationError(f"{PROJECT_CONFIG_FILE} is missing 'name'")
        return cls(
            name=str(d["name"]),
            src_dir=str(d.get("srcDir") or "src"),
            platform_version=str(d.get("platformVersion") or DEFAULT_PLATFORM_VERSION),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "srcDir": self.src_dir, "platformVersion": self.platform_version}


def find_project_dir(start: Path | None = None) -> Path | None:
    cur = (start or Path.cwd()).resolve()
    for d in [cur, *cur.parents]:
        if (d / PROJECT_CONFIG_FILE).is_file():
            return d
    return None


def load_project(start: Path | None = None) -> tuple[Path, ProjectConfig]:
    d = find_project_dir(start)
    if d is None:
        raise ValidationError(f"No {PROJECT_CONFIG_FILE} found. Run `hs project create` first.")
    try:
        data = json.loads((d / PROJECT_CONFIG_FILE).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{PROJECT_CONFIG_FILE} is not valid JSON: {e}") from e
    return d, ProjectConfig.from_dict(data)


def write_project(directory: Path, project: ProjectConfig) -> Path:
    if find_project_dir(directory) is not None:
        raise ValidationError(f"A project already exists at or above '{directory}'")
    directory.mkdir(parents=True, exist_ok=True)
    (directory / project.src_dir).mkdir(parents=True, exist_ok=True)
    p = directory / PROJECT_CONFIG_FILE
    p.write_text(json.dumps(project.to_dict(), indent=2) + "\n", encoding="utf-8")
    return p


def zip_source(project_dir: Path, project: ProjectConfig, dest: Path) -> Path:
    src = project_dir / project.src_dir
    if not src.is_dir():
        raise FileSystemError(f"Source directory '{src}' does not exist", filepath=str(src), operation="read")
    files = list(walk_files(src))
    if not files:
        raise ValidationError(f"Source directory '{project.src_dir}' is empty")
    with zipfile.ZipFile(dest, "w", zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            zf.write(f, arcname=f"{project.name}/{f.relative_to(src).as_posix()}")
    logger.debug("Compressed %d files into %s", len(files), dest)
    return dest


def ensure_project_exists(client: HubSpotClient, project: ProjectConfig, *, force_create: bool = False) -> bool:
    """True if the remote project exists (creating it when ``force_create``)."""
    try:
        client.get(f"{PROJECTS_API_PATH}/{project.name}")
        return True
    except HubSpotApiError as e:
        if not e.is_not_found:
            raise
    if not force_create:
        return False
    client.post(PROJECTS_API_PATH, json={"name": project.name})
    logger.info("Created project %s", project.name)
    return True


def upload_project(
    client: HubSpotClient,
    project_dir: Path,
    project: ProjectConfig,
    *,
    message: str = "",
    force_create: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    if not ensure_project_exists(client, project, force_create=force_create):
        raise ValidationError(
            f"The project '{project.name}' does not exist in account {client.account_id}. "
            "Re-run with --force-create to create it."
        )
    with tempfile.TemporaryDirectory() as td:
        archive = zip_source(project_dir, project, Path(td) / "project.zip")
        resp = client.post(
            f"{PROJECTS_API_PATH}/upload/{project.name}",
            files={"file": ("project.zip", archive.read_bytes(), "application/zip")},
            data={"uploadMessage": message, "platformVersion": project.platform_version},
        )
    build_id = (resp or {}).get("buildId")
    if build_id is None:
        raise HubSpotApiError("Upload did not return a build id")
    return poll(lambda: get_build_status(client, project.name, build_id), sleep=sleep)


def get_build_status(client: HubSpotClient, project_name: str, build_id: int | str) -> dict[str, Any]:
    return client.get(f"{PROJECTS_API_PATH}/{project_name}/builds/{build_id}/status") or {}


def deploy_project(
    client: HubSpotClient,
    project: ProjectConfig,
    build_id: int | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    if build_id is None:
        info = client.get(f"{PROJECTS_API_PATH}/{project.name}") or {}
        build_id = (info.get("latestBuild") or {}).get("buildId")
        if build_id is None:
            raise ValidationError(f"The project '{project.name}' has no builds to deploy")
    resp = client.post(f"{DEPLOYS_API_PATH}/queue/async", json={"projectName": project.name, "buildId": build_id})
    deploy_id = (resp or {}).get("id")
    return poll(
        lambda: client.get(f"{PROJECTS_API_PATH}/{project.name}/deploys/{deploy_id}/status") or {},
        sleep=sleep,
    )
