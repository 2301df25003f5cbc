"""Local asset generation for ``hs create`` and ``hs cms function create``.

Each asset type is an :class:`AssetSpec` in a small registry. A spec knows where
the asset goes (``dest``), how to check its inputs (``validate``) and how to
write it (``execute``). Adding a type means registering one more spec.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx

from hubspot_cli.constants import (
    FUNCTIONS_FOLDER_SUFFIX,
    GITHUB_CODELOAD_URL,
    GITHUB_TEMPLATE_REPOS,
    SERVERLESS_CONFIG_FILE,
)
from hubspot_cli.errors import FileSystemError, HubSpotError, ValidationError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
TEMPLATE_TYPES = ("page-template", "email-template", "partial", "global-partial", "blog-listing-template", "blog-post-template", "search-template", "section")


@dataclass
class CreateArgs:
    asset_type: str
    name: str | None = None
    dest: Path | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class AssetSpec:
    name: str
    dest: Callable[[CreateArgs], Path]
    execute: Callable[[CreateArgs], list[Path]]
    validate: Callable[[CreateArgs], None] | None = None
    hidden: bool = False
    description: str = ""


class AssetRegistry:
    def __init__(self) -> None:
        self._assets: dict[str, AssetSpec] = {}

    def register(self, spec: AssetSpec) -> None:
        self._assets[spec.name] = spec
        logger.debug("Registered asset type: %s", spec.name)

    def get(self, name: str) -> AssetSpec | None:
        return self._assets.get(name.lower())

    def visible(self) -> list[str]:
        return [n for n, s in self._assets.items() if not s.hidden]

    def create(self, args: CreateArgs) -> list[Path]:
        spec = self.get(args.asset_type)
        if spec is None:
            raise ValidationError(
                f"The asset type '{args.asset_type}' is not supported. "
                f"Supported asset types: {', '.join(self.visible())}"
            )
        args.dest = spec.dest(args)
        if spec.validate is not None:
            spec.validate(args)
        try:
            args.dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                f"Unable to use '{args.dest}' as a destination", filepath=str(args.dest), operation="write", cause=e
            ) from e
        return spec.execute(args)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _require_name(args: CreateArgs) -> str:
    if not args.name:
        raise ValidationError(f"A name is required to create a {args.asset_type}")
    return args.name


# ---- module ----


def _module_dest(args: CreateArgs) -> Path:
    return (args.dest or Path.cwd()).resolve()


def _module_execute(args: CreateArgs) -> list[Path]:
    name = _require_name(args)
    folder = args.dest / (name if name.endswith(".module") else f"{name}.module")
    if folder.exists():
        raise ValidationError(f"The module '{folder}' already exists")
    label = name.removesuffix(".module")
    meta = {
        "label": label,
        "css_assets": [],
        "external_js": [],
        "global": bool(args.options.get("global")),
        "help_text": "",
        "host_template_types": list(args.options.get("content_types") or ["PAGE"]),
        "js_assets": [],
        "other_assets": [],
        "smart_type": "NOT_SMART",
        "tags": [],
        "is_available_for_new_content": True,
    }
    fields = [
        {
            "label": "Text",
            "name": "text",
            "type": "text",
            "default": "Add text here",
        }
    ]
    return [
        _write(folder / "meta.json", json.dumps(meta, indent=2) + "\n"),
        _write(folder / "fields.json", json.dumps(fields, indent=2) + "\n"),
        _write(folder / "module.html", "<!-- module html  -->\n{{ module.text }}\n"),
        _write(folder / "module.css", "/* module css */\n"),
        _write(folder / "module.js", "// module js\n"),
    ]


# ---- template ----


def _template_execute(args: CreateArgs) -> list[Path]:
    name = _require_name(args)
    template_type = str(args.options.get("template_type") or "page-template")
    if template_type not in TEMPLATE_TYPES:
        raise ValidationError(f"Unknown template type '{template_type}'. Choose one of: {', '.join(TEMPLATE_TYPES)}")
    target = args.dest / (name if name.endswith(".html") else f"{name}.html")
    if target.exists():
        raise ValidationError(f"The template '{target}' already exists")
    hubl_type = template_type.replace("-template", "").replace("-", "_")
    header = (
        "<!--\n"
        f"  templateType: {hubl_type}\n"
        "  isAvailableForNewContent: true\n"
        "-->\n"
    )
    body = "<!doctype html>\n<html>\n  <head>\n    {{ standard_header_includes }}\n  </head>\n  <body>\n    {{ standard_footer_includes }}\n  </body>\n</html>\n"
    if template_type in ("partial", "global-partial", "section"):
        body = "<div>\n</div>\n"
    return [_write(target, header + body)]


# ---- function ----


HANDLER_TEMPLATE = '''\
def main(context, send_response):
    """Serverless function for /_hcms/api/{endpoint_path}."""
    context["log"].info("Handling %s /_hcms/api/{endpoint_path}", context["method"])
    send_response({{"statusCode": 200, "body": {{"message": "Hello from {endpoint_path}"}}}})
'''


def find_ancestor_functions_folder(path: Path) -> Path | None:
    for d in [path, *path.parents]:
        if d.name.endswith(FUNCTIONS_FOLDER_SUFFIX) or (d / SERVERLESS_CONFIG_FILE).is_file():
            return d
    return None


def _function_dest(args: CreateArgs) -> Path:
    return (args.dest or Path.cwd()).resolve()


def _function_validate(args: CreateArgs) -> None:
    opts = args.options
    for key in ("functions_folder", "filename", "endpoint_path"):
        if not opts.get(key):
            raise ValidationError(f"'{key.replace('_', '-')}' is required to create a function")
    method = str(opts.get("endpoint_method") or "GET").upper()
    if method not in HTTP_METHODS:
        raise ValidationError(f"Invalid endpoint method '{method}'. Choose one of: {', '.join(HTTP_METHODS)}")
    ancestor = find_ancestor_functions_folder(args.dest)
    if ancestor is not None:
        raise ValidationError(f"Cannot create a functions folder inside another one ({ancestor})")


def _function_execute(args: CreateArgs) -> list[Path]:
    opts = args.options
    folder_name = str(opts["functions_folder"]).removesuffix(FUNCTIONS_FOLDER_SUFFIX) + FUNCTIONS_FOLDER_SUFFIX
    filename = str(opts["filename"])
    if not filename.endswith(".py"):
        filename = re.sub(r"\.[A-Za-z0-9]+$", "", filename) + ".py"
    endpoint_path = str(opts["endpoint_path"]).strip("/")
    method = str(opts.get("endpoint_method") or "GET").upper()

    folder = args.dest / folder_name
    config_path = folder / SERVERLESS_CONFIG_FILE
    handler_path = folder / filename
    if handler_path.exists():
        raise ValidationError(f"The file '{handler_path}' already exists")

    if config_path.exists():
        try:
            manifest = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationError(f"{config_path} is not valid JSON: {e}") from e
        if endpoint_path in (manifest.get("endpoints") or {}):
            raise ValidationError(f"The endpoint '{endpoint_path}' already exists in {config_path}")
    else:
        manifest = {"runtime": "python3.12", "version": "1.0", "environment": {}, "secrets": [], "endpoints": {}}
    manifest.setdefault("endpoints", {})[endpoint_path] = {"method": method, "file": filename}

    written = [
        _write(handler_path, HANDLER_TEMPLATE.format(endpoint_path=endpoint_path)),
        _write(config_path, json.dumps(manifest, indent=2) + "\n"),
    ]
    logger.info("A function for the endpoint '/_hcms/api/%s' has been created.", endpoint_path)
    return written


# ---- GitHub boilerplates ----


def download_github_repo(
    repo: str,
    dest: Path,
    *,
    ref: str = "main",
    transport: httpx.BaseTransport | None = None,
) -> list[Path]:
    """Fetch a repository archive from codeload and extract it under ``dest``."""
    url = f"{GITHUB_CODELOAD_URL}/{repo}/zip/refs/heads/{ref}"
    with httpx.Client(timeout=60.0, follow_redirects=True, transport=transport) as http:
        resp = http.get(url)
    if resp.status_code >= 400:
        raise HubSpotError(f"Failed to fetch {repo} from GitHub ({resp.status_code})")
    written: list[Path] = []
    with zipfile.ZipFile(io.BytesIO(resp.content)) as zf:
        for info in zf.infolist():
            # Archives nest everything under "<repo>-<ref>/".
            parts = info.filename.split("/", 1)
            if len(parts) < 2 or not parts[1] or info.is_dir():
                continue
            target = (dest / parts[1]).resolve()
            if dest.resolve() not in target.parents:
                raise ValidationError(f"Refusing to extract '{info.filename}' outside {dest}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(zf.read(info))
            written.append(target)
    logger.debug("Extracted %d files from %s", len(written), repo)
    return written


def _github_asset(asset_type: str, repo: str) -> AssetSpec:
    def dest(args: CreateArgs) -> Path:
        base = (args.dest or Path.cwd()).resolve()
        return base / (args.name or asset_type) if args.dest is None else base

    def execute(args: CreateArgs) -> list[Path]:
        return download_github_repo(repo, args.dest, transport=args.options.get("transport"))

    return AssetSpec(name=asset_type, dest=dest, execute=execute, description=f"Boilerplate from github.com/{repo}")


def build_registry() -> AssetRegistry:
    reg = AssetRegistry()
    reg.register(AssetSpec(name="module", dest=_module_dest, execute=_module_execute, description="CMS module"))
    reg.register(AssetSpec(name="template", dest=_module_dest, execute=_template_execute, description="CMS template"))
    reg.register(
        AssetSpec(
            name="function",
            dest=_function_dest,
            execute=_function_execute,
            validate=_function_validate,
            description="Serverless function",
        )
    )
    for asset_type, repo in GITHUB_TEMPLATE_REPOS.items():
        reg.register(_github_asset(asset_type, repo))
    return reg
