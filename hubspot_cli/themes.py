"""Theme editor-preview selectors.

Scans a theme's CSS for HubL references to ``theme.*`` fields and records, for
each field in ``fields.json``, which CSS selectors it styles. The result is
written to ``editor-preview.json`` in the theme root.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from hubspot_cli.errors import FileSystemError, ValidationError

logger = logging.getLogger(__name__)

EDITOR_PREVIEW_FILE = "editor-preview.json"

CSS_COMMENTS_RE = re.compile(r"/\*.*\*/")
CSS_PSEUDO_CLASS_RE = re.compile(
    r":active|:checked|:disabled|:empty|:enabled|:first-of-type|:focus|:hover|:in-range|:invalid|:link"
    r"|:optional|:out-of-range|:read-only|:read-write|:required|:target|:valid|:visited"
)
HUBL_EXPRESSION_RE = re.compile(r"\{%\s*(.*)\s*%\}")
HUBL_VARIABLE_NAME_RE = re.compile(r"\{%\s*set\s*(\w*)", re.IGNORECASE)
HUBL_STATEMENT_RE = re.compile(r"\{\{\s*[\w.(,\d\-\s)|/~]*.*\}\}")
HUBL_PLACEHOLDER_RE = re.compile(r"hubl_statement_\d*")
CSS_VARS_RE = re.compile(r"--([\w.(,\d\-)]*):(.*);")
CSS_VAR_NAME_RE = re.compile(r"(--[\w.(,\d\-)]*)")
CSS_SELECTORS_RE = re.compile(r"([\s\w:.,\x00-\[\]]*)\{", re.IGNORECASE)
CSS_EXPRESSION_RE = re.compile(r"(?!\s)([^}])*(?![.#\s,>])[^}]*\}")
THEME_PATH_RE = re.compile(r"=\s*.*(theme\.(\w|\.)*)", re.IGNORECASE)
THEME_FIELD_RE = re.compile(r"theme\.[\w|.]*")


def find_fields_json(base: Path) -> Path | None:
    """Depth-first search for fields.json, never descending into ``.module`` folders."""
    if not base.exists():
        raise FileSystemError(f"The path '{base}' does not exist", filepath=str(base), operation="read")
    if (base / "fields.json").is_file():
        return base / "fields.json"
    for child in sorted(base.iterdir()):
        if child.is_dir() and ".module" not in child.name:
            found = find_fields_json(child)
            if found is not None:
                return found
    return None


def combine_theme_css(base: Path) -> str:
    if base.is_dir():
        return "".join(combine_theme_css(child) for child in sorted(base.iterdir()))
    if ".css" in base.name and ".module" not in str(base):
        return "\n" + base.read_text(encoding="utf-8")
    return ""


def set_preview_selectors(
    fields: list[dict[str, Any]], field_path: list[str], selectors: list[str], depth: int = 0
) -> int:
    """Attach cleaned selectors to the field at ``field_path``. Returns the depth reached."""
    max_depth = 0
    if not field_path:
        return max_depth
    for field in fields:
        if field.get("name") != field_path[0]:
            continue
        rest = field_path[1:]
        if field.get("children") and rest:
            max_depth = max(max_depth, set_preview_selectors(field["children"], rest, selectors, depth + 1))
            continue
        current = field.setdefault("selectors", [])
        max_depth = max(max_depth, depth)
        for selector in selectors:
            cleaned = CSS_PSEUDO_CLASS_RE.sub("", CSS_COMMENTS_RE.sub("", selector)).strip()
            if cleaned not in current and "@media" not in cleaned:
                current.append(cleaned)
    return max_depth


def generate_inherited_selectors(fields: list[dict[str, Any]]) -> None:
    """Copy selectors onto the fields a field inherits its value from."""

    def visit(nodes: list[dict[str, Any]]) -> None:
        for field in nodes:
            if field.get("children"):
                visit(field["children"])
            inheritance = (field.get("inherited_value") or {}).get("property_value_paths")
            selectors = field.get("selectors")
            if not (selectors and inheritance):
                continue
            for path in inheritance.values():
                parts = str(path).split(".")
                if parts[0] == "theme":
                    set_preview_selectors(fields, parts[1:], list(selectors))

    visit(fields)


def generate_selectors_map(fields: list[dict[str, Any]], prefix: list[str] | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for field in fields:
        key = [*(prefix or []), str(field.get("name"))]
        if field.get("children"):
            out.update(generate_selectors_map(field["children"], key))
        else:
            out[".".join(key)] = field.get("selectors")
    return out


def map_theme_fields_to_selectors(css: str) -> dict[str, list[str]]:
    """Map ``theme.*`` field paths to the CSS selectors whose rules reference them."""
    variables: dict[str, str] = {}
    for m in HUBL_EXPRESSION_RE.finditer(css):
        expression = m.group(0)
        name = HUBL_VARIABLE_NAME_RE.search(expression)
        theme_path = THEME_PATH_RE.search(expression)
        if name and theme_path:
            variables[name.group(1)] = theme_path.group(1)
    css = HUBL_EXPRESSION_RE.sub("", css)

    variable_re = re.compile(".*(" + "|".join(map(re.escape, variables)) + ").*") if variables else None

    # Swap HubL statements for placeholders so the rule regex does not swallow them.
    statements: dict[str, str] = {}
    for i, statement in enumerate(HUBL_STATEMENT_RE.findall(css)):
        key = f"hubl_statement_{i}"
        statements[key] = statement
        css = css.replace(statement, key, 1)

    css_vars: dict[str, list[str]] = {}
    for m in list(CSS_VARS_RE.finditer(css)):
        expression = m.group(0)
        var_name = CSS_VAR_NAME_RE.search(expression)
        placeholders = HUBL_PLACEHOLDER_RE.findall(expression)
        if var_name and placeholders:
            css = css.replace(expression, "", 1)
            css_vars[var_name.group(0)] = placeholders
    for var_name, placeholders in css_vars.items():
        css = css.replace(var_name, "  ".join(placeholders), 1)

    result: dict[str, list[str]] = {}

    def add(key: str, selector: str) -> None:
        bucket = result.setdefault(key, [])
        if selector not in bucket:
            bucket.append(selector)

    for m in CSS_EXPRESSION_RE.finditer(css):
        expression = re.sub(r"\r?\n", " ", m.group(0))
        selectors_match = CSS_SELECTORS_RE.search(expression)
        if not selectors_match:
            continue
        selector = selectors_match.group(1).replace("\n", " ")
        for key in HUBL_PLACEHOLDER_RE.findall(expression):
            statement = statements.get(key)
            if statement is None:
                continue
            direct = THEME_FIELD_RE.search(statement)
            if direct:
                add(direct.group(0), selector)
            if variable_re is not None and variable_re.search(statement):
                var = next((v for v in variables if v in statement), None)
                if var:
                    add(variables[var], selector)
    return result


def generate_selectors(theme_path: Path) -> Path:
    fields_path = find_fields_json(theme_path)
    if fields_path is None:
        raise ValidationError(f"Unable to find a fields.json file in '{theme_path}'")
    try:
        fields = json.loads(fields_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{fields_path} is not valid JSON: {e}") from e

    field_map = map_theme_fields_to_selectors(combine_theme_css(theme_path))
    if not field_map:
        raise ValidationError("No selectors found in the theme CSS")

    max_depth = 0
    for theme_key, selectors in field_map.items():
        max_depth = max(max_depth, set_preview_selectors(fields, theme_key.split(".")[1:], selectors))
    for _ in range(max_depth):
        generate_inherited_selectors(fields)

    out = theme_path / EDITOR_PREVIEW_FILE
    out.write_text(json.dumps({"selectors": generate_selectors_map(fields)}, indent=2) + "\n", encoding="utf-8")
    logger.debug("Wrote %s", out)
    return out
