from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from hubspot_cli.errors import ValidationError
from hubspot_cli.themes import find_fields_json, generate_selectors, map_theme_fields_to_selectors

FIELDS = [
    {
        "name": "colors",
        "label": "Colors",
        "type": "group",
        "children": [
            {"name": "primary", "label": "Primary", "type": "color"},
            {"name": "secondary", "label": "Secondary", "type": "color"},
        ],
    }
]


class TestGenerateSelectors(unittest.TestCase):
    def _theme(self, td: str, css: str) -> Path:
        theme = Path(td) / "my-theme"
        (theme / "css").mkdir(parents=True)
        (theme / "fields.json").write_text(json.dumps(FIELDS), encoding="utf-8")
        (theme / "css" / "main.css").write_text(css, encoding="utf-8")
        return theme

    def test_writes_editor_preview(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            theme = self._theme(td, ".button { color: {{ theme.colors.primary }}; }\n")
            out = generate_selectors(theme)
            self.assertEqual(out, theme / "editor-preview.json")
            data = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(data["selectors"]["colors.primary"], [".button"])
        self.assertIsNone(data["selectors"]["colors.secondary"])

    def test_no_hubl_in_css_is_an_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            theme = self._theme(td, ".button { color: red; }\n")
            with self.assertRaises(ValidationError):
                generate_selectors(theme)

    def test_missing_fields_json_is_an_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ValidationError):
                generate_selectors(Path(td))

    def test_fields_json_inside_modules_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            mod = Path(td) / "hero.module"
            mod.mkdir()
            (mod / "fields.json").write_text("[]", encoding="utf-8")
            self.assertIsNone(find_fields_json(Path(td)))

    def test_hubl_variables_map_back_to_theme_fields(self) -> None:
        css = "{% set accent = theme.colors.secondary %}\n.link { color: {{ accent }}; }\n"
        mapping = map_theme_fields_to_selectors(css)
        self.assertEqual(mapping, {"theme.colors.secondary": [".link "]})


if __name__ == "__main__":
    unittest.main()
